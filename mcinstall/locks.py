"""Lock marker files.

A lock file is written before a multi-step install and removed only once the
whole step succeeds. Finding one later means the previous attempt crashed.

These markers are advisory: they detect crashes, they do not keep two
installers out of the same directory. Running two installs of the same
instance at once is unsafe.
"""
import logging
import pathlib
from typing import List

import aiofiles.os

from .files import file_exists, remove_file, write_atomic

log = logging.getLogger(__name__)

ASSETS_LOCK = 'download.lock'
JAVA_LOCK = 'install.lock'
LOADER_LOCK = 'loader.lock'

LOCK_TEXT = "If you see this, the {what} hasn't finished. This will be deleted once finished."


class InstallLock:
    """``async with InstallLock(path, what):`` wraps one crash-detectable step."""

    def __init__(self, path: pathlib.Path, what: str = 'installation'):
        self.path = path
        self.what = what
        self.was_stale = False

    async def is_stale(self) -> bool:
        return await file_exists(self.path)

    async def acquire(self) -> None:
        if await self.is_stale():
            self.was_stale = True
            log.warning(f"Found leftover lock {self.path}: a previous {self.what} was interrupted.")
        await write_atomic(self.path, LOCK_TEXT.format(what=self.what))

    async def release(self) -> None:
        await remove_file(self.path)

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        # Left in place on failure as the crash marker
        if exc_type is None:
            await self.release()
        return False


async def find_stale_locks(*directories: pathlib.Path) -> List[pathlib.Path]:
    """Lock files left behind under the given directories (searched recursively)."""
    found = []
    names = {ASSETS_LOCK, JAVA_LOCK, LOADER_LOCK}
    for directory in directories:
        if not await aiofiles.os.path.isdir(directory):
            continue
        for path in sorted(directory.rglob('*.lock')):
            if path.name in names and path.is_file():
                found.append(path)
    return found
