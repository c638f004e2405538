"""Async filesystem helpers shared by the installers."""
import hashlib
import json
import logging
import os
import pathlib
from typing import Any, Union

import aiofiles
import aiofiles.os

from .errors import IoError, SchemaError

log = logging.getLogger(__name__)

PART_SUFFIX = '.part'


def part_path(path: pathlib.Path) -> pathlib.Path:
    return path.with_name(path.name + PART_SUFFIX)


async def get_file_sha1(file_path: pathlib.Path) -> str:
    """Calculates the SHA1 hash of a file asynchronously."""
    sha1_hash = hashlib.sha1()
    try:
        async with aiofiles.open(file_path, 'rb') as f:
            while True:
                chunk = await f.read(8192)
                if not chunk:
                    break
                sha1_hash.update(chunk)
        return sha1_hash.hexdigest()
    except OSError as e:
        raise IoError(file_path, e) from e


def sha1_of(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


async def file_exists(file_path: pathlib.Path) -> bool:
    """Checks if a regular file exists asynchronously."""
    try:
        return await aiofiles.os.path.isfile(file_path)
    except OSError:
        return False


async def makedirs(dir_path: pathlib.Path) -> None:
    try:
        await aiofiles.os.makedirs(dir_path, exist_ok=True)
    except OSError as e:
        raise IoError(dir_path, e) from e


async def write_atomic(dest_path: pathlib.Path, data: Union[bytes, str]) -> None:
    """Writes to ``<dest>.part`` then renames over ``dest``.

    A crash mid-write leaves only the ``.part`` file, never a truncated ``dest``.
    """
    await makedirs(dest_path.parent)
    tmp_path = part_path(dest_path)
    mode = 'wb' if isinstance(data, bytes) else 'w'
    try:
        if mode == 'w':
            async with aiofiles.open(tmp_path, mode, encoding='utf-8') as f:
                await f.write(data)
        else:
            async with aiofiles.open(tmp_path, mode) as f:
                await f.write(data)
        await aiofiles.os.replace(tmp_path, dest_path)
    except OSError as e:
        log.error(f"Failed to write {dest_path}: {e}")
        raise IoError(dest_path, e) from e


async def write_json(dest_path: pathlib.Path, value: Any, indent: int = 2) -> None:
    await write_atomic(dest_path, json.dumps(value, indent=indent))


def decode_text(data: bytes, what: str) -> str:
    """UTF-8 text of a downloaded or extracted document."""
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise SchemaError(what, f"not valid UTF-8: {e}") from e


async def read_text(file_path: pathlib.Path) -> str:
    try:
        async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
            return await f.read()
    except OSError as e:
        raise IoError(file_path, e) from e
    except UnicodeDecodeError as e:
        raise SchemaError(str(file_path), f"not valid UTF-8: {e}") from e


async def read_bytes(file_path: pathlib.Path) -> bytes:
    try:
        async with aiofiles.open(file_path, 'rb') as f:
            return await f.read()
    except OSError as e:
        raise IoError(file_path, e) from e


async def remove_file(file_path: pathlib.Path, missing_ok: bool = True) -> None:
    try:
        await aiofiles.os.remove(file_path)
    except FileNotFoundError:
        if not missing_ok:
            raise
    except OSError as e:
        raise IoError(file_path, e) from e


def set_executable(file_path: pathlib.Path) -> None:
    """Adds the execute bits on POSIX; a no-op on Windows."""
    if os.name == 'nt':
        return
    mode = os.stat(file_path).st_mode
    os.chmod(file_path, mode | 0o111)
