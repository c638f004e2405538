"""Asset object store installation (legacy flat layout and hashed layout)."""
import logging
import pathlib
from typing import List, Optional, Tuple

from .archive import safe_join
from .context import InstallContext
from .errors import IntegrityError
from .files import decode_text, file_exists, makedirs, read_text, sha1_of, write_atomic
from .locks import ASSETS_LOCK, InstallLock
from .models import AssetIndex, AssetObject, VersionDescriptor, parse_model
from .net import decode_json
from .progress import ProgressChannel, ProgressTracker

log = logging.getLogger(__name__)

LEGACY_INDEX_ID = 'legacy'


class AssetInstaller:
    """Downloads the asset index and every object it lists.

    Installs are idempotent: an object already on disk is never fetched again.
    """

    def __init__(self, ctx: InstallContext):
        self.ctx = ctx

    # --- Layout ---
    @property
    def assets_dir(self) -> pathlib.Path:
        return self.ctx.config.assets_dir

    @property
    def legacy_dir(self) -> pathlib.Path:
        return self.assets_dir / 'legacy_assets'

    @property
    def modern_dir(self) -> pathlib.Path:
        return self.assets_dir / 'dir'

    @property
    def indexes_dir(self) -> pathlib.Path:
        return self.modern_dir / 'indexes'

    @property
    def objects_dir(self) -> pathlib.Path:
        return self.modern_dir / 'objects'

    def object_url(self, obj: AssetObject) -> str:
        return obj.url or f"{self.ctx.config.objects_url}/{obj.prefix}/{obj.hash}"

    # --- Install ---
    async def fetch_index(self, descriptor: VersionDescriptor) -> Tuple[AssetIndex, str]:
        """Returns the asset index and its raw text, reusing the cached copy when it is intact."""
        ref = descriptor.asset_index
        cached_path = self.indexes_dir / f"{ref.id}.json"
        if await file_exists(cached_path):
            text = await read_text(cached_path)
            if not ref.sha1 or sha1_of(text.encode('utf-8')).lower() == ref.sha1.lower():
                log.info(f"Using cached asset index {cached_path}")
                return self._parse_index(ref.id, text), text
            log.warning(f"Cached asset index {cached_path} does not match {ref.sha1}. Redownloading.")

        log.info(f"Downloading asset index {ref.id}: {ref.url}")
        data = await self.ctx.http.get_bytes(ref.url)
        if ref.sha1:
            actual = sha1_of(data)
            if actual.lower() != ref.sha1.lower():
                raise IntegrityError(ref.url, ref.sha1, actual)
        text = decode_text(data, f"asset index {ref.id}")
        return self._parse_index(ref.id, text), text

    @staticmethod
    def _parse_index(index_id: str, text: str) -> AssetIndex:
        what = f"asset index {index_id}"
        return parse_model(AssetIndex, decode_json(text, what), what)

    async def install(self, descriptor: VersionDescriptor, progress: Optional[ProgressChannel] = None) -> int:
        """Installs every asset of ``descriptor``; returns how many objects were downloaded."""
        index_id = descriptor.asset_index.id
        index, raw_index = await self.fetch_index(descriptor)
        total_assets = len(index.objects)
        await makedirs(self.indexes_dir)

        if index_id == LEGACY_INDEX_ID:
            await makedirs(self.legacy_dir)
            targets = [(obj, safe_join(self.legacy_dir, path)) for path, obj in index.objects.items()]
            await write_atomic(self.indexes_dir / f"{index_id}.json", raw_index)
            log.info(f"Checking {total_assets} legacy asset files...")
            downloaded = await self._install_objects(targets, progress)
        else:
            await makedirs(self.objects_dir)
            targets = [(obj, self.objects_dir / obj.prefix / obj.hash) for obj in index.objects.values()]
            async with InstallLock(self.modern_dir / ASSETS_LOCK, 'asset downloading'):
                await write_atomic(self.indexes_dir / f"{index_id}.json", raw_index)
                log.info(f"Checking {total_assets} asset files listed in index {index_id}...")
                downloaded = await self._install_objects(targets, progress)

        log.info(f"Asset check complete. Downloaded {downloaded} of {total_assets} objects.")
        return downloaded

    async def _install_objects(self, targets: List[Tuple[AssetObject, pathlib.Path]],
                               progress: Optional[ProgressChannel]) -> int:
        with ProgressTracker(len(targets), 'Assets', progress, self.ctx.show_progress) as tracker:
            results = await self.ctx.scheduler.run_all(
                self._install_object(obj, dest, tracker) for obj, dest in targets
            )
        return sum(1 for r in results if r)

    async def _install_object(self, obj: AssetObject, dest: pathlib.Path, tracker: ProgressTracker) -> bool:
        if await file_exists(dest):
            await tracker.advance()
            return False
        await self.ctx.http.download_file(self.object_url(obj), dest, obj.hash, force_download=True)
        await tracker.advance()
        return True
