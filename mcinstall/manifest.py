"""Version manifest download and version name resolution."""
import enum
import logging
from typing import Optional, Tuple

from rapidfuzz.distance import Levenshtein

from .context import InstallContext
from .errors import InstallError, VersionNotFound
from .models import ManifestVersion, VersionDescriptor, VersionManifest, parse_model
from .net import decode_json

log = logging.getLogger(__name__)


class VersionCategory(enum.Enum):
    """Historical eras whose version ids are matched loosely."""
    PRE_CLASSIC = 'PreClassic'
    CLASSIC = 'Classic'
    INDEV = 'Indev'
    INFDEV = 'Infdev'
    ALPHA = 'Alpha'
    BETA = 'Beta'

    @property
    def prefix(self) -> Optional[str]:
        return _CATEGORY_PREFIXES.get(self)

    @property
    def exact_id(self) -> Optional[str]:
        """Eras with a single archived build resolve straight to it."""
        return _CATEGORY_EXACT_IDS.get(self)

    @classmethod
    def guess(cls, name: str) -> Optional['VersionCategory']:
        """Infers the era from how a version name is spelled."""
        lowered = name.lower()
        if lowered.startswith('inf'):
            return cls.INFDEV
        if lowered.startswith('in-') or lowered == 'indev':
            return cls.INDEV
        for category, prefix in _CATEGORY_PREFIXES.items():
            if lowered.startswith(prefix):
                return category
        return None


_CATEGORY_PREFIXES = {
    VersionCategory.PRE_CLASSIC: 'rd-',
    VersionCategory.CLASSIC: 'c0.',
    VersionCategory.ALPHA: 'a1.',
    VersionCategory.BETA: 'b1.',
}

_CATEGORY_EXACT_IDS = {
    VersionCategory.INDEV: 'c0.30_01c',
    VersionCategory.INFDEV: 'inf-20100618',
}

def find_fuzzy(manifest: VersionManifest, name: str, prefix: str) -> Optional[ManifestVersion]:
    """Closest id (by edit distance) among those starting with ``prefix``; first wins on ties."""
    candidates = [v for v in manifest.versions if v.id.startswith(prefix)]
    if not candidates:
        return None
    return min(candidates, key=lambda v: Levenshtein.distance(name, v.id))


class ManifestResolver:
    """Resolves version names to descriptor URLs.

    The manifest is downloaded at most once per resolver; create one resolver
    per run and share it.
    """

    def __init__(self, ctx: InstallContext):
        self.ctx = ctx
        self._manifest: Optional[VersionManifest] = None

    async def load_manifest(self) -> VersionManifest:
        if self._manifest is not None:
            return self._manifest

        last_error: Optional[Exception] = None
        for url in self.ctx.config.manifest_urls:
            log.info(f"Loading version manifest: {url}")
            try:
                raw = await self.ctx.http.get_json(url)
                self._manifest = parse_model(VersionManifest, raw, f"version manifest from {url}")
                log.info(f"Version manifest lists {len(self._manifest.versions)} versions")
                return self._manifest
            except InstallError as e:
                log.warning(f"Could not use version manifest {url}: {e}")
                last_error = e

        if last_error is not None:
            raise last_error
        raise ValueError("No version manifest URLs configured")

    def set_manifest(self, manifest: VersionManifest) -> None:
        self._manifest = manifest

    async def resolve_entry(self, name: str, category: Optional[VersionCategory] = None) -> ManifestVersion:
        manifest = await self.load_manifest()

        entry = manifest.find(name)
        if entry is not None:
            return entry

        category = category or VersionCategory.guess(name)
        if category is None:
            raise VersionNotFound(name)

        if category.exact_id is not None:
            entry = manifest.find(category.exact_id)
        else:
            entry = find_fuzzy(manifest, name, category.prefix)
        if entry is None:
            raise VersionNotFound(name)
        log.info(f"Resolved {name!r} ({category.value}) to {entry.id}")
        return entry

    async def resolve(self, name: str, category: Optional[VersionCategory] = None) -> str:
        """Returns the descriptor URL for ``name``."""
        entry = await self.resolve_entry(name, category)
        return entry.url

    async def fetch_descriptor(
        self, name: str, category: Optional[VersionCategory] = None
    ) -> Tuple[VersionDescriptor, str]:
        """Downloads the descriptor for ``name``; returns it with the raw text as downloaded."""
        url = await self.resolve(name, category)
        log.info(f"Downloading version descriptor: {url}")
        raw_text = await self.ctx.http.get_text(url)
        data = decode_json(raw_text, f"version descriptor {name}")
        descriptor = parse_model(VersionDescriptor, data, f"version descriptor {name}")
        return descriptor, raw_text
