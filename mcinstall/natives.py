"""Native library extraction.

Natives come in three shapes, all extracted into the instance's shared
``libraries/natives`` directory:

* format A: a ``natives`` map (OS -> classifier). The main jar is extracted and
  a companion ``<jar>-<classifier>.jar`` is fetched next to it.
* format B: the library name itself contains ``native``. The jar is used as-is
  when it fits this architecture, otherwise an alternative is looked up in a
  remap table.
* classifiers: ``downloads.classifiers`` entries named ``natives-<os>...``.
"""
import logging
import pathlib
from typing import Callable, Dict, List, Optional

from . import archive
from .context import InstallContext
from .errors import NetworkError
from .lwjgl import ARM64_LWJGL_VERSIONS, maven_library, split_coordinate
from .models import Artifact, LibraryEntry, maven_path, parse_model
from .platform_info import ARCH_ARM32, ARCH_ARM64, ARCH_X86, Platform

log = logging.getLogger(__name__)

MACHINA_LWJGL_294_OSX = 'https://github.com/MinecraftMachina/lwjgl/releases/download/2.9.4-20150209-mmachina.2/lwjgl-platform-2.9.4-nightly-20150209-natives-osx.jar'
MACOS_ARM_LWJGL_294_1 = 'https://libraries.minecraft.net/org/lwjgl/lwjgl/lwjgl-platform/2.9.4-nightly-20150209/lwjgl-platform-2.9.4-nightly-20150209-natives-osx.jar'
MACOS_ARM_LWJGL_294_2 = 'https://github.com/Dungeons-Guide/lwjgl/releases/download/2.9.4-20150209-mmachina.2-syeyoung.1/lwjgl-platform-2.9.4-nightly-20150209-natives-osx-arm64.jar'
JEMALLOC_316_LINUX = 'https://github.com/theofficialgman/lwjgl3-binaries-arm64/raw/lwjgl-3.1.6/lwjgl-jemalloc-natives-linux.jar'
JEMALLOC_316_LINUX_ARM64 = 'https://github.com/theofficialgman/lwjgl3-binaries-arm64/raw/lwjgl-3.1.6/lwjgl-jemalloc-patched-natives-linux-arm64.jar'

# Hosts that only publish ARM builds
ARM_HOST_MARKERS = (
    'theofficialgman/lwjgl3-binaries-arm64',
    'dungeons-guide/lwjgl',
    'minecraftmachina/lwjgl',
)

OBJC_BRIDGE_ARM64_URL = 'https://repo1.maven.org/maven2/ca/weblite/java-objc-bridge/1.1/java-objc-bridge-1.1.jar'


# --- URL handling ---
def rewrite_classifier_url(url: str) -> str:
    """Known-broken classifier native URLs and their fixed builds."""
    if url == MACHINA_LWJGL_294_OSX:
        log.info("Patching LWJGL 2.9.4 20150209 natives for OSX ARM64 (resizing crash fix)")
        return MACOS_ARM_LWJGL_294_2
    if url == MACOS_ARM_LWJGL_294_1:
        log.info("Patching LWJGL 2.9.4 20150209 natives for OSX ARM64 (classifiers)")
        return MACOS_ARM_LWJGL_294_2
    return url


def companion_native_url(artifact_url: str, classifier: str, platform: Platform) -> str:
    """``<main jar url without .jar>-<classifier>.jar``, with known name fixes applied."""
    base = artifact_url[:-4] if artifact_url.endswith('.jar') else artifact_url
    url = f"{base}-{classifier}.jar"
    if url == JEMALLOC_316_LINUX:
        url = JEMALLOC_316_LINUX_ARM64
    if platform.arch == ARCH_ARM64:
        if url == MACOS_ARM_LWJGL_294_1:
            log.info("Patching LWJGL 2.9.4 20150209 natives for OSX ARM64")
            url = MACOS_ARM_LWJGL_294_2
        if url.endswith('lwjgl-core-natives-linux.jar'):
            url = url.replace('lwjgl-core-natives-linux.jar', 'lwjgl-natives-linux-arm64.jar')
    return url


def native_package_text(name: str, url: Optional[str]) -> str:
    """Name plus jar file name used to judge a format-B package's architecture."""
    text = name.lower()
    if url:
        lowered = url.lower()
        text += ' ' + lowered.rsplit('/', 1)[-1]
        if any(marker in lowered for marker in ARM_HOST_MARKERS):
            text += ' arm64'
    return text


# --- Remap table ---
def _lwjgl_classifier(platform: Platform) -> str:
    os_part = {'osx': 'macos'}.get(platform.os_name, platform.os_name)
    if platform.arch == ARCH_ARM64:
        return f"natives-{os_part}-arm64"
    if platform.arch == ARCH_ARM32:
        return f"natives-{os_part}-arm32"
    if platform.arch == ARCH_X86:
        return f"natives-{os_part}-x86"
    return f"natives-{os_part}"


def _remap_lwjgl(library: LibraryEntry, platform: Platform) -> List[LibraryEntry]:
    _, artifact, version, classifier = split_coordinate(library.name)
    if not version.startswith('3.') or not (classifier or '').startswith('natives-'):
        return []
    version = ARM64_LWJGL_VERSIONS.get(version, version) if platform.arch != 'x64' else version
    return [maven_library(artifact, version, _lwjgl_classifier(platform), platform.rule_target)]


def _remap_objc_bridge(library: LibraryEntry, platform: Platform) -> List[LibraryEntry]:
    data = {
        'name': 'ca.weblite:java-objc-bridge:1.1',
        'downloads': {'artifact': {
            'path': 'ca/weblite/java-objc-bridge/1.1/java-objc-bridge-1.1.jar',
            'url': OBJC_BRIDGE_ARM64_URL,
        }},
        'rules': [{'action': 'allow', 'os': {'name': 'osx-arm64'}}],
    }
    return [parse_model(LibraryEntry, data, 'library ca.weblite:java-objc-bridge:1.1')]


NATIVE_REMAPS: Dict[str, Callable[[LibraryEntry, Platform], List[LibraryEntry]]] = {
    'org.lwjgl': _remap_lwjgl,
    'ca.weblite': _remap_objc_bridge,
}


def remap_native(library: LibraryEntry, platform: Platform) -> List[LibraryEntry]:
    """Platform-correct replacements for a native package built for another architecture."""
    if not library.name:
        return []
    group = library.name.split(':', 1)[0]
    for prefix, remap in NATIVE_REMAPS.items():
        if group.startswith(prefix):
            return remap(library, platform)
    return []


class NativeExtractor:
    """Installs the native parts of libraries into ``natives_dir``."""

    def __init__(self, ctx: InstallContext, libraries_dir: pathlib.Path,
                 is_allowed: Callable[[LibraryEntry], bool]):
        self.ctx = ctx
        self.libraries_dir = libraries_dir
        self.natives_dir = libraries_dir / 'natives'
        self.is_allowed = is_allowed

    @property
    def platform(self) -> Platform:
        return self.ctx.platform

    def artifact_path(self, artifact: Artifact, name: Optional[str]) -> pathlib.Path:
        if artifact.path:
            return archive.safe_join(self.libraries_dir, artifact.path)
        if name:
            return archive.safe_join(self.libraries_dir, maven_path(name))
        return archive.safe_join(self.libraries_dir, artifact.url.rsplit('/', 1)[-1])

    async def extract(self, source) -> None:
        await self.ctx.blocking.run(archive.extract_zip, source, self.natives_dir, True, True)

    # --- Format A ---
    def natives_classifier(self, library: LibraryEntry) -> Optional[str]:
        if not library.natives:
            return None
        classifier = library.natives.get(self.platform.rule_target) or library.natives.get(self.platform.os_name)
        if classifier is None:
            return None
        return classifier.replace('${arch}', self.platform.arch_bits)

    async def extract_natives_field(self, library: LibraryEntry, jar_path: pathlib.Path) -> None:
        classifier = self.natives_classifier(library)
        if classifier is None:
            return
        name = library.name or ''
        log.info(f"Extracting natives (1): {name}")
        await self.extract(jar_path)

        if library.downloads and library.downloads.classifiers is not None:
            native = library.classifiers.get(classifier)
            if native is None:
                log.error(f"{name}: No matching `classifiers.natives-*` entry found for {classifier}")
                return
            natives_url = rewrite_classifier_url(native.url)
        else:
            natives_url = companion_native_url(library.artifact.url, classifier, self.platform)

        log.debug(f"Downloading native jar: {name} ({natives_url})")
        try:
            native_jar = await self.ctx.http.get_bytes(natives_url)
        except NetworkError as e:
            if not (e.is_not_found and self.platform.is_arm64_linux):
                raise
            retry_url = natives_url.replace('linux.jar', 'linux-arm64.jar')
            log.info(f"{natives_url} not found, retrying with {retry_url}")
            native_jar = await self.ctx.http.get_bytes(retry_url)
        await self.extract(native_jar)

    # --- Format B ---
    async def extract_name_natives(self, library: LibraryEntry, jar_path: pathlib.Path) -> None:
        name = library.name
        if not name or 'native' not in name:
            return
        text = native_package_text(name, library.artifact.url if library.artifact else None)
        if self.platform.native_name_compatible(text):
            log.info(f"Extracting native (2): {name}")
            await self.extract(jar_path)
            return

        replacements = [r for r in remap_native(library, self.platform) if self.is_allowed(r)]
        if not replacements:
            log.debug(f"Skipping native {name}: built for another architecture")
            return
        for replacement in replacements:
            log.info(f"Using {replacement.name} in place of {name}")
            path = self.artifact_path(replacement.artifact, replacement.name)
            await self.ctx.http.download_file(replacement.artifact.url, path, replacement.artifact.sha1)
            await self.extract(path)

    # --- Classifiers ---
    async def install_classifiers(self, library: LibraryEntry) -> None:
        for key, download in library.classifiers.items():
            if not self.platform.classifier_matches(key):
                log.debug(f"Skipping OS: {key}")
                continue
            url = rewrite_classifier_url(download.url)
            expected_sha1 = download.sha1 if url == download.url else None
            path = self.artifact_path(download, f"{library.name}:{key}" if library.name else None)
            log.info(f"Downloading natives (classifiers): {url}")
            await self.ctx.http.download_file(url, path, expected_sha1, force_download=url != download.url)
            await self.extract(path)

        if library.extract and library.extract.exclude:
            await self.apply_exclusions(library.extract.exclude)

    async def apply_exclusions(self, excludes: List[str]) -> None:
        """Removes excluded paths from the natives directory.

        Every path is checked before anything is removed; one escaping the
        natives directory fails the whole call with ``ExtractionError``.
        """
        targets = [archive.safe_join(self.natives_dir, exclusion) for exclusion in excludes]
        root = self.natives_dir.resolve()
        for target in targets:
            if target == root:
                continue
            if target.exists() or target.is_symlink():
                log.debug(f"Removing excluded native path {target}")
                await self.ctx.blocking.run(archive.remove_path, target)
