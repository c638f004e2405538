"""Java runtime provisioning.

Runtimes live in ``<basepath>/java_installs/java_<major>`` and are shared by
every instance needing that major version. They come from Mojang's runtime
manifests, or from an Amazon Corretto tarball where Mojang has no build
(64-bit ARM Linux).
"""
import logging
import lzma
import os
import pathlib
from typing import Dict, Optional, Tuple

from . import archive
from .context import InstallContext
from .errors import ExtractionError, IntegrityError, JavaBinaryNotFound, PlatformUnsupported
from .files import file_exists, get_file_sha1, makedirs, set_executable, sha1_of, write_atomic
from .locks import JAVA_LOCK, InstallLock
from .models import JavaFileManifest, JavaFileSpec, JavaRuntimeList, parse_model
from .platform_info import ARCH_ARM64, ARCH_X64, ARCH_X86, Platform
from .progress import Progress, ProgressChannel, ProgressTracker

log = logging.getLogger(__name__)

# --- Configuration ---
RUNTIME_COMPONENTS: Dict[int, Tuple[str, ...]] = {
    8: ('jre-legacy',),
    16: ('java-runtime-alpha',),
    17: ('java-runtime-gamma', 'java-runtime-gamma-snapshot', 'java-runtime-beta'),
    21: ('java-runtime-delta',),
    25: ('java-runtime-epsilon',),
}

CORRETTO_URL = 'https://corretto.aws/downloads/latest/amazon-corretto-{major}-aarch64-linux-jdk.tar.gz'


def normalize_major(major: int) -> int:
    """Maps a required Java major version onto one of the provisioned runtimes."""
    if major <= 8:
        return 8
    if major in (16, 17):
        return major
    if major >= 25:
        return 25
    return 21


def runtime_platform_key(platform: Platform) -> Optional[str]:
    """Key of Mojang's runtime list for ``platform``, or None when Mojang ships nothing for it."""
    keys = {
        ('linux', ARCH_X64): 'linux',
        ('linux', ARCH_X86): 'linux-i386',
        ('osx', ARCH_X64): 'mac-os',
        ('osx', ARCH_ARM64): 'mac-os-arm64',
        ('windows', ARCH_X64): 'windows-x64',
        ('windows', ARCH_X86): 'windows-x86',
        ('windows', ARCH_ARM64): 'windows-arm64',
    }
    return keys.get((platform.os_name, platform.arch))


def corretto_url(major: int, platform: Platform) -> Optional[str]:
    if not platform.is_arm64_linux:
        return None
    corretto_major = {16: 17}.get(major, major)
    return CORRETTO_URL.format(major=corretto_major)


class JavaRuntimeProvisioner:
    """Installs Java runtimes on demand and locates their binaries."""

    def __init__(self, ctx: InstallContext):
        self.ctx = ctx

    @property
    def platform(self) -> Platform:
        return self.ctx.platform

    def install_dir(self, major: int) -> pathlib.Path:
        return self.ctx.config.java_installs_dir / f"java_{normalize_major(major)}"

    async def needs_install(self, major: int) -> bool:
        install_dir = self.install_dir(major)
        if not install_dir.is_dir():
            return True
        return await file_exists(install_dir / JAVA_LOCK)

    async def get_binary(self, major: int, name: str = 'java',
                         progress: Optional[ProgressChannel] = None) -> pathlib.Path:
        """Path to binary ``name`` (``java``, ``javac``, ...) of the runtime for ``major``.

        Installs the runtime first when it is missing or a previous install crashed.
        """
        if await self.needs_install(major):
            log.info(f"Installing Java {normalize_major(major)}")
            await self.install(major, progress)
            log.info(f"Finished installing Java {normalize_major(major)}")
        return self.find_binary(self.install_dir(major), name)

    def find_binary(self, install_dir: pathlib.Path, name: str) -> pathlib.Path:
        candidates = [install_dir / 'bin' / name]
        if self.platform.is_windows:
            candidates.append(install_dir / 'bin' / f"{name}.exe")
        if self.platform.is_macos:
            candidates.append(install_dir / 'jre.bundle' / 'Contents' / 'Home' / 'bin' / name)

        for candidate in candidates:
            if candidate.is_file():
                if os.name != 'nt' and not os.access(candidate, os.X_OK):
                    log.warning(f"Java binary found but not executable: {candidate}")
                return candidate.resolve()
        raise JavaBinaryNotFound(install_dir, name)

    # --- Install ---
    async def install(self, major: int, progress: Optional[ProgressChannel] = None) -> None:
        install_dir = self.install_dir(major)
        await makedirs(install_dir)
        channel = progress or ProgressChannel()

        async with InstallLock(install_dir / JAVA_LOCK, 'Java installation'):
            channel.send(Progress(0, 0, f"Installing Java {normalize_major(major)}"))
            manifest_url = await self.runtime_manifest_url(major)
            if manifest_url is not None:
                await self.install_from_manifest(manifest_url, install_dir, major, channel)
            else:
                url = corretto_url(normalize_major(major), self.platform)
                if url is None:
                    raise PlatformUnsupported(
                        f"No Java {normalize_major(major)} runtime is available for {self.platform.os_name} {self.platform.arch}"
                    )
                await self.install_tarball(url, install_dir, channel)

    async def runtime_manifest_url(self, major: int) -> Optional[str]:
        platform_key = runtime_platform_key(self.platform)
        if platform_key is None:
            log.info(f"Mojang ships no Java runtimes for {self.platform}")
            return None

        raw = await self.ctx.http.get_json(self.ctx.config.java_list_url)
        runtime_list = parse_model(JavaRuntimeList, raw, 'Java runtime list')
        for component in RUNTIME_COMPONENTS[normalize_major(major)]:
            entry = runtime_list.component(platform_key, component)
            if entry is not None:
                log.info(f"Using Java runtime component {component} for {platform_key}")
                return entry.manifest.url
        return None

    async def install_from_manifest(self, url: str, install_dir: pathlib.Path, major: int,
                                    channel: ProgressChannel) -> None:
        raw = await self.ctx.http.get_json(url)
        manifest = parse_model(JavaFileManifest, raw, f"Java {major} file manifest")
        total_files = len(manifest.files)
        log.info(f"Installing {total_files} Java runtime entries into {install_dir}")

        with ProgressTracker(total_files, f"Java {normalize_major(major)}", channel, self.ctx.show_progress) as tracker:
            await self.ctx.scheduler.run_all(
                self._install_entry(install_dir, relpath, spec, tracker)
                for relpath, spec in manifest.files.items()
            )

    async def _install_entry(self, install_dir: pathlib.Path, relpath: str, spec: JavaFileSpec,
                             tracker: ProgressTracker) -> None:
        path = archive.safe_join(install_dir, relpath)
        if spec.type == 'directory':
            await makedirs(path)
        elif spec.type == 'file':
            await self._install_file(path, spec)
        elif spec.type == 'link':
            await self._install_link(install_dir, path, spec)
        else:
            log.warning(f"Skipping Java runtime entry {relpath} of unknown type {spec.type!r}")
        await tracker.advance(f"Installing file: {relpath}")

    async def _install_file(self, path: pathlib.Path, spec: JavaFileSpec) -> None:
        if spec.downloads is None:
            raise ExtractionError(path, "file entry has no downloads")
        raw = spec.downloads.raw
        if raw.sha1 and await file_exists(path) and (await get_file_sha1(path)).lower() == raw.sha1.lower():
            return

        data = await self._download_entry(spec)
        if raw.sha1:
            actual = sha1_of(data)
            if actual.lower() != raw.sha1.lower():
                raise IntegrityError(raw.url, raw.sha1, actual)
        await write_atomic(path, data)
        if spec.executable:
            set_executable(path)

    async def _download_entry(self, spec: JavaFileSpec) -> bytes:
        downloads = spec.downloads
        if downloads.lzma is None:
            return await self.ctx.http.get_bytes(downloads.raw.url)
        compressed = await self.ctx.http.get_bytes(downloads.lzma.url)
        try:
            return await self.ctx.blocking.run(lzma.decompress, compressed)
        except lzma.LZMAError as e:
            log.error(f"Could not decompress lzma file: {e} ({downloads.raw.url})")
            return await self.ctx.http.get_bytes(downloads.raw.url)

    async def _install_link(self, install_dir: pathlib.Path, path: pathlib.Path, spec: JavaFileSpec) -> None:
        if not spec.target:
            raise ExtractionError(path, "link entry has no target")
        root = install_dir.resolve()
        resolved = (path.parent / spec.target).resolve()
        if resolved != root and root not in resolved.parents:
            raise ExtractionError(path, f"link target {spec.target} escapes {install_dir}")

        await makedirs(path.parent)
        try:
            if path.is_symlink() or path.exists():
                path.unlink()
            os.symlink(spec.target, path)
        except OSError as e:
            raise ExtractionError(path, f"could not create symlink to {spec.target}: {e}") from e

    async def install_tarball(self, url: str, install_dir: pathlib.Path, channel: ProgressChannel) -> None:
        channel.send(Progress(0, 2, "Getting tar.gz archive"))
        log.info(f"Downloading Java archive: {url}")
        data = await self.ctx.http.get_bytes(url)
        channel.send(Progress(1, 2, "Extracting tar.gz archive"))
        count = await self.ctx.blocking.run(archive.extract_tar_gz_flatten, data, install_dir)
        log.info(f"Extracted {count} entries into {install_dir}")
        channel.send(Progress(2, 2, "Java installed"))
