"""Mod loader installation (Forge, NeoForge, Fabric and Quilt).

Forge is installed by downloading its installer jar and, for Forge 14 and
newer, running it headlessly through a small compiled Java driver. The
libraries the installer declares are then fetched into ``<instance>/forge``
and the resulting classpath is written to ``forge/classpath.txt``. NeoForge
shares that layout and driver. Fabric and Quilt only need their meta service.
"""
import datetime
import enum
import functools
import logging
import os
import pathlib
import subprocess
import tempfile
from typing import List, NamedTuple, Optional, Tuple

from . import archive
from .context import InstallContext
from .errors import (
    ExtractionError,
    IoError,
    LoaderVersionNotFound,
    NetworkError,
    SchemaError,
    SubprocessError,
)
from .files import decode_text, file_exists, makedirs, read_bytes, remove_file, write_atomic
from .instance import FORGE_CLASSPATH_FILENAME, FORGE_CLEAN_CLASSPATH_FILENAME, InstanceLayout
from .java import JavaRuntimeProvisioner
from .locks import LOADER_LOCK, InstallLock
from .models import (
    FabricDetails,
    FabricLibrary,
    FabricLoaderVersion,
    InstallProfile,
    LoaderDetails,
    LoaderLibrary,
    LoaderVersionIndex,
    NeoForgeVersionList,
    VersionDescriptor,
    dedup_key,
    maven_path,
    parse_model,
)
from .net import decode_json
from .progress import LoaderProgress, LoaderStage, ProgressChannel, ProgressTracker

log = logging.getLogger(__name__)


class LoaderKind(enum.Enum):
    VANILLA = 'Vanilla'
    FORGE = 'Forge'
    FABRIC = 'Fabric'
    QUILT = 'Quilt'
    NEOFORGE = 'NeoForge'
    OPTIFINE = 'OptiFine'

    @classmethod
    def parse(cls, value: str) -> 'LoaderKind':
        for kind in cls:
            if kind.value.lower() == value.strip().lower():
                return kind
        choices = ', '.join(kind.value for kind in cls)
        raise ValueError(f"Unknown loader {value!r}, expected one of: {choices}")


# --- Forge ---
FORGE_DIRNAME = 'forge'
FABRIC_MAVEN_URL = 'https://maven.fabricmc.net/'
QUILT_MAVEN_URL = 'https://maven.quiltmc.org/repository/release/'

# Forge 14+ ships an installer that must be run; older ones are the classpath themselves
FORGE_RUN_INSTALLER_MAJOR = 14
# Forge 39+ puts its own jar on the classpath through the module path
FORGE_BUNDLED_JAR_MAJOR = 39
# Forge 49+ needs its own artifact listed on the classpath again
FORGE_EXPLICIT_ARTIFACT_MAJOR = 48

INSTALLER_JAVA_MAJOR = 21
UNPACK200_JAVA_MAJOR = 8

PROFILE_STUBS = ('launcher_profiles.json', 'launcher_profiles_microsoft_store.json')
DRIVER_SOURCE_NAME = 'ForgeInstaller.java'

# --- NeoForge ---
NEOFORGE_INSTALLER_NAME = 'installer.jar'
# Release time of 1.20.2, the first version NeoForge supports
NEOFORGE_MIN_RELEASE = datetime.datetime(2023, 9, 20, 9, 2, 57, tzinfo=datetime.timezone.utc)

FORGE_INSTALLER_SOURCE = """\
import java.io.File;
import java.io.OutputStream;

import net.minecraftforge.installer.SimpleInstaller;
import net.minecraftforge.installer.actions.Actions;
import net.minecraftforge.installer.actions.ProgressCallback;
import net.minecraftforge.installer.json.InstallV1;
import net.minecraftforge.installer.json.Util;

public class ForgeInstaller {
    public static void main(String[] args) {
        SimpleInstaller.headless = true;
        System.setProperty("java.net.preferIPv4Stack", "true");
        ProgressCallback monitor = ProgressCallback.withOutputs(new OutputStream[] { System.out });
        Actions action = Actions.CLIENT;
        try {
            InstallV1 profile = Util.loadInstallProfile();
            File installerJar = new File(SimpleInstaller.class.getProtectionDomain().getCodeSource().getLocation().toURI());
            if (!action.getAction(profile, monitor).run(new File("."), installerJar)) {
                System.out.println("Error");
                System.exit(1);
            }
            System.out.println(action.getSuccess());
        } catch (Throwable e) {
            e.printStackTrace();
            System.exit(1);
        }
        System.exit(0);
    }
}
"""
# NeoForge's client action also takes a file filter
NEOFORGE_INSTALLER_SOURCE = FORGE_INSTALLER_SOURCE.replace('new File(".")', 'new File("."), a -> true')


def normalize_game_version(game_version: str) -> str:
    """``1.20`` -> ``1.20.0``; versions with two dots are kept."""
    if game_version.count('.') == 1:
        return f"{game_version}.0"
    return game_version


class ForgeVersion(NamedTuple):
    """A Forge build for one game version, with both historical artifact spellings."""
    game_version: str
    forge_version: str

    @property
    def short(self) -> str:
        return f"{self.game_version}-{self.forge_version}"

    @property
    def normalized(self) -> str:
        return f"{self.short}-{normalize_game_version(self.game_version)}"

    @property
    def major(self) -> int:
        head = self.forge_version.split('.', 1)[0]
        try:
            return int(head)
        except ValueError:
            raise SchemaError(f"Forge version {self.forge_version!r}", "major version is not a number") from None

    @property
    def file_type(self) -> str:
        return 'universal' if self.major < FORGE_RUN_INSTALLER_MAJOR else 'installer'

    @property
    def installer_name(self) -> str:
        return f"forge-{self.short}-{self.file_type}.jar"

    def installer_urls(self, maven_url: str) -> List[str]:
        """Candidate installer URLs, most likely first."""
        flipped = 'installer' if self.file_type == 'universal' else 'universal'
        return [
            f"{maven_url}/{spelling}/forge-{spelling}-{file_type}.jar"
            for file_type in (self.file_type, flipped)
            for spelling in (self.short, self.normalized)
        ]


def forge_library_path(library: LoaderLibrary) -> str:
    """Path of a Forge library relative to the libraries directory."""
    artifact = library.downloads.artifact if library.downloads else None
    if artifact is not None and artifact.path:
        return artifact.path
    name, _, extension = library.name.partition('@')
    return maven_path(name, extension or 'jar')


def forge_library_url(library: LoaderLibrary, path: str, default_base: str) -> str:
    artifact = library.downloads.artifact if library.downloads else None
    if artifact is not None and artifact.url:
        return artifact.url
    base = library.url or default_base
    if not base.endswith('/'):
        base += '/'
    return base + path


def is_builtin_forge(library: LoaderLibrary) -> bool:
    parts = library.name.split(':')
    return len(parts) >= 2 and parts[0] == 'net.minecraftforge' and parts[1] == 'forge'


async def run_command(ctx: InstallContext, command: List[str], cwd: pathlib.Path) -> subprocess.CompletedProcess:
    """Runs an external tool on the blocking pool, raising ``SubprocessError`` on a nonzero exit."""
    log.info(f"Running: {' '.join(command)}")
    kwargs = {}
    if os.name == 'nt':
        kwargs['creationflags'] = subprocess.CREATE_NO_WINDOW
    call = functools.partial(
        subprocess.run, command, cwd=cwd, capture_output=True,
        encoding='utf-8', errors='replace', **kwargs
    )
    try:
        result = await ctx.blocking.run(call)
    except OSError as e:
        log.error(f"Could not start {command[0]}: {e}")
        raise IoError(command[0], e) from e
    if result.returncode != 0:
        log.error(f"{pathlib.Path(command[0]).name} exited with code {result.returncode}")
        raise SubprocessError(command, result.returncode, result.stdout, result.stderr)
    return result


class ForgeInstaller:
    """Installs Forge into an existing instance.

    Phases run strictly in order and report ``LoaderProgress`` events:
    version lookup, installer download, installer run, library downloads.
    """

    def __init__(self, ctx: InstallContext, java: Optional[JavaRuntimeProvisioner] = None):
        self.ctx = ctx
        self.java = java or JavaRuntimeProvisioner(ctx)

    async def resolve_version(self, game_version: str) -> ForgeVersion:
        raw = await self.ctx.http.get_json(self.ctx.config.forge_promotions_url)
        index = parse_model(LoaderVersionIndex, raw, 'Forge version index')
        forge_version = index.version_for(game_version)
        if forge_version is None:
            raise LoaderVersionNotFound(LoaderKind.FORGE.value, game_version)
        return ForgeVersion(game_version, forge_version)

    async def install(self, instance_dir: pathlib.Path, progress: Optional[ProgressChannel] = None) -> ForgeVersion:
        channel = progress or ProgressChannel()
        layout = InstanceLayout(instance_dir)
        log.info("Started installing Forge")
        channel.send(LoaderProgress(LoaderStage.START))

        descriptor = await layout.read_details()
        forge_dir = layout.forge_dir
        await makedirs(forge_dir)
        await makedirs(layout.mods_dir)

        async with InstallLock(instance_dir / LOADER_LOCK, 'Forge installation'):
            channel.send(LoaderProgress(LoaderStage.DOWNLOADING_JSON))
            version = await self.resolve_version(descriptor.id)
            log.info(f"Forge version {version.forge_version} is being installed")

            channel.send(LoaderProgress(LoaderStage.DOWNLOADING_INSTALLER))
            installer_data = await self.download_installer(version, forge_dir)

            classpath = await self.run_installer(version, forge_dir, channel)
            details, details_text = await self.read_installer_details(installer_data)
            library_paths, clean_classpath = await self.install_libraries(version, details, forge_dir, channel)
            classpath.extend(f"{FORGE_DIRNAME}/libraries/{path}" for path in library_paths)

            await write_atomic(forge_dir / FORGE_CLASSPATH_FILENAME, ''.join(f"{entry}{os.pathsep}" for entry in classpath))
            await write_atomic(forge_dir / FORGE_CLEAN_CLASSPATH_FILENAME, ''.join(f"{key}\n" for key in clean_classpath))
            await write_atomic(forge_dir / 'details.json', details_text)
            await layout.set_mod_type(LoaderKind.FORGE.value)

        channel.send(LoaderProgress(LoaderStage.DONE))
        log.info("Finished installing Forge")
        return version

    async def download_installer(self, version: ForgeVersion, forge_dir: pathlib.Path) -> bytes:
        log.info("Downloading Forge installer")
        url, data = await self.ctx.http.get_first_available(version.installer_urls(self.ctx.config.forge_maven_url))
        log.info(f"Downloaded Forge installer from {url}")
        await write_atomic(forge_dir / version.installer_name, data)
        return data

    async def run_installer(self, version: ForgeVersion, forge_dir: pathlib.Path,
                            channel: ProgressChannel) -> List[str]:
        """Runs the installer where the Forge version needs it.

        Returns the classpath entries (relative to the instance directory) it contributes.
        """
        await makedirs(forge_dir / 'libraries')
        if version.major < FORGE_RUN_INSTALLER_MAJOR:
            return [f"{FORGE_DIRNAME}/{version.installer_name}"]

        await self.compile_and_run_driver(version.installer_name, FORGE_INSTALLER_SOURCE, forge_dir, channel)

        if version.major < FORGE_BUNDLED_JAR_MAJOR:
            return [f"{FORGE_DIRNAME}/libraries/net/minecraftforge/forge/{version.short}/forge-{version.short}.jar"]
        return []

    async def compile_and_run_driver(self, installer_name: str, source: str, forge_dir: pathlib.Path,
                                     channel: ProgressChannel) -> None:
        """Compiles the headless driver against ``installer_name`` and runs it in ``forge_dir``."""
        javac = await self.java.get_binary(INSTALLER_JAVA_MAJOR, 'javac')
        java = await self.java.get_binary(INSTALLER_JAVA_MAJOR, 'java')
        await write_atomic(forge_dir / DRIVER_SOURCE_NAME, source)
        for stub in PROFILE_STUBS:
            await write_atomic(forge_dir / stub, '{}')

        channel.send(LoaderProgress(LoaderStage.RUNNING_INSTALLER))
        log.info("Compiling installer driver")
        await run_command(self.ctx, [str(javac), '-cp', installer_name, DRIVER_SOURCE_NAME, '-d', '.'], forge_dir)
        log.info("Running installer (this might take a while)")
        await run_command(self.ctx, [str(java), '-cp', f"{installer_name}{os.pathsep}.", 'ForgeInstaller'], forge_dir)

    async def read_installer_details(self, installer_data: bytes) -> Tuple[LoaderDetails, str]:
        """Library list from ``version.json``, or from a legacy ``install_profile.json``."""
        raw = await self.ctx.blocking.run(archive.read_zip_member, installer_data, 'version.json')
        if raw is not None:
            text = decode_text(raw, 'Forge version.json')
            return parse_model(LoaderDetails, decode_json(text, 'Forge version.json'), 'Forge version.json'), text

        raw = await self.ctx.blocking.run(archive.read_zip_member, installer_data, 'install_profile.json')
        if raw is not None:
            text = decode_text(raw, 'Forge install_profile.json')
            profile = parse_model(InstallProfile, decode_json(text, 'Forge install_profile.json'), 'Forge install_profile.json')
            return profile.version_info, text

        raise SchemaError('Forge installer', "contains neither version.json nor install_profile.json")

    async def install_libraries(self, version: ForgeVersion, details: LoaderDetails, forge_dir: pathlib.Path,
                                channel: ProgressChannel) -> Tuple[List[str], List[str]]:
        """Downloads the client libraries; returns their paths and their dedup keys."""
        libraries_dir = forge_dir / 'libraries'
        libraries = [library for library in details.libraries if library.clientreq is not False]
        paths: List[str] = []
        clean_classpath: List[str] = []

        for i, library in enumerate(libraries, 1):
            key = dedup_key(library.name) or ':'.join(library.name.split(':')[:2])
            clean_classpath.append(key)
            channel.send(LoaderProgress(LoaderStage.DOWNLOADING_LIBRARY, i, len(libraries)))
            path = await self.install_library(version, library, libraries_dir, i, len(libraries))
            if path is not None:
                paths.append(path)
        return paths, clean_classpath

    async def install_library(self, version: ForgeVersion, library: LoaderLibrary, libraries_dir: pathlib.Path,
                              num: int = 0, total: int = 0) -> Optional[str]:
        """Fetches one library; returns its relative path, or None when it is left off the classpath."""
        path = forge_library_path(library)

        if is_builtin_forge(library):
            log.info("Built in forge library, skipping...")
            return path if version.major > FORGE_EXPLICIT_ARTIFACT_MAJOR else None

        dest = archive.safe_join(libraries_dir, path)
        if await file_exists(dest):
            log.info(f"Skipping library ({num}/{total}): {library.name} (already exists)")
            return path

        log.info(f"Downloading library ({num}/{total}): {library.name}")
        url = forge_library_url(library, path, self.ctx.config.libraries_url)
        artifact = library.downloads.artifact if library.downloads else None
        try:
            await self.ctx.http.download_file(url, dest, artifact.sha1 if artifact else None)
        except NetworkError as e:
            log.warning(f"Could not download {library.name} ({e}), trying the pack200 archive")
            if not await self.install_pack200(url, dest):
                return None
        return path

    async def install_pack200(self, url: str, dest: pathlib.Path) -> bool:
        """Rebuilds ``dest`` from ``<url>.pack.xz``. Returns False when no such archive exists."""
        pack_url = f"{url}.pack.xz"
        try:
            data = await self.ctx.http.get_bytes(pack_url)
        except NetworkError as e:
            if e.is_not_found:
                log.error(f"Error 404 not found: {pack_url}. Skipping...")
                return False
            raise

        unpack200 = await self.java.get_binary(UNPACK200_JAVA_MAJOR, 'unpack200')
        with tempfile.TemporaryDirectory(prefix='mcinstall-pack200-') as tmp:
            tmp_dir = pathlib.Path(tmp)
            # Despite the extension these archives are zip files
            extracted = await self.ctx.blocking.run(archive.extract_zip, data, tmp_dir / 'extracted')
            packs = [p for p in extracted if p.suffix == '.pack'] or extracted
            if not packs:
                raise ExtractionError(pack_url, "archive holds no .pack file")

            cropped = archive.crop_pack200_signature(await read_bytes(packs[0]))
            cropped_path = tmp_dir / f"{dest.name}.pack"
            await write_atomic(cropped_path, cropped)
            await makedirs(dest.parent)
            await run_command(self.ctx, [str(unpack200), str(cropped_path), str(dest)], tmp_dir)
        log.info(f"Unpacked {dest.name} from pack200")
        return True


def neoforge_version_prefix(game_version: str) -> str:
    """``1.21.1`` -> ``21.1``; ``1.21`` -> ``21.0``."""
    prefix = game_version[2:]
    if '.' not in prefix:
        prefix += '.0'
    return prefix


def parse_release_time(value: str) -> datetime.datetime:
    try:
        parsed = datetime.datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise SchemaError('releaseTime', f"not an ISO 8601 timestamp: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


class NeoForgeInstaller(ForgeInstaller):
    """Installs NeoForge (Minecraft 1.20.2 and newer) into an existing instance.

    Uses the same ``forge`` directory, driver and classpath files as Forge.
    """

    async def resolve_neoforge_version(self, descriptor: VersionDescriptor) -> str:
        if not descriptor.release_time or parse_release_time(descriptor.release_time) < NEOFORGE_MIN_RELEASE:
            raise LoaderVersionNotFound(LoaderKind.NEOFORGE.value, descriptor.id)

        raw = await self.ctx.http.get_json(self.ctx.config.neoforge_versions_url)
        versions = parse_model(NeoForgeVersionList, raw, 'NeoForge version list').versions
        prefix = neoforge_version_prefix(descriptor.id)
        # "21.1" must not pick up "21.10.x"
        matching = [v for v in versions if v == prefix or v.startswith(prefix + '.')]
        if not matching:
            raise LoaderVersionNotFound(LoaderKind.NEOFORGE.value, descriptor.id)
        return matching[-1]

    async def install(self, instance_dir: pathlib.Path, progress: Optional[ProgressChannel] = None) -> str:
        channel = progress or ProgressChannel()
        layout = InstanceLayout(instance_dir)
        log.info("Started installing NeoForge")
        channel.send(LoaderProgress(LoaderStage.START))

        descriptor = await layout.read_details()
        forge_dir = layout.forge_dir
        await makedirs(forge_dir / 'libraries')
        await makedirs(layout.mods_dir)

        async with InstallLock(instance_dir / LOADER_LOCK, 'NeoForge installation'):
            channel.send(LoaderProgress(LoaderStage.DOWNLOADING_JSON))
            version = await self.resolve_neoforge_version(descriptor)
            log.info(f"NeoForge version {version} is being installed")

            channel.send(LoaderProgress(LoaderStage.DOWNLOADING_INSTALLER))
            url = f"{self.ctx.config.neoforge_maven_url}/{version}/neoforge-{version}-installer.jar"
            installer_data = await self.ctx.http.get_bytes(url)
            await write_atomic(forge_dir / NEOFORGE_INSTALLER_NAME, installer_data)

            await self.compile_and_run_driver(NEOFORGE_INSTALLER_NAME, NEOFORGE_INSTALLER_SOURCE, forge_dir, channel)
            for leftover in (DRIVER_SOURCE_NAME, 'ForgeInstaller.class') + PROFILE_STUBS:
                await remove_file(forge_dir / leftover)

            raw = await self.ctx.blocking.run(archive.read_zip_member, installer_data, 'version.json')
            if raw is None:
                raise SchemaError('NeoForge installer', "contains no version.json")
            details_text = decode_text(raw, 'NeoForge version.json')
            details = parse_model(LoaderDetails, decode_json(details_text, 'NeoForge version.json'),
                                  'NeoForge version.json')

            classpath, clean_classpath = await self.install_neoforge_libraries(details, forge_dir, channel)

            await write_atomic(forge_dir / FORGE_CLASSPATH_FILENAME, ''.join(f"{entry}{os.pathsep}" for entry in classpath))
            await write_atomic(forge_dir / FORGE_CLEAN_CLASSPATH_FILENAME, ''.join(f"{key}\n" for key in clean_classpath))
            await write_atomic(forge_dir / 'details.json', details_text)
            await layout.set_mod_type(LoaderKind.NEOFORGE.value)

        channel.send(LoaderProgress(LoaderStage.DONE))
        log.info("Finished installing NeoForge")
        return version

    async def install_neoforge_libraries(self, details: LoaderDetails, forge_dir: pathlib.Path,
                                         channel: ProgressChannel) -> Tuple[List[str], List[str]]:
        """Downloads the client libraries one by one; no pack200 fallback."""
        libraries_dir = forge_dir / 'libraries'
        libraries = [library for library in details.libraries if library.clientreq is not False]
        classpath: List[str] = []
        clean_classpath: List[str] = []

        for i, library in enumerate(libraries, 1):
            clean_classpath.append(dedup_key(library.name) or ':'.join(library.name.split(':')[:2]))
            channel.send(LoaderProgress(LoaderStage.DOWNLOADING_LIBRARY, i, len(libraries)))
            path = forge_library_path(library)
            classpath.append(f"{FORGE_DIRNAME}/libraries/{path}")

            dest = archive.safe_join(libraries_dir, path)
            if await file_exists(dest):
                log.info(f"Skipping library ({i}/{len(libraries)}): {library.name} (already exists)")
                continue
            log.info(f"Downloading library ({i}/{len(libraries)}): {library.name}")
            artifact = library.downloads.artifact if library.downloads else None
            url = forge_library_url(library, path, self.ctx.config.libraries_url)
            await self.ctx.http.download_file(url, dest, artifact.sha1 if artifact else None)
        return classpath, clean_classpath


# --- Fabric ---
class FabricInstaller:
    """Installs a Fabric-style loader (Fabric or Quilt) from its meta service.

    Both services share the same endpoints; only the base URL and the default
    maven for libraries without one differ.
    """

    def __init__(self, ctx: InstallContext, kind: LoaderKind = LoaderKind.FABRIC):
        if kind not in (LoaderKind.FABRIC, LoaderKind.QUILT):
            raise ValueError(f"{kind.value} is not installed through a Fabric meta service")
        self.ctx = ctx
        self.kind = kind

    @property
    def meta_url(self) -> str:
        if self.kind is LoaderKind.QUILT:
            return self.ctx.config.quilt_meta_url
        return self.ctx.config.fabric_meta_url

    @property
    def default_maven_url(self) -> str:
        return QUILT_MAVEN_URL if self.kind is LoaderKind.QUILT else FABRIC_MAVEN_URL

    async def latest_loader_version(self, game_version: str) -> str:
        """Newest stable loader for ``game_version`` (newest of any kind if none is stable)."""
        raw = await self.ctx.http.get_json(f"{self.meta_url}/versions/loader/{game_version}")
        if not isinstance(raw, list):
            raise SchemaError(f'{self.kind.value} loader list', "expected a JSON array")
        versions = [parse_model(FabricLoaderVersion, entry, f'{self.kind.value} loader version') for entry in raw]
        if not versions:
            raise LoaderVersionNotFound(self.kind.value, game_version)
        stable = [v for v in versions if v.loader.stable]
        return (stable or versions)[0].loader.version

    async def install(self, instance_dir: pathlib.Path, loader_version: Optional[str] = None,
                      progress: Optional[ProgressChannel] = None) -> str:
        name = self.kind.value
        layout = InstanceLayout(instance_dir)
        descriptor = await layout.read_details()
        game_version = descriptor.id
        log.info(f"Started installing {name}")

        async with InstallLock(instance_dir / LOADER_LOCK, f'{name} installation'):
            loader_version = loader_version or await self.latest_loader_version(game_version)
            log.info(f"{name} loader {loader_version} is being installed")
            url = f"{self.meta_url}/versions/loader/{game_version}/{loader_version}/profile/json"
            text = await self.ctx.http.get_text(url)
            details = parse_model(FabricDetails, decode_json(text, f'{name} profile'), f'{name} profile')

            await makedirs(layout.mods_dir)
            with ProgressTracker(len(details.libraries), f'{name} libraries', progress, self.ctx.show_progress) as tracker:
                await self.ctx.scheduler.run_all(
                    self._install_library(library, layout.libraries_dir, tracker) for library in details.libraries
                )

            # Quilt profiles have the same shape, so both live in fabric.json
            await write_atomic(layout.fabric_json_path, text)
            await layout.set_mod_type(name)

        log.info(f"Finished installing {name}")
        return loader_version

    async def _install_library(self, library: FabricLibrary, libraries_dir: pathlib.Path,
                               tracker: ProgressTracker) -> None:
        path = maven_path(library.name)
        base = library.url or self.default_maven_url
        if not base.endswith('/'):
            base += '/'
        await self.ctx.http.download_file(base + path, archive.safe_join(libraries_dir, path), library.sha1)
        await tracker.advance(library.name)
