"""Top-level installer: creates instances and adds loaders to them."""
import logging
import pathlib
from typing import List, NamedTuple, Optional

from .assets import AssetInstaller
from .classpath import assemble_classpath
from .context import InstallContext
from .errors import InstallError, InstanceAlreadyExists
from .files import makedirs, write_atomic, write_json
from .instance import InstanceLayout, launcher_profiles
from .java import JavaRuntimeProvisioner
from .libraries import LibraryResolver
from .loader import FabricInstaller, ForgeInstaller, LoaderKind, NeoForgeInstaller
from .locks import find_stale_locks
from .manifest import ManifestResolver, VersionCategory
from .models import InstanceConfig, LibraryEntry, VersionDescriptor
from .progress import ProgressChannel

log = logging.getLogger(__name__)


class InstallProgress(NamedTuple):
    """Separate channels for the phases that run side by side."""
    assets: Optional[ProgressChannel] = None
    libraries: Optional[ProgressChannel] = None
    java: Optional[ProgressChannel] = None
    loader: Optional[ProgressChannel] = None


class InstallResult(NamedTuple):
    instance_dir: pathlib.Path
    descriptor: VersionDescriptor
    assets_downloaded: int
    libraries: List[LibraryEntry]
    java_binary: pathlib.Path


class GameInstaller:
    """Creates a runnable instance: descriptor, client jar, assets, libraries and Java.

    One ``GameInstaller`` shares its manifest cache across every call.
    """

    def __init__(self, ctx: InstallContext):
        self.ctx = ctx
        self.manifest = ManifestResolver(ctx)
        self.assets = AssetInstaller(ctx)
        self.libraries = LibraryResolver(ctx)
        self.java = JavaRuntimeProvisioner(ctx)

    def instance_dir(self, name: str) -> pathlib.Path:
        return self.ctx.config.instance_dir(name)

    async def create_instance(
        self,
        name: str,
        version: str,
        loader: Optional[LoaderKind] = None,
        category: Optional[VersionCategory] = None,
        progress: Optional[InstallProgress] = None,
    ) -> InstallResult:
        progress = progress or InstallProgress()
        instance_dir = self.instance_dir(name)
        if instance_dir.exists():
            raise InstanceAlreadyExists(instance_dir)

        log.info(f"Creating instance {name} ({version})")
        descriptor, raw_text = await self.manifest.fetch_descriptor(version, category)
        layout = InstanceLayout(instance_dir)
        await makedirs(layout.minecraft_dir)

        await write_atomic(layout.details_path, raw_text)
        await layout.write_config(InstanceConfig(ram_in_mb=self.ctx.config.ram_in_mb))
        await write_json(layout.launcher_profiles_path, launcher_profiles(descriptor.id))

        await self.download_client_jar(descriptor, layout)
        await self.download_logging_config(descriptor, layout)

        assets_downloaded, libraries, java_binary = await self.ctx.scheduler.run_all([
            self.assets.install(descriptor, progress.assets),
            self.libraries.install(descriptor, instance_dir, progress.libraries),
            self.java.get_binary(descriptor.required_java_major, 'java', progress.java),
        ])
        log.info(f"Instance {name} created with {len(libraries)} libraries")

        if loader is not None and loader is not LoaderKind.VANILLA:
            await self.install_loader(name, loader, progress.loader)

        return InstallResult(instance_dir, descriptor, assets_downloaded, libraries, java_binary)

    async def download_client_jar(self, descriptor: VersionDescriptor, layout: InstanceLayout) -> None:
        log.info('Checking client JAR...')
        client = descriptor.client
        await self.ctx.http.download_file(client.url, layout.client_jar(descriptor.id), client.sha1)

    async def download_logging_config(self, descriptor: VersionDescriptor, layout: InstanceLayout) -> None:
        if descriptor.logging is None or descriptor.logging.client is None:
            log.debug(f"{descriptor.id} has no logging configuration")
            return
        logging_file = descriptor.logging.client.file
        dest = layout.root / f"logging-{logging_file.id}"
        await self.ctx.http.download_file(logging_file.url, dest, logging_file.sha1)

    async def install_loader(self, name: str, kind: LoaderKind,
                             progress: Optional[ProgressChannel] = None) -> None:
        instance_dir = self.instance_dir(name)
        if kind is LoaderKind.VANILLA:
            await InstanceLayout(instance_dir).set_mod_type(kind.value)
        elif kind is LoaderKind.FORGE:
            await ForgeInstaller(self.ctx, self.java).install(instance_dir, progress)
        elif kind is LoaderKind.NEOFORGE:
            await NeoForgeInstaller(self.ctx, self.java).install(instance_dir, progress)
        elif kind in (LoaderKind.FABRIC, LoaderKind.QUILT):
            await FabricInstaller(self.ctx, kind).install(instance_dir, progress=progress)
        elif kind is LoaderKind.OPTIFINE:
            raise InstallError("OptiFine needs its installer jar from optifine.net and cannot be installed automatically")
        else:
            raise AssertionError(f"Unhandled loader kind {kind!r}")

    async def stale_locks(self, name: str) -> List[pathlib.Path]:
        """Lock files a crashed install left in the instance or the shared directories."""
        config = self.ctx.config
        locks = await find_stale_locks(self.instance_dir(name), config.assets_dir, config.java_installs_dir)
        for lock in locks:
            log.warning(f"Incomplete installation detected: {lock}")
        return locks

    async def build_classpath(self, name: str) -> str:
        return await assemble_classpath(self.instance_dir(name), self.ctx.platform)

