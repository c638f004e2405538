"""Library rule evaluation and installation."""
import logging
import pathlib
from typing import List, Optional, Sequence

from . import lwjgl
from .context import InstallContext
from .files import makedirs
from .models import LibraryEntry, Rule, VersionDescriptor
from .natives import NativeExtractor
from .platform_info import Platform
from .progress import ProgressChannel, ProgressTracker

log = logging.getLogger(__name__)


# --- Rule Processing ---

def evaluate_rules(rules: Optional[Sequence[Rule]], platform: Platform) -> bool:
    """
    Evaluates a library's ``rules`` list for ``platform``.

    No rules means allowed. Otherwise the result starts as disallowed and each
    applicable rule sets it from its action, in order. A rule without an
    ``os`` predicate always applies. A matching ``disallow`` ends the
    evaluation; later rules cannot re-enable the library.
    """
    if not rules:
        return True

    allowed = False
    for rule in rules:
        if rule.os is not None and not platform.rule_matches(rule.os.name, rule.os.arch):
            continue
        allowed = rule.action == 'allow'
        if rule.os is not None and not allowed:
            break
    return allowed


def library_is_allowed(library: LibraryEntry, platform: Platform) -> bool:
    """Whether ``library`` is installed on ``platform``.

    Native classifiers for this OS always win over the rules.
    """
    allowed = evaluate_rules(library.rules, platform)
    if library.classifiers and platform.supports_os(library.classifiers.keys()):
        allowed = True
    return allowed


def allowed_libraries(libraries: Sequence[LibraryEntry], platform: Platform) -> List[LibraryEntry]:
    return [lib for lib in libraries if library_is_allowed(lib, platform)]


class LibraryResolver:
    """Downloads the libraries of a version and extracts their natives."""

    def __init__(self, ctx: InstallContext):
        self.ctx = ctx

    def prepare_libraries(self, descriptor: VersionDescriptor) -> List[LibraryEntry]:
        """The descriptor's libraries, with LWJGL swapped for ARM64 builds on ARM64 Linux."""
        libraries = list(descriptor.libraries)
        if self.ctx.platform.is_arm64_linux:
            libraries = lwjgl.splice_arm64_lwjgl(libraries, self.ctx.platform.rule_target)
        return libraries

    async def install(
        self,
        descriptor: VersionDescriptor,
        instance_dir: pathlib.Path,
        progress: Optional[ProgressChannel] = None,
    ) -> List[LibraryEntry]:
        """Installs every allowed library into ``<instance>/libraries``; returns those installed.

        The first failure aborts the batch once the other downloads have drained.
        """
        libraries_dir = instance_dir / 'libraries'
        await makedirs(libraries_dir)
        await makedirs(libraries_dir / 'natives')

        libraries = self.prepare_libraries(descriptor)
        extractor = NativeExtractor(self.ctx, libraries_dir, self.is_allowed)
        log.info(f"Processing {len(libraries)} libraries for {descriptor.id}...")

        with ProgressTracker(len(libraries), 'Libraries', progress, self.ctx.show_progress) as tracker:
            results = await self.ctx.scheduler.run_all(
                self._install_library(library, extractor, tracker) for library in libraries
            )

        if self.ctx.platform.is_arm64_linux:
            await self.ctx.blocking.run(lwjgl.remove_x86_64_natives, extractor.natives_dir)

        installed = [library for library, done in zip(libraries, results) if done]
        log.info(f"Library download check complete. {len(installed)} libraries installed.")
        return installed

    def is_allowed(self, library: LibraryEntry) -> bool:
        return library_is_allowed(library, self.ctx.platform)

    async def _install_library(self, library: LibraryEntry, extractor: NativeExtractor,
                               tracker: ProgressTracker) -> bool:
        if not self.is_allowed(library):
            log.debug(f"Skipping library due to rules: {library.name}")
            await tracker.advance()
            return False

        artifact = library.artifact
        if artifact is not None and artifact.url:
            jar_path = extractor.artifact_path(artifact, library.name)
            log.debug(f"Downloading {library.name}: {artifact.url}")
            await self.ctx.http.download_file(artifact.url, jar_path, artifact.sha1)
            await extractor.extract_natives_field(library, jar_path)
            await extractor.extract_name_natives(library, jar_path)
        elif artifact is not None:
            log.warning(f"Library {library.name} has an artifact without a URL, skipping its jar.")

        if library.classifiers:
            await extractor.install_classifiers(library)

        await tracker.advance(library.name or '')
        return True
