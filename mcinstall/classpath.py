"""Classpath assembly.

Order matters: loader entries go first and claim their ``group:artifact``
keys, so a vanilla library with the same key (usually an older version) is
left out. The client jar always comes last.
"""
import logging
import os
import pathlib
from typing import Iterable, List, Optional, Set, Union

from .files import file_exists, read_text
from .instance import FORGE_CLASSPATH_FILENAME, FORGE_CLEAN_CLASSPATH_FILENAME, InstanceLayout
from .libraries import library_is_allowed
from .loader import LoaderKind
from .lwjgl import splice_arm64_lwjgl
from .models import FabricDetails, LibraryEntry, dedup_key, maven_path, parse_model
from .net import decode_json
from .platform_info import Platform

log = logging.getLogger(__name__)

LONG_PATH_PREFIX = '\\\\?\\'
# mod_type values whose libraries come from forge/classpath.txt or fabric.json
FORGE_STYLE_LOADERS = (LoaderKind.FORGE.value, LoaderKind.NEOFORGE.value)
FABRIC_STYLE_LOADERS = (LoaderKind.FABRIC.value, LoaderKind.QUILT.value)


def strip_long_path_prefix(path: Union[str, pathlib.Path]) -> str:
    """Removes the Windows ``\\\\?\\`` extended-length prefix."""
    text = str(path)
    if text.startswith(LONG_PATH_PREFIX):
        return text[len(LONG_PATH_PREFIX):]
    return text


class ClasspathBuilder:
    """Ordered, deduplicating list of classpath entries."""

    def __init__(self, separator: str = os.pathsep):
        self.separator = separator
        self.entries: List[str] = []
        self.claimed: Set[str] = set()

    def claim(self, key: str) -> None:
        self.claimed.add(key)

    def is_claimed(self, name: Optional[str]) -> bool:
        key = dedup_key(name) if name else None
        return key is not None and key in self.claimed

    def add_raw(self, path: Union[str, pathlib.Path]) -> None:
        """Appends a path without any dedup check."""
        entry = strip_long_path_prefix(path)
        if entry and entry not in self.entries:
            self.entries.append(entry)

    def add_library(self, name: Optional[str], path: Union[str, pathlib.Path]) -> bool:
        """Appends ``path`` unless its library's key is already taken; claims the key.

        Only three-part coordinates have a key; others are always added.
        Returns whether the path was added.
        """
        if self.is_claimed(name):
            log.debug(f"Skipping {name}: already provided by a loader")
            return False
        key = dedup_key(name) if name else None
        if key is not None:
            self.claim(key)
        self.add_raw(path)
        return True

    def build(self, jar: Optional[Union[str, pathlib.Path]] = None) -> str:
        entries = list(self.entries)
        if jar is not None:
            entries.append(strip_long_path_prefix(jar))
        return self.separator.join(entries)


def split_classpath(text: str, separator: str = os.pathsep) -> List[str]:
    return [entry.strip() for entry in text.split(separator) if entry.strip()]


async def _read_lines(path: pathlib.Path) -> List[str]:
    if not await file_exists(path):
        return []
    return [line.strip() for line in (await read_text(path)).splitlines() if line.strip()]


async def add_forge_entries(builder: ClasspathBuilder, layout: InstanceLayout) -> int:
    """Adds ``forge/classpath.txt`` and claims ``forge/clean_classpath.txt``. Returns entries added."""
    classpath_path = layout.forge_dir / FORGE_CLASSPATH_FILENAME
    if not await file_exists(classpath_path):
        return 0
    count = 0
    for entry in split_classpath(await read_text(classpath_path)):
        path = pathlib.Path(entry)
        builder.add_raw(path if path.is_absolute() else layout.root / path)
        count += 1
    for key in await _read_lines(layout.forge_dir / FORGE_CLEAN_CLASSPATH_FILENAME):
        builder.claim(key)
    return count


async def add_fabric_entries(builder: ClasspathBuilder, layout: InstanceLayout) -> int:
    if not await file_exists(layout.fabric_json_path):
        return 0
    text = await read_text(layout.fabric_json_path)
    details = parse_model(FabricDetails, decode_json(text, 'fabric.json'), 'fabric.json')
    added = 0
    for library in details.libraries:
        if builder.add_library(library.name, layout.libraries_dir / maven_path(library.name)):
            added += 1
    return added


def add_vanilla_entries(builder: ClasspathBuilder, layout: InstanceLayout, libraries: Iterable[LibraryEntry],
                        platform: Platform) -> int:
    """Adds allowed vanilla libraries whose jar is on disk and whose key is unclaimed."""
    added = 0
    for library in libraries:
        artifact = library.artifact
        if artifact is None or not library_is_allowed(library, platform):
            continue
        relative = artifact.path or (maven_path(library.name) if library.name else None)
        if relative is None:
            continue
        path = layout.libraries_dir / relative
        if not path.is_file():
            continue
        if builder.add_library(library.name, path):
            added += 1
    return added


async def assemble_classpath(instance_dir: pathlib.Path, platform: Platform,
                             separator: str = os.pathsep) -> str:
    """Full launch classpath of an installed instance."""
    layout = InstanceLayout(instance_dir)
    descriptor = await layout.read_details()
    config = await layout.read_config()
    builder = ClasspathBuilder(separator)

    if config.mod_type in FORGE_STYLE_LOADERS:
        log.info(f"Added {await add_forge_entries(builder, layout)} {config.mod_type} classpath entries")
    if config.mod_type in FABRIC_STYLE_LOADERS:
        log.info(f"Added {await add_fabric_entries(builder, layout)} {config.mod_type} libraries")

    libraries = descriptor.libraries
    if platform.is_arm64_linux:
        libraries = splice_arm64_lwjgl(list(libraries), platform.rule_target)
    count = add_vanilla_entries(builder, layout, libraries, platform)
    log.info(f"Added {count} vanilla libraries to the classpath")

    return builder.build(layout.client_jar(descriptor.id).resolve())
