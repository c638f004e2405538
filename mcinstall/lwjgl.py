"""LWJGL substitution for 64-bit ARM Linux.

Mojang's descriptors ship no linux-arm64 natives for LWJGL 3. On that platform
the LWJGL entries of known versions are replaced by builds from Maven Central
that include them, and x86_64 natives are removed after extraction.
"""
import logging
import pathlib
from typing import Dict, List, Optional, Set, Tuple

from .archive import remove_path
from .models import LibraryEntry, parse_model

log = logging.getLogger(__name__)

MAVEN_REPO_URL = 'https://repo1.maven.org/maven2'

LWJGL_GROUP = 'org.lwjgl'

# Version shipped by the descriptor -> first Maven release carrying natives-linux-arm64
ARM64_LWJGL_VERSIONS: Dict[str, str] = {
    '3.1.2': '3.3.1',
    '3.1.6': '3.3.1',
    '3.2.1': '3.3.1',
    '3.2.2': '3.3.1',
    '3.2.3': '3.3.1',
    '3.3.0': '3.3.1',
    '3.3.1': '3.3.1',
    '3.3.2': '3.3.2',
    '3.3.3': '3.3.3',
}

ARM64_LINUX_CLASSIFIER = 'natives-linux-arm64'

# Native directories (inside LWJGL 3.3+ native jars) that must not survive on ARM64 Linux
X86_64_NATIVE_DIRS = (
    pathlib.Path('linux') / 'x64',
    pathlib.Path('linux') / 'x86_64',
)


def split_coordinate(name: str) -> Tuple[str, str, str, Optional[str]]:
    parts = name.split(':')
    classifier = parts[3] if len(parts) > 3 else None
    return parts[0], parts[1], parts[2], classifier


def maven_library(artifact: str, version: str, classifier: Optional[str] = None,
                  rule_target: Optional[str] = None) -> LibraryEntry:
    """A Maven Central LWJGL library entry, optionally restricted to one OS target."""
    suffix = f"-{classifier}" if classifier else ''
    path = f"org/lwjgl/{artifact}/{version}/{artifact}-{version}{suffix}.jar"
    name = f"{LWJGL_GROUP}:{artifact}:{version}" + (f":{classifier}" if classifier else '')
    data = {
        'name': name,
        'downloads': {'artifact': {'path': path, 'url': f"{MAVEN_REPO_URL}/{path}"}},
    }
    if rule_target:
        data['rules'] = [{'action': 'allow', 'os': {'name': rule_target}}]
    return parse_model(LibraryEntry, data, f"library {name}")


def splice_arm64_lwjgl(libraries: List[LibraryEntry], rule_target: str = 'linux-arm64') -> List[LibraryEntry]:
    """Replaces LWJGL entries of known versions with ARM64-capable Maven builds.

    Each replaced module contributes one main jar plus its ``natives-linux-arm64``
    jar, at the position of the first entry it replaces. Other libraries keep
    their order.
    """
    spliced: List[LibraryEntry] = []
    seen: Set[Tuple[str, str]] = set()
    for library in libraries:
        if not library.name or not library.name.startswith(f"{LWJGL_GROUP}:"):
            spliced.append(library)
            continue
        _, artifact, version, _ = split_coordinate(library.name)
        replacement = ARM64_LWJGL_VERSIONS.get(version)
        if replacement is None:
            spliced.append(library)
            continue
        if (artifact, replacement) in seen:
            continue
        seen.add((artifact, replacement))
        log.info(f"Replacing {library.name} with LWJGL {replacement} for ARM64 Linux")
        spliced.append(maven_library(artifact, replacement))
        spliced.append(maven_library(artifact, replacement, ARM64_LINUX_CLASSIFIER, rule_target))
    return spliced


def remove_x86_64_natives(natives_dir: pathlib.Path) -> List[pathlib.Path]:
    """Deletes x86_64 native directories left in ``natives_dir``; returns what was removed."""
    removed = []
    for relative in X86_64_NATIVE_DIRS:
        path = natives_dir / relative
        if path.exists():
            log.info(f"Removing x86_64 natives at {path}")
            remove_path(path)
            removed.append(path)
    return removed
