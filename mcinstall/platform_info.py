"""Operating system / architecture detection and library rule matching."""
import logging
import platform
from typing import Iterable, Optional

log = logging.getLogger(__name__)

ARCH_X64 = 'x64'
ARCH_X86 = 'x86'
ARCH_ARM64 = 'arm64'
ARCH_ARM32 = 'arm32'


def get_os_name() -> str:
    """Gets the current OS name ('windows', 'osx', 'linux', 'freebsd')."""
    system = platform.system()
    if system == 'Windows': return 'windows'
    elif system == 'Darwin': return 'osx'
    elif system == 'Linux': return 'linux'
    elif system == 'FreeBSD': return 'freebsd'
    else: raise OSError(f"Unsupported platform: {system}")


def get_arch_name() -> str:
    """Gets the current architecture name ('x64', 'x86', 'arm64', 'arm32')."""
    machine = platform.machine().lower()
    if machine in ['amd64', 'x86_64']: return ARCH_X64
    elif machine in ['i386', 'i686', 'x86']: return ARCH_X86
    elif machine in ['arm64', 'aarch64']: return ARCH_ARM64
    elif machine.startswith('arm') and '64' not in machine: return ARCH_ARM32
    else:
        log.warning(f"Unsupported architecture: {platform.machine()}. Falling back to 'x64'. This might cause issues.")
        return ARCH_X64


class Platform:
    """The OS and architecture libraries and runtimes are resolved for.

    Tests build one directly (``Platform('osx', 'x64')``) instead of detecting it.
    """

    def __init__(self, os_name: str, arch: str):
        self.os_name = os_name
        self.arch = arch

    @classmethod
    def detect(cls) -> 'Platform':
        return cls(get_os_name(), get_arch_name())

    def __repr__(self) -> str:
        return f"Platform({self.os_name!r}, {self.arch!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Platform) and (self.os_name, self.arch) == (other.os_name, other.arch)

    def __hash__(self) -> int:
        return hash((self.os_name, self.arch))

    # --- Names ---
    @property
    def os_names(self) -> tuple:
        """Names this OS goes by in classifier keys."""
        if self.os_name == 'osx':
            return ('macos', 'osx')
        return (self.os_name,)

    @property
    def is_x64(self) -> bool:
        return self.arch == ARCH_X64

    @property
    def is_windows(self) -> bool:
        return self.os_name == 'windows'

    @property
    def is_macos(self) -> bool:
        return self.os_name == 'osx'

    @property
    def is_arm64_linux(self) -> bool:
        return self.os_name == 'linux' and self.arch == ARCH_ARM64

    @property
    def rule_target(self) -> str:
        """OS name as rules and ``natives`` maps spell it: ``linux`` on x64, ``linux-arm64`` elsewhere."""
        if self.is_x64:
            return self.os_name
        return f"{self.os_name}-{self.arch}"

    @property
    def arch_bits(self) -> str:
        """Replacement for ``${arch}`` in native classifier names."""
        return '32' if self.arch in (ARCH_X86, ARCH_ARM32) else '64'

    # --- Matching ---
    def rule_matches(self, os_name: Optional[str], os_arch: Optional[str] = None) -> bool:
        """Whether a rule's ``os`` predicate applies to this platform.

        The name may be the bare OS (``linux``) or the OS-arch target (``linux-arm64``).
        """
        if os_name is not None and os_name not in (self.rule_target, *self.os_names):
            return False
        if os_arch is not None:
            aliases = {self.arch, 'x86_64', 'amd64'} if self.is_x64 else {self.arch}
            if os_arch not in aliases:
                return False
        return True

    def classifier_matches(self, key: str) -> bool:
        """Whether a ``downloads.classifiers`` key is the native jar for this platform."""
        if self.os_name == 'windows' and self.arch == ARCH_X86:
            return key == 'natives-windows-32'
        if self.os_name == 'windows' and self.arch == ARCH_X64:
            return key in ('natives-windows-64', 'natives-windows')
        if self.os_name == 'linux' and self.arch == ARCH_ARM64:
            return key == 'natives-linux-arm64'
        if self.os_name == 'linux' and self.arch == ARCH_ARM32:
            return key == 'natives-linux-arm32'
        if self.os_name == 'osx' and self.arch == ARCH_ARM64:
            return key == 'natives-osx-arm64'
        return any(key == f"natives-{name}" for name in self.os_names)

    def supports_os(self, classifier_keys: Iterable[str]) -> bool:
        """Whether any classifier key names a native jar for this OS at all."""
        return any(
            key.startswith(f"natives-{name}")
            for key in classifier_keys
            for name in self.os_names
        )

    def native_name_compatible(self, text: str) -> bool:
        """Whether a format-B native package (judged by name or URL) fits this architecture."""
        if self.arch == ARCH_ARM32:
            return 'arm32' in text
        if self.arch == ARCH_X86:
            return 'x86' in text and 'x86_64' not in text
        if self.arch == ARCH_ARM64:
            return 'aarch' in text or 'arm64' in text
        return not ('aarch' in text or 'arm' in text or ('x86' in text and 'x86_64' not in text))
