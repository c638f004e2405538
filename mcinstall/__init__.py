"""Provisioning of runnable Minecraft instances."""
from .classpath import ClasspathBuilder, assemble_classpath
from .config import InstallerConfig, load_config
from .context import InstallContext
from .errors import (
    ExtractionError,
    InstallError,
    IoError,
    NetworkError,
    NotFoundFallbackExhausted,
    PlatformUnsupported,
    SchemaError,
    SubprocessError,
    VersionNotFound,
)
from .installer import GameInstaller, InstallProgress, InstallResult
from .loader import ForgeInstaller, FabricInstaller, LoaderKind
from .platform_info import Platform
from .scheduler import JobScheduler

__version__ = '0.1.0'
