"""Launcher configuration.

The configuration is a flat JSON object (``launcher_config.json``). Every value
may use the ``:thisdir:`` placeholder, which is replaced by the directory the
config file lives in.
"""
import json
import logging
import pathlib
from typing import Any, Dict, List, Optional, Union

from .replacer import patch_config

log = logging.getLogger(__name__)

# --- Constants and Configuration ---
CONFIG_FILENAME = 'launcher_config.json'

MOJANG_MANIFEST_URL = 'https://launchermeta.mojang.com/mc/game/version_manifest.json'
OMNIARCHIVE_MANIFEST_URL = 'https://meta.omniarchive.uk/v1/manifest.json'
OBJECTS_URL = 'https://resources.download.minecraft.net'
LIBRARIES_URL = 'https://libraries.minecraft.net/'
JAVA_LIST_URL = 'https://launchermeta.mojang.com/v1/products/java-runtime/2ec0cc96c44e5a76b9c8b7c39df7210883d12871/all.json'
FORGE_PROMOTIONS_URL = 'https://files.minecraftforge.net/net/minecraftforge/forge/promotions_slim.json'
FORGE_MAVEN_URL = 'https://files.minecraftforge.net/maven/net/minecraftforge/forge'
FABRIC_META_URL = 'https://meta.fabricmc.net/v2'
QUILT_META_URL = 'https://meta.quiltmc.org/v3'
NEOFORGE_VERSIONS_URL = 'https://maven.neoforged.net/api/maven/versions/releases/net/neoforged/neoforge'
NEOFORGE_MAVEN_URL = 'https://maven.neoforged.net/releases/net/neoforged/neoforge'
MAX_JOBS = 64
DEFAULT_RAM_MB = 2048


class InstallerConfig:
    """Resolved launcher settings. Unknown keys are kept in ``extra``."""

    def __init__(
        self,
        basepath: Union[str, pathlib.Path],
        version: Optional[str] = None,
        instance: Optional[str] = None,
        loader: Optional[str] = None,
        concurrency: int = MAX_JOBS,
        manifest_urls: Optional[List[str]] = None,
        objects_url: str = OBJECTS_URL,
        libraries_url: str = LIBRARIES_URL,
        java_list_url: str = JAVA_LIST_URL,
        forge_promotions_url: str = FORGE_PROMOTIONS_URL,
        forge_maven_url: str = FORGE_MAVEN_URL,
        fabric_meta_url: str = FABRIC_META_URL,
        quilt_meta_url: str = QUILT_META_URL,
        neoforge_versions_url: str = NEOFORGE_VERSIONS_URL,
        neoforge_maven_url: str = NEOFORGE_MAVEN_URL,
        show_progress: bool = True,
        log_level: str = 'INFO',
        timeout: float = 300.0,
        user_agent: str = 'mcinstall',
        ram_in_mb: int = DEFAULT_RAM_MB,
        **extra: Any,
    ):
        self.basepath = pathlib.Path(basepath)
        self.version = version
        self.instance = instance
        self.loader = loader
        self.concurrency = int(concurrency)
        self.manifest_urls = list(manifest_urls) if manifest_urls else [OMNIARCHIVE_MANIFEST_URL, MOJANG_MANIFEST_URL]
        self.objects_url = objects_url.rstrip('/')
        self.libraries_url = libraries_url if libraries_url.endswith('/') else libraries_url + '/'
        self.java_list_url = java_list_url
        self.forge_promotions_url = forge_promotions_url
        self.forge_maven_url = forge_maven_url.rstrip('/')
        self.fabric_meta_url = fabric_meta_url.rstrip('/')
        self.quilt_meta_url = quilt_meta_url.rstrip('/')
        self.neoforge_versions_url = neoforge_versions_url
        self.neoforge_maven_url = neoforge_maven_url.rstrip('/')
        self.show_progress = bool(show_progress)
        self.log_level = log_level
        self.timeout = float(timeout)
        self.user_agent = user_agent
        self.ram_in_mb = int(ram_in_mb)
        self.extra = extra

        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")

    # --- Directories ---
    @property
    def instances_dir(self) -> pathlib.Path:
        return self.basepath / 'instances'

    @property
    def assets_dir(self) -> pathlib.Path:
        return self.basepath / 'assets'

    @property
    def java_installs_dir(self) -> pathlib.Path:
        return self.basepath / 'java_installs'

    def instance_dir(self, name: str) -> pathlib.Path:
        return self.instances_dir / name

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_basepath: pathlib.Path) -> 'InstallerConfig':
        data = dict(data)
        basepath = data.pop('basepath', None) or default_basepath / '.mc_launcher_data'
        return cls(basepath, **data)


def load_config(path: Optional[Union[str, pathlib.Path]] = None) -> InstallerConfig:
    """Loads ``launcher_config.json`` and patches ``:thisdir:`` placeholders.

    A missing file yields the defaults, rooted next to where the file would be.
    """
    config_path = pathlib.Path(path) if path else pathlib.Path.cwd() / CONFIG_FILENAME
    config_dir = config_path.parent.resolve()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            launcher_config_raw = json.load(f)
    except FileNotFoundError:
        log.warning(f"{config_path} not found. Using defaults.")
        return InstallerConfig.from_dict({}, config_dir)
    except json.JSONDecodeError as e:
        log.error(f"Error parsing {config_path}: {e}")
        raise

    if not isinstance(launcher_config_raw, dict):
        raise ValueError(f"{config_path} must contain a JSON object")

    launcher_config = patch_config(launcher_config_raw, str(config_dir))
    log.debug(f"Launcher config: {json.dumps(launcher_config, indent=2)}")
    return InstallerConfig.from_dict(launcher_config, config_dir)
