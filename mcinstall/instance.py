"""Instance directory layout and the small JSON files kept in it."""
import logging
import pathlib
from typing import Union

from .files import file_exists, read_text, write_json
from .models import InstanceConfig, VersionDescriptor, parse_model
from .net import decode_json

log = logging.getLogger(__name__)

DETAILS_FILENAME = 'details.json'
CONFIG_FILENAME = 'config.json'
FABRIC_FILENAME = 'fabric.json'
FORGE_CLASSPATH_FILENAME = 'classpath.txt'
FORGE_CLEAN_CLASSPATH_FILENAME = 'clean_classpath.txt'


def launcher_profiles(version_id: str) -> dict:
    """Minimal ``launcher_profiles.json`` pointing at ``version_id``."""
    profile_name = f"custom-{version_id}"
    return {
        "profiles": {
            profile_name: {
                "lastUsed": "1970-01-01T00:00:00.000Z",
                "lastVersionId": version_id,
                "name": profile_name,
                "type": "custom",
            }
        },
        "settings": {},
        "version": 4,
    }


class InstanceLayout:
    """Paths inside ``<basepath>/instances/<name>``."""

    def __init__(self, root: Union[str, pathlib.Path]):
        self.root = pathlib.Path(root)

    @property
    def details_path(self) -> pathlib.Path:
        return self.root / DETAILS_FILENAME

    @property
    def config_path(self) -> pathlib.Path:
        return self.root / CONFIG_FILENAME

    @property
    def minecraft_dir(self) -> pathlib.Path:
        return self.root / '.minecraft'

    @property
    def mods_dir(self) -> pathlib.Path:
        return self.minecraft_dir / 'mods'

    @property
    def launcher_profiles_path(self) -> pathlib.Path:
        return self.minecraft_dir / 'launcher_profiles.json'

    @property
    def libraries_dir(self) -> pathlib.Path:
        return self.root / 'libraries'

    @property
    def natives_dir(self) -> pathlib.Path:
        return self.libraries_dir / 'natives'

    @property
    def forge_dir(self) -> pathlib.Path:
        return self.root / 'forge'

    @property
    def fabric_json_path(self) -> pathlib.Path:
        return self.root / FABRIC_FILENAME

    def client_jar(self, version_id: str) -> pathlib.Path:
        return self.minecraft_dir / 'versions' / version_id / f"{version_id}.jar"

    # --- JSON files ---
    async def read_details(self) -> VersionDescriptor:
        text = await read_text(self.details_path)
        return parse_model(VersionDescriptor, decode_json(text, str(self.details_path)), str(self.details_path))

    async def read_config(self) -> InstanceConfig:
        if not await file_exists(self.config_path):
            log.warning(f"{self.config_path} not found. Using defaults.")
            return InstanceConfig()
        text = await read_text(self.config_path)
        return parse_model(InstanceConfig, decode_json(text, str(self.config_path)), str(self.config_path))

    async def write_config(self, config: InstanceConfig) -> None:
        await write_json(self.config_path, config.model_dump())

    async def set_mod_type(self, mod_type: str) -> None:
        config = await self.read_config()
        config.mod_type = mod_type
        await self.write_config(config)
        log.info(f"Instance {self.root.name} is now {mod_type}")
