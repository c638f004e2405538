"""Data models for the JSON documents the installer consumes."""
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import SchemaError

M = TypeVar('M', bound='Document')


class Document(BaseModel):
    """Base for every document; unknown keys are kept."""
    model_config = ConfigDict(extra='allow', populate_by_name=True)


def parse_model(cls: Type[M], data: Any, what: str) -> M:
    """Validates ``data`` against ``cls``, raising ``SchemaError`` on mismatch."""
    try:
        return cls.model_validate(data)
    except ValidationError as e:
        raise SchemaError(what, str(e)) from e


def dedup_key(name: str) -> Optional[str]:
    """``group:artifact`` of a three-part maven coordinate, else None."""
    parts = name.split(':')
    if len(parts) != 3:
        return None
    return f"{parts[0]}:{parts[1]}"


def maven_path(name: str, extension: str = 'jar') -> str:
    """Relative repository path of a maven coordinate (``group:artifact:version[:classifier]``)."""
    parts = name.split(':')
    if len(parts) < 3:
        raise SchemaError(f"library {name!r}", "expected a group:artifact:version coordinate")
    group, artifact, version = parts[:3]
    classifier = f"-{parts[3]}" if len(parts) > 3 else ''
    return f"{group.replace('.', '/')}/{artifact}/{version}/{artifact}-{version}{classifier}.{extension}"


# --- Version manifest ---
class ManifestVersion(Document):
    id: str
    url: str
    type: Optional[str] = None
    release_time: Optional[str] = Field(default=None, alias='releaseTime')


class VersionManifest(Document):
    latest: Optional[Dict[str, str]] = None
    versions: List[ManifestVersion]

    def find(self, version_id: str) -> Optional[ManifestVersion]:
        for entry in self.versions:
            if entry.id == version_id:
                return entry
        return None


# --- Version descriptor ---
class DownloadInfo(Document):
    url: str
    sha1: Optional[str] = None
    size: Optional[int] = None


class Artifact(Document):
    path: Optional[str] = None
    url: str
    sha1: Optional[str] = None
    size: Optional[int] = None


class LibraryDownloads(Document):
    artifact: Optional[Artifact] = None
    classifiers: Optional[Dict[str, Artifact]] = None


class OsPredicate(Document):
    name: Optional[str] = None
    arch: Optional[str] = None
    version: Optional[str] = None


class Rule(Document):
    action: str
    os: Optional[OsPredicate] = None


class ExtractSpec(Document):
    exclude: List[str] = []


class LibraryEntry(Document):
    name: Optional[str] = None
    downloads: Optional[LibraryDownloads] = None
    natives: Optional[Dict[str, str]] = None
    rules: Optional[List[Rule]] = None
    extract: Optional[ExtractSpec] = None
    url: Optional[str] = None

    @property
    def dedup_key(self) -> Optional[str]:
        return dedup_key(self.name) if self.name else None

    @property
    def artifact(self) -> Optional[Artifact]:
        return self.downloads.artifact if self.downloads else None

    @property
    def classifiers(self) -> Dict[str, Artifact]:
        if self.downloads and self.downloads.classifiers:
            return self.downloads.classifiers
        return {}


class AssetIndexRef(Document):
    id: str
    url: str
    sha1: Optional[str] = None
    size: Optional[int] = None
    total_size: Optional[int] = Field(default=None, alias='totalSize')


class JavaVersionRef(Document):
    component: Optional[str] = None
    major_version: int = Field(alias='majorVersion')


class LoggingFile(Document):
    id: str
    url: str
    sha1: Optional[str] = None


class LoggingClient(Document):
    argument: Optional[str] = None
    file: LoggingFile


class LoggingInfo(Document):
    client: Optional[LoggingClient] = None


class VersionDescriptor(Document):
    id: str
    type: Optional[str] = None
    downloads: Dict[str, DownloadInfo]
    asset_index: AssetIndexRef = Field(alias='assetIndex')
    java_version: Optional[JavaVersionRef] = Field(default=None, alias='javaVersion')
    libraries: List[LibraryEntry] = []
    logging: Optional[LoggingInfo] = None
    arguments: Optional[Dict[str, Any]] = None
    minecraft_arguments: Optional[str] = Field(default=None, alias='minecraftArguments')
    main_class: Optional[str] = Field(default=None, alias='mainClass')
    release_time: Optional[str] = Field(default=None, alias='releaseTime')

    @property
    def client(self) -> DownloadInfo:
        try:
            return self.downloads['client']
        except KeyError:
            raise SchemaError(f"version descriptor {self.id}", "missing downloads.client") from None

    @property
    def required_java_major(self) -> int:
        """Java major version to run with; descriptors without ``javaVersion`` predate Java 16 and need 8."""
        return self.java_version.major_version if self.java_version else 8


# --- Assets ---
class AssetObject(Document):
    hash: str
    size: Optional[int] = None
    url: Optional[str] = None

    @property
    def prefix(self) -> str:
        return self.hash[:2]


class AssetIndex(Document):
    objects: Dict[str, AssetObject]


# --- Java runtime ---
class JavaFileDownload(Document):
    url: str
    sha1: Optional[str] = None
    size: Optional[int] = None


class JavaFileDownloads(Document):
    raw: JavaFileDownload
    lzma: Optional[JavaFileDownload] = None


class JavaFileSpec(Document):
    type: str
    downloads: Optional[JavaFileDownloads] = None
    executable: bool = False
    target: Optional[str] = None


class JavaFileManifest(Document):
    files: Dict[str, JavaFileSpec]


class JavaManifestRef(Document):
    url: str
    sha1: Optional[str] = None


class JavaRuntimeEntry(Document):
    manifest: JavaManifestRef


class JavaRuntimeList(Document):
    """Mojang's ``all.json``: platform key -> component -> runtime builds."""

    def component(self, platform_key: str, name: str) -> Optional[JavaRuntimeEntry]:
        platforms = self.model_extra or {}
        builds = (platforms.get(platform_key) or {}).get(name) or []
        if not builds:
            return None
        return parse_model(JavaRuntimeEntry, builds[0], f"java runtime {platform_key}/{name}")


# --- Loaders ---
class LoaderArtifact(Document):
    path: Optional[str] = None
    url: Optional[str] = None
    sha1: Optional[str] = None


class LoaderLibraryDownloads(Document):
    artifact: Optional[LoaderArtifact] = None


class LoaderLibrary(Document):
    name: str
    url: Optional[str] = None
    downloads: Optional[LoaderLibraryDownloads] = None
    clientreq: Optional[bool] = None


class LoaderDetails(Document):
    id: Optional[str] = None
    main_class: Optional[str] = Field(default=None, alias='mainClass')
    libraries: List[LoaderLibrary] = []


class InstallProfile(Document):
    version_info: LoaderDetails = Field(alias='versionInfo')


class LoaderVersionIndex(Document):
    homepage: Optional[str] = None
    promos: Dict[str, str]

    def version_for(self, game_version: str) -> Optional[str]:
        return self.promos.get(f"{game_version}-latest") or self.promos.get(f"{game_version}-recommended")


class NeoForgeVersionList(Document):
    versions: List[str] = []


class FabricLibrary(Document):
    name: str
    url: Optional[str] = None
    sha1: Optional[str] = None


class FabricDetails(Document):
    id: Optional[str] = None
    main_class: Optional[str] = Field(default=None, alias='mainClass')
    arguments: Optional[Dict[str, Any]] = None
    libraries: List[FabricLibrary] = []


class FabricLoaderInfo(Document):
    version: str
    stable: Optional[bool] = None


class FabricLoaderVersion(Document):
    loader: FabricLoaderInfo


class InstanceConfig(Document):
    java_override: Optional[str] = None
    ram_in_mb: int = 2048
    mod_type: str = 'Vanilla'
    enable_logger: Optional[bool] = True
