"""Error types raised by the installer.

Every error renders as a plain, human-readable message through ``str()`` so it
can be shown to the user as-is.
"""
import pathlib
from typing import List, Optional, Sequence, Union


class InstallError(Exception):
    """Base class for every failure surfaced by mcinstall."""


class NetworkError(InstallError):
    """Transport or HTTP failure while fetching a URL."""

    def __init__(self, url: str, status: Optional[int] = None, reason: Optional[str] = None):
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"Failed to download {url}: HTTP {status}"
            if reason:
                message += f" {reason}"
        else:
            message = f"Failed to download {url}: {reason or 'connection error'}"
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class NotFoundFallbackExhausted(InstallError):
    """Every candidate URL answered 404."""

    def __init__(self, urls: Sequence[str]):
        self.urls = list(urls)
        listing = "\n".join(f"  - {url}" for url in self.urls)
        super().__init__(f"None of the candidate URLs could be found:\n{listing}")


class VersionNotFound(InstallError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Version {name!r} was not found in the version manifest")


class SchemaError(InstallError):
    """A JSON document did not have the expected shape."""

    def __init__(self, what: str, detail: str):
        self.what = what
        self.detail = detail
        super().__init__(f"Invalid {what}: {detail}")


class PlatformUnsupported(InstallError):
    pass


class ExtractionError(InstallError):
    """Corrupt archive, or an entry/exclusion path escaping its target directory."""

    def __init__(self, path: Union[str, pathlib.Path], reason: str):
        self.path = pathlib.Path(path)
        self.reason = reason
        super().__init__(f"Could not extract {path}: {reason}")


class SubprocessError(InstallError):
    """An external tool (javac, java, unpack200) exited with a nonzero status."""

    def __init__(self, command: List[str], returncode: int, stdout: str, stderr: str):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Command {' '.join(self.command)} failed with exit code {returncode}\n"
            f"STDOUT:\n{stdout}\nSTDERR:\n{stderr}"
        )


class IoError(InstallError):
    """Filesystem failure, carrying the offending path."""

    def __init__(self, path: Union[str, pathlib.Path], cause: BaseException):
        self.path = pathlib.Path(path)
        self.cause = cause
        super().__init__(f"Filesystem error at {path}: {cause}")


class IntegrityError(InstallError):
    def __init__(self, url: str, expected: str, actual: str):
        self.url = url
        self.expected = expected
        self.actual = actual
        super().__init__(f"SHA1 mismatch for {url}. Expected {expected}, got {actual}")


class JavaBinaryNotFound(InstallError):
    def __init__(self, install_dir: pathlib.Path, name: str):
        self.install_dir = install_dir
        self.name = name
        super().__init__(f"Could not find the {name!r} binary inside {install_dir}")


class LoaderVersionNotFound(InstallError):
    def __init__(self, loader: str, game_version: str):
        self.loader = loader
        self.game_version = game_version
        super().__init__(f"No {loader} version is available for Minecraft {game_version}")


class InstanceAlreadyExists(InstallError):
    def __init__(self, instance_dir: pathlib.Path):
        self.instance_dir = instance_dir
        super().__init__(f"An instance already exists at {instance_dir}")
