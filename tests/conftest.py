import hashlib
import io
import json
import tarfile
import zipfile

import aiofiles
import pytest
import pytest_asyncio

from mcinstall.config import InstallerConfig
from mcinstall.context import InstallContext
from mcinstall.errors import NetworkError
from mcinstall.net import HttpClient
from mcinstall.platform_info import Platform


def pytest_addoption(parser):
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")

def pytest_configure(config):
    config.addinivalue_line("markers", "slow: mark test as slow to run")

def pytest_collection_modifyitems(config, items):

    if config.getoption("--runslow"):
        return

    skip_slow = pytest.mark.skip(reason="need --runslow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def make_zip(files: dict) -> bytes:
    """In-memory zip archive from a ``{name: bytes}`` mapping."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def make_tar_gz(entries):
    """``entries``: list of (name, bytes) for files or (name, '->target') for symlinks."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode='w:gz') as tar:
        for name, content in entries:
            info = tarfile.TarInfo(name)
            if isinstance(content, str) and content.startswith('->'):
                info.type = tarfile.SYMTYPE
                info.linkname = content[2:]
                tar.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o755
                tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class FakeHttp(HttpClient):
    """HttpClient serving bodies from a ``{url: bytes}`` dict; unknown URLs answer 404.

    Every request is recorded in ``requests``.
    """

    def __init__(self, responses=None):
        super().__init__()
        self.responses = dict(responses or {})
        self.requests = []

    def add(self, url, body):
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode('utf-8')
        self.responses[url] = body
        return body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def close(self):
        pass

    def _respond(self, url):
        self.requests.append(url)
        body = self.responses.get(url)
        if body is None:
            raise NetworkError(url, 404, 'Not Found')
        if isinstance(body, Exception):
            raise body
        return body

    async def get_bytes(self, url):
        return self._respond(url)

    async def _write_response(self, url, dest_path):
        body = self._respond(url)
        async with aiofiles.open(dest_path, 'wb') as f:
            await f.write(body)


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def platform():
    return Platform('linux', 'x64')


@pytest.fixture
def config(tmp_path):
    return InstallerConfig(tmp_path / 'data', show_progress=False, manifest_urls=['https://example.test/manifest.json'])


@pytest_asyncio.fixture
async def ctx(config, http, platform):
    async with InstallContext(config, http=http, platform=platform) as context:
        yield context


def write_instance(root, libraries=(), mod_type='Vanilla', version_id='1.20.1', release_time=None):
    """Bare instance directory: ``details.json`` plus ``config.json``."""
    root.mkdir(parents=True, exist_ok=True)
    details = {
        "id": version_id,
        "downloads": {"client": {"url": f"https://example.test/{version_id}/client.jar"}},
        "assetIndex": {"id": "5", "url": "https://example.test/5.json"},
        "libraries": list(libraries),
    }
    if release_time is not None:
        details["releaseTime"] = release_time
    (root / 'details.json').write_text(json.dumps(details))
    (root / 'config.json').write_text(json.dumps({"mod_type": mod_type}))
