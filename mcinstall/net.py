"""HTTP access for every installer, built on one shared aiohttp session."""
import asyncio
import json
import logging
import pathlib
from typing import Any, Dict, Optional, Sequence, Tuple

import aiohttp
import aiofiles
import aiofiles.os

from .errors import IntegrityError, IoError, NetworkError, NotFoundFallbackExhausted, SchemaError
from .files import decode_text, file_exists, get_file_sha1, makedirs, part_path, remove_file

log = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def decode_json(text: str, what: str) -> Any:
    """Parses JSON, decoding a second time when the document is a JSON string holding JSON."""
    try:
        value = json.loads(text)
        if isinstance(value, str):
            value = json.loads(value)
        return value
    except json.JSONDecodeError as e:
        raise SchemaError(what, str(e)) from e


class HttpClient:
    """Async HTTP client wrapping a single ``aiohttp.ClientSession``.

    Use it as an async context manager; the session is closed on exit.
    Transport and status failures surface as ``NetworkError``.
    """

    def __init__(self, user_agent: str = 'mcinstall', timeout: float = 300.0,
                 headers: Optional[Dict[str, str]] = None, limit: int = 64):
        self.limit = limit
        self.default_headers = {'User-Agent': user_agent, **(headers or {})}
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        connector = aiohttp.TCPConnector(limit=self.limit)
        self.session = aiohttp.ClientSession(headers=self.default_headers, timeout=self.timeout, connector=connector)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            raise RuntimeError("HttpClient used outside of 'async with'")
        return self.session

    # --- Requests ---
    async def get_bytes(self, url: str) -> bytes:
        try:
            async with self._session().get(url) as response:
                if not response.ok:
                    raise NetworkError(url, response.status, response.reason)
                return await response.read()
        except aiohttp.ClientError as e:
            raise NetworkError(url, reason=str(e)) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(url, reason='timed out') from e

    async def get_text(self, url: str) -> str:
        data = await self.get_bytes(url)
        return decode_text(data, f"document from {url}")

    async def get_json(self, url: str) -> Any:
        return decode_json(await self.get_text(url), f"JSON document from {url}")

    async def get_first_available(self, urls: Sequence[str]) -> Tuple[str, bytes]:
        """Fetches the first of ``urls`` that exists; returns it with its body.

        A 404 moves on to the next candidate, any other failure is raised at once.
        """
        for url in urls:
            try:
                return url, await self.get_bytes(url)
            except NetworkError as e:
                if not e.is_not_found:
                    raise
                log.info(f"Not found: {url}")
        raise NotFoundFallbackExhausted(urls)

    async def _write_response(self, url: str, dest_path: pathlib.Path) -> None:
        """Streams the body of ``url`` into ``dest_path``."""
        try:
            async with self._session().get(url) as response:
                if not response.ok:
                    raise NetworkError(url, response.status, response.reason)
                async with aiofiles.open(dest_path, 'wb') as f:
                    async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                        await f.write(chunk)
        except aiohttp.ClientError as e:
            raise NetworkError(url, reason=str(e)) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(url, reason='timed out') from e
        except OSError as e:
            raise IoError(dest_path, e) from e

    async def download_file(
        self,
        url: str,
        dest_path: pathlib.Path,
        expected_sha1: Optional[str] = None,
        force_download: bool = False,
    ) -> bool:
        """Downloads a file, verifying its SHA1 when one is known.

        An existing file is kept when it has the expected hash (or when no hash
        is known). The body lands in ``<dest>.part`` first and is renamed into
        place only once complete. Returns True if a download happened.
        """
        await makedirs(dest_path.parent)

        if not force_download and await file_exists(dest_path):
            if not expected_sha1:
                return False
            current_sha1 = await get_file_sha1(dest_path)
            if current_sha1.lower() == expected_sha1.lower():
                return False
            log.warning(f"SHA1 mismatch for existing file {dest_path.name}. Expected {expected_sha1}, got {current_sha1}. Redownloading.")

        tmp_path = part_path(dest_path)
        try:
            await self._write_response(url, tmp_path)
            if expected_sha1:
                downloaded_sha1 = await get_file_sha1(tmp_path)
                if downloaded_sha1.lower() != expected_sha1.lower():
                    raise IntegrityError(url, expected_sha1, downloaded_sha1)
            await aiofiles.os.replace(tmp_path, dest_path)
        except Exception as error:
            log.error(f"Error downloading {url}: {error}")
            await remove_file(tmp_path)
            raise
        return True
