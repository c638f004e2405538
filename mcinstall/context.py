"""Shared state handed to every installer component."""
import logging
from typing import Optional

from .config import InstallerConfig
from .net import HttpClient
from .platform_info import Platform
from .scheduler import BlockingPool, JobScheduler

log = logging.getLogger(__name__)


class InstallContext:
    """Configuration, HTTP client, target platform and worker pools for one run.

    Components take this in their constructor instead of reaching for globals.
    Anything not passed in is built from ``config`` and owned (closed) here.
    """

    def __init__(
        self,
        config: InstallerConfig,
        http: Optional[HttpClient] = None,
        platform: Optional[Platform] = None,
        scheduler: Optional[JobScheduler] = None,
        blocking: Optional[BlockingPool] = None,
    ):
        self.config = config
        self._owns_http = http is None
        self.http = http or HttpClient(user_agent=config.user_agent, timeout=config.timeout, limit=config.concurrency)
        self.platform = platform or Platform.detect()
        self.scheduler = scheduler or JobScheduler(config.concurrency)
        self._owns_blocking = blocking is None
        self.blocking = blocking or BlockingPool()

    @property
    def show_progress(self) -> bool:
        return self.config.show_progress

    async def __aenter__(self):
        if self._owns_http:
            await self.http.__aenter__()
        log.debug(f"Install context ready for {self.platform}")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            if self._owns_http:
                await self.http.close()
        finally:
            if self._owns_blocking:
                self.blocking.shutdown()
        return False
