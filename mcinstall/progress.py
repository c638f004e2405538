"""Progress reporting: best-effort channels and tqdm bars."""
import asyncio
import enum
import logging
from typing import Any, Callable, NamedTuple, Optional, Union

from tqdm.asyncio import tqdm

log = logging.getLogger(__name__)


class Progress(NamedTuple):
    done: int
    total: int
    message: str = ''


class LoaderStage(enum.Enum):
    START = 'start'
    DOWNLOADING_JSON = 'downloading_json'
    DOWNLOADING_INSTALLER = 'downloading_installer'
    RUNNING_INSTALLER = 'running_installer'
    DOWNLOADING_LIBRARY = 'downloading_library'
    DONE = 'done'


class LoaderProgress(NamedTuple):
    stage: LoaderStage
    done: int = 0
    total: int = 0


Sink = Union[Callable[[Any], Any], asyncio.Queue]


class ProgressChannel:
    """One-way progress sink. A failing send is logged and ignored."""

    def __init__(self, sink: Optional[Sink] = None):
        self.sink = sink

    def send(self, event: Any) -> None:
        if self.sink is None:
            return
        try:
            if isinstance(self.sink, asyncio.Queue):
                self.sink.put_nowait(event)
            else:
                self.sink(event)
        except Exception as e:
            log.warning(f"Dropping progress update {event!r}: {e}")


class ProgressTracker:
    """Shared ``(done, total)`` counter feeding a channel and an optional tqdm bar."""

    def __init__(self, total: int, desc: str, channel: Optional[ProgressChannel] = None, show_bar: bool = True):
        self.total = total
        self.done = 0
        self.desc = desc
        self.channel = channel or ProgressChannel()
        self._lock = asyncio.Lock()
        self._bar = tqdm(total=total, desc=desc, unit='file', leave=False) if show_bar else None

    async def advance(self, message: str = '') -> int:
        async with self._lock:
            self.done += 1
            done = self.done
            if self._bar is not None:
                self._bar.update(1)
            self.channel.send(Progress(done, self.total, message))
        return done

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
