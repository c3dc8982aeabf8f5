"""
Durable key-value storage for serialized collections.

Each key holds one UTF-8 text blob (a JSON document). Writes always replace
the whole blob; there are no partial or append writes.
"""

import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional, Union

from .logger import get_logger

logger = get_logger("persistence")

Dispatch = Callable[..., object]

_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_\-]+$')


class PersistenceAdapter:
    """get/set/remove of named text blobs."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, text: str) -> bool:
        raise NotImplementedError

    def remove(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self) -> Iterator[str]:
        raise NotImplementedError


class MemoryAdapter(PersistenceAdapter):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.fail_writes = False  # simulate a full disk

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, text: str) -> bool:
        if self.fail_writes:
            logger.error(f"Write refused for key {key!r}")
            return False
        self.data[key] = text
        return True

    def remove(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    def keys(self) -> Iterator[str]:
        return iter(sorted(self.data))


class FileAdapter(PersistenceAdapter):
    """One <key>.json file per key inside a directory."""

    def __init__(self, directory: Union[str, Path] = "data"):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading {path}: {e}")
            return None

    def set(self, key: str, text: str) -> bool:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Write beside the target, then swap it in; a crash leaves the old file
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error(f"Error writing {path}: {e}")
            return False
        return True

    def remove(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Error removing {path}: {e}")
            return False
        return True

    def keys(self) -> Iterator[str]:
        if not self.directory.exists():
            return iter([])
        return iter(sorted(p.stem for p in self.directory.glob("*.json")))


class WriteCoalescer:
    """
    Debounces writes per key.

    `schedule(key, write)` arms a timer; scheduling the same key again before
    it fires cancels the pending write and starts the delay over. With a delay
    of zero the write runs immediately on the caller's thread.

    When `dispatch` is set (the shell sets it to its event loop's
    `call_soon_threadsafe`), a due write is handed to it instead of running on
    the timer thread, so stores are only ever touched from one thread.

    Args:
        delay: Seconds to wait after the last schedule() before writing
        dispatch: Called as dispatch(fn, key) to run a due write
    """

    def __init__(self, delay: float = 0.3, dispatch: Optional[Dispatch] = None):
        self.delay = delay
        self.dispatch = dispatch
        self._lock = threading.Lock()
        self._pending: Dict[str, Callable[[], None]] = {}
        self._timers: Dict[str, threading.Timer] = {}

    def schedule(self, key: str, write: Callable[[], None]) -> None:
        if self.delay <= 0:
            write()
            return
        with self._lock:
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            self._pending[key] = write
            timer = threading.Timer(self.delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _fire(self, key: str) -> None:
        if self.dispatch is None:
            self._run(key)
            return
        try:
            self.dispatch(self._run, key)
        except RuntimeError as e:
            # Event loop already closed; the write stays pending for flush()
            logger.debug(f"Deferred write for {key} not dispatched: {e}")

    def _run(self, key: str) -> None:
        with self._lock:
            write = self._pending.pop(key, None)
            self._timers.pop(key, None)
        if write is not None:
            write()

    def pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def flush(self) -> None:
        """Run every pending write now."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            writes = list(self._pending.values())
            self._pending.clear()
            self._timers.clear()
        for write in writes:
            write()

    def cancel(self) -> None:
        """Drop pending writes without running them."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._pending.clear()
            self._timers.clear()
