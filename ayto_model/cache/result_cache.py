"""
Result Cache

Stores EngineResults under the input hash. The storage medium is
pluggable (CacheStore); ResultCache wraps a store and degrades to an
uncached, always-recompute mode when the store becomes unreachable.
"""
import json
import logging
import os
import tempfile
import threading
import warnings
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from ..config import CACHE_DIR
from ..engines.engine_interface import EngineResult
from ..errors import CacheUnavailableError

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Key-value storage for results; raises CacheUnavailableError when unreachable"""

    def initialize(self):
        """Prepare the store. Must be idempotent."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[EngineResult]:
        pass

    @abstractmethod
    def put(self, key: str, result: EngineResult):
        pass

    @abstractmethod
    def clear(self):
        pass


class InMemoryCacheStore(CacheStore):
    """Process-local store; keeps serialized copies so callers cannot mutate entries"""

    def __init__(self):
        self._entries: Dict[str, dict] = {}

    def get(self, key: str) -> Optional[EngineResult]:
        data = self._entries.get(key)
        return EngineResult.from_dict(data) if data is not None else None

    def put(self, key: str, result: EngineResult):
        self._entries[key] = result.to_dict()

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileCacheStore(CacheStore):
    """
    One JSON file per key under a directory.

    Writes go to a temporary file that is renamed into place, so
    concurrent writers of the same key leave one complete entry.
    """

    SUFFIX = '.json'

    def __init__(self, directory: Union[str, Path, None] = None):
        self.directory = Path(directory) if directory else CACHE_DIR

    def initialize(self):
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheUnavailableError(f"Cannot create cache directory {self.directory}: {e}") from e

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> Optional[EngineResult]:
        path = self._path(key)
        try:
            text = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheUnavailableError(f"Cannot read cache entry {path}: {e}") from e

        try:
            return EngineResult.from_dict(json.loads(text))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring corrupt cache entry {path.name}: {e}")
            return None

    def put(self, key: str, result: EngineResult):
        path = self._path(key)
        try:
            payload = json.dumps(result.to_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise CacheUnavailableError(f"Cannot serialize cache entry {path.name}: {e}") from e

        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
            os.replace(tmp, path)
            tmp = None
        except OSError as e:
            raise CacheUnavailableError(f"Cannot write cache entry {path}: {e}") from e
        finally:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)

    def clear(self):
        if not self.directory.exists():
            return
        try:
            for path in self.directory.glob(f"*{self.SUFFIX}"):
                path.unlink()
        except OSError as e:
            raise CacheUnavailableError(f"Cannot clear cache directory {self.directory}: {e}") from e


class ResultCache:
    """
    Cache handle injected into the orchestrator.

    The first CacheUnavailableError switches the handle to uncached mode:
    lookups miss and writes are dropped, but computations continue.
    """

    def __init__(self, store: Optional[CacheStore] = None, enabled: bool = True):
        self.store = store if store is not None else InMemoryCacheStore()
        self.enabled = enabled
        self.available = True
        self._initialized = False
        self._lock = threading.Lock()

        self.hits = 0
        self.misses = 0

    @property
    def active(self) -> bool:
        return self.enabled and self.available

    def initialize(self) -> bool:
        """Idempotent and safe to call from several threads"""
        with self._lock:
            if self._initialized or not self.enabled:
                return self.active
            try:
                self.store.initialize()
            except CacheUnavailableError as e:
                self._disable(e)
            self._initialized = True
        return self.active

    def get(self, key: str) -> Optional[EngineResult]:
        if not self.initialize():
            return None
        try:
            result = self.store.get(key)
        except CacheUnavailableError as e:
            self._disable(e)
            return None

        with self._lock:
            if result is None:
                self.misses += 1
            else:
                self.hits += 1
        return result

    def put(self, key: str, result: EngineResult) -> bool:
        if not self.initialize():
            return False
        try:
            self.store.put(key, result)
        except CacheUnavailableError as e:
            self._disable(e)
            return False
        return True

    def clear(self):
        if not self.initialize():
            return
        try:
            self.store.clear()
        except CacheUnavailableError as e:
            self._disable(e)

    def _disable(self, error: Exception):
        if self.available:
            warnings.warn(f"Result cache unavailable, recomputing without cache: {error}")
        self.available = False
