"""Storage for translated subtitles, keyed by content id"""

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from ..utils.exceptions import InvalidIdentifier, WriteFailed
from ..utils.helpers import sanitize_filename

logger = logging.getLogger(__name__)


class CacheEntry:
    """A persisted translated subtitle"""

    def __init__(self, key: str, filename: str, size_bytes: int, created_at: datetime,
                 path: Optional[Path] = None):
        self.key = key
        self.filename = filename
        self.size_bytes = size_bytes
        self.created_at = created_at
        self.path = path

    def __repr__(self):
        return f"CacheEntry(key={self.key!r}, filename={self.filename!r}, size_bytes={self.size_bytes})"


class CacheStore(ABC):
    """Key-value store for translated subtitle files"""

    def __init__(self, suffix: str = '.srt'):
        self.suffix = suffix

    def filename_for(self, key: str) -> str:
        """Storage name for a key; rejects keys with nothing usable left"""
        safe_key = sanitize_filename(key or '')
        if not safe_key:
            raise InvalidIdentifier(f"Cache key {key!r} is not usable as a file name")
        return f"{safe_key}{self.suffix}"

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for ``key`` or None on a miss"""
        pass

    @abstractmethod
    def put(self, key: str, content: str) -> CacheEntry:
        """Store ``content`` under ``key``, replacing any previous entry"""
        pass

    @abstractmethod
    def read(self, key: str) -> Optional[bytes]:
        """Return the stored bytes for ``key``"""
        pass

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def is_writable(self) -> bool:
        return True


class FileCacheStore(CacheStore):
    """One file per entry in a single flat directory"""

    def __init__(self, directory: Path, suffix: str = '.srt'):
        super().__init__(suffix)
        self.directory = Path(directory)

    def ensure_directory(self):
        """Create the cache directory.

        Raises:
            WriteFailed: if the directory cannot be created or written
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteFailed(f"Cannot create cache directory {self.directory}: {e}")

        if not self.is_writable():
            raise WriteFailed(f"Cache directory {self.directory} is not writable")
        logger.info(f"Using cache directory: {self.directory}")

    def is_writable(self) -> bool:
        return self.directory.is_dir() and os.access(self.directory, os.W_OK | os.X_OK)

    def _path_for(self, key: str) -> Path:
        return self.directory / self.filename_for(key)

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            path = self._path_for(key)
        except InvalidIdentifier:
            return None

        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cannot stat cache entry {path}: {e}")
            return None

        if stat.st_size == 0:
            return None

        return CacheEntry(
            key=key,
            filename=path.name,
            size_bytes=stat.st_size,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            path=path,
        )

    def put(self, key: str, content: str) -> CacheEntry:
        """Write via a temp file and rename so readers never see partial data"""
        path = self._path_for(key)
        data = content.encode('utf-8')

        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                mode='wb', dir=self.directory, prefix='.tmp-', suffix=self.suffix, delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Error saving subtitle file {path}: {e}")
            raise WriteFailed(f"Cannot write cache entry {path.name}: {e}")

        logger.info(f"Saved translated subtitle to: {path} ({len(data)} bytes)")
        return CacheEntry(
            key=key,
            filename=path.name,
            size_bytes=len(data),
            created_at=datetime.now(timezone.utc),
            path=path,
        )

    def read(self, key: str) -> Optional[bytes]:
        entry = self.get(key)
        if entry is None:
            return None
        try:
            return entry.path.read_bytes()
        except FileNotFoundError:
            return None

    def resolve_filename(self, filename: str) -> Optional[Path]:
        """Map a served file name back to an existing cache file"""
        if not filename or filename != sanitize_filename(filename):
            return None
        if not filename.endswith(self.suffix) or filename.startswith('.tmp-'):
            return None

        path = self.directory / filename
        if path.is_file() and path.resolve().parent == self.directory.resolve():
            return path
        return None


class MemoryCacheStore(CacheStore):
    """In-memory store with the same semantics, for tests and ephemeral runs"""

    def __init__(self, suffix: str = '.srt'):
        super().__init__(suffix)
        self._entries: Dict[str, bytes] = {}
        self._created: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            filename = self.filename_for(key)
        except InvalidIdentifier:
            return None

        with self._lock:
            data = self._entries.get(filename)
            if not data:
                return None
            return CacheEntry(key=key, filename=filename, size_bytes=len(data),
                              created_at=self._created[filename])

    def put(self, key: str, content: str) -> CacheEntry:
        filename = self.filename_for(key)
        data = content.encode('utf-8')
        now = datetime.now(timezone.utc)
        with self._lock:
            self._entries[filename] = data
            self._created[filename] = now
        return CacheEntry(key=key, filename=filename, size_bytes=len(data), created_at=now)

    def read(self, key: str) -> Optional[bytes]:
        try:
            filename = self.filename_for(key)
        except InvalidIdentifier:
            return None
        with self._lock:
            return self._entries.get(filename)

    def __len__(self):
        with self._lock:
            return len(self._entries)
