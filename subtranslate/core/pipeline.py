"""End-to-end subtitle acquisition, translation and caching"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional, Any

from babelfish import Language
from babelfish.exceptions import Error as BabelfishError

from .cache_store import CacheStore, CacheEntry
from .fetcher import SubtitleFetcher
from .resolver import SourceResolver
from .translator import SubtitleTranslator
from ..parsers.id_parser import ContentIdentifier, parse_content_id
from ..utils.exceptions import (
    FetchFailed, InvalidIdentifier, NotFound, ResolutionFailed,
    SubtitleAddonError, TranslationFailed, WriteFailed,
)
from ..utils.helpers import public_file_url

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ('movie', 'series')
STATIC_PREFIX = '/subs'
DEFAULT_WAIT_TIMEOUT = 30.0


def stremio_language_code(code: str) -> str:
    """ISO 639-2 code expected by players, e.g. 'he' -> 'heb'"""
    try:
        return Language.fromietf(code).alpha3
    except (BabelfishError, ValueError):
        return code


class SubtitleReference:
    """What the client receives for one available subtitle"""

    def __init__(self, id: str, lang: str, url: str):
        self.id = id
        self.lang = lang
        self.url = url

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'lang': self.lang, 'url': self.url}

    def __repr__(self):
        return f"SubtitleReference(id={self.id!r}, url={self.url!r})"


class KeyedLocks:
    """Per-key locks that are discarded once nobody holds or waits on them"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None):
        """Acquire the lock for ``key``; yields False if ``timeout`` ran out first"""
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1

        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self):
        with self._guard:
            return len(self._locks)


class SubtitlePipeline:
    """Normalize -> cache check -> resolve -> fetch -> translate -> persist.

    Every failure ends the request with no subtitles; nothing propagates to
    the protocol layer.
    """

    def __init__(self, resolver: SourceResolver, fetcher: SubtitleFetcher,
                 translator: SubtitleTranslator, cache: CacheStore,
                 target_language: str, base_url: str, single_flight: bool = True,
                 wait_timeout: Optional[float] = DEFAULT_WAIT_TIMEOUT):
        self.resolver = resolver
        self.fetcher = fetcher
        self.translator = translator
        self.cache = cache
        self.target_language = target_language
        self.language_code = stremio_language_code(target_language)
        self.base_url = base_url
        self.single_flight = single_flight
        self.wait_timeout = wait_timeout
        self._inflight = KeyedLocks()

    def build_reference(self, content_id: ContentIdentifier, entry: CacheEntry) -> SubtitleReference:
        return SubtitleReference(
            id=f"ai-{self.target_language}-{content_id.key}",
            lang=self.language_code,
            url=public_file_url(self.base_url, STATIC_PREFIX, entry.filename),
        )

    def handle(self, raw_id: str) -> Optional[SubtitleReference]:
        """Return a reference to the translated subtitle, or None"""
        try:
            content_id = parse_content_id(raw_id)
        except InvalidIdentifier as e:
            logger.error(f"Invalid content id received: {raw_id!r} ({e})")
            return None

        try:
            entry = self.cache.get(content_id.key)
            if entry:
                logger.info(f"Cache hit for {content_id}: {entry.filename}")
                return self.build_reference(content_id, entry)

            if not self.single_flight:
                return self._run(content_id)

            with self._inflight.hold(content_id.key, timeout=self.wait_timeout) as acquired:
                if not acquired:
                    # The running translation still fills the cache for later requests
                    logger.warning(
                        f"Gave up after {self.wait_timeout}s waiting for in-flight "
                        f"translation of {content_id}"
                    )
                    return None

                # Another request may have finished while this one waited
                entry = self.cache.get(content_id.key)
                if entry:
                    logger.info(f"Cache filled by concurrent request for {content_id}")
                    return self.build_reference(content_id, entry)
                return self._run(content_id)

        except Exception:
            logger.exception(f"Unexpected error in subtitle pipeline for {content_id}")
            return None

    def _run(self, content_id: ContentIdentifier) -> Optional[SubtitleReference]:
        stage = 'resolve'
        try:
            source = self.resolver.resolve(content_id)

            stage = 'fetch'
            document = self.fetcher.fetch(source)

            stage = 'translate'
            translated = self.translator.translate(document, self.target_language)

            stage = 'persist'
            entry = self.cache.put(content_id.key, translated.text)

        except NotFound as e:
            logger.info(f"No source subtitle for {content_id}: {e}")
            return None
        except (ResolutionFailed, FetchFailed, TranslationFailed, WriteFailed) as e:
            logger.warning(f"Stage '{stage}' failed for {content_id}: {e}")
            return None
        except SubtitleAddonError as e:
            logger.error(f"Stage '{stage}' failed for {content_id}: {e}")
            return None

        reference = self.build_reference(content_id, entry)
        logger.info(f"Serving translated subtitle for {content_id} at {reference.url}")
        return reference

    def subtitles_for(self, media_type: str, raw_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Protocol response body: always a (possibly empty) subtitle list"""
        if media_type not in SUPPORTED_TYPES:
            logger.warning(f"Unsupported media type {media_type!r} for {raw_id!r}")
            return {'subtitles': []}

        reference = self.handle(raw_id)
        if reference is None:
            return {'subtitles': []}
        return {'subtitles': [reference.to_dict()]}

    def close(self):
        self.fetcher.close()
        self.resolver.catalog.close()
        self.translator.provider.close()
