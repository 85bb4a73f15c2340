import threading
import time
from unittest.mock import MagicMock

import pytest

from conftest import StubTranslationProvider, make_srt, mock_session
from subtranslate.core.cache_store import FileCacheStore, MemoryCacheStore
from subtranslate.core.fetcher import SubtitleFetcher
from subtranslate.core.pipeline import KeyedLocks, SubtitlePipeline, stremio_language_code
from subtranslate.core.resolver import SourceResolver
from subtranslate.core.translator import SubtitleTranslator
from subtranslate.parsers.subtitle_parser import SubtitleDocument
from subtranslate.utils.exceptions import (
    ResolutionFailed, TranslationFailed, WriteFailed,
)


def test_end_to_end_translates_and_caches(pipeline, cache, catalog, translation_provider):
    reference = pipeline.handle("tt1234567")

    assert reference.id == "ai-he-tt1234567"
    assert reference.lang == "heb"
    assert reference.url == "https://addon.example.com/subs/tt1234567_he.srt"

    cached = SubtitleDocument(cache.read("tt1234567").decode('utf-8'))
    source = SubtitleDocument(make_srt(3))
    assert len(cached.entries) == 3
    assert [e.timing for e in cached.entries] == [e.timing for e in source.entries]
    assert [e.index for e in cached.entries] == [1, 2, 3]
    assert [e.lines for e in cached.entries] == [["HELLO THERE 1"], ["HELLO THERE 2"], ["HELLO THERE 3"]]
    assert catalog.searches[0][0].catalog_id == 1234567


def test_second_call_is_served_from_cache(pipeline, catalog, translation_provider, download_session):
    first = pipeline.handle("tt1234567")
    second = pipeline.handle("1234567")

    assert second.to_dict() == first.to_dict()
    assert len(catalog.searches) == 1
    assert download_session.get.call_count == 1
    assert len(translation_provider.calls) == 1


def test_episodes_are_cached_separately(pipeline, catalog):
    movie = pipeline.handle("tt1234567")
    episode = pipeline.handle("tt1234567:1:2")

    assert movie.url != episode.url
    assert episode.url.endswith("/subs/tt1234567_s01e02_he.srt")
    assert len(catalog.searches) == 2


def test_invalid_id_returns_empty_without_external_calls(pipeline, catalog):
    assert pipeline.handle("kitsu:123") is None
    assert pipeline.subtitles_for("movie", "not-an-id") == {"subtitles": []}
    assert catalog.searches == []


def test_not_found_returns_empty(pipeline, catalog, translation_provider):
    catalog.results = []

    assert pipeline.subtitles_for("movie", "tt1234567") == {"subtitles": []}
    assert translation_provider.calls == []


def test_unsupported_media_type_returns_empty(pipeline, catalog):
    assert pipeline.subtitles_for("channel", "tt1234567") == {"subtitles": []}
    assert catalog.searches == []


def test_successful_subtitles_body(pipeline):
    body = pipeline.subtitles_for("series", "tt1234567:2:5")

    assert body == {"subtitles": [{
        "id": "ai-he-tt1234567_s02e05",
        "lang": "heb",
        "url": "https://addon.example.com/subs/tt1234567_s02e05_he.srt",
    }]}


def test_resolution_failure_returns_empty(pipeline, catalog, cache):
    pipeline.resolver = MagicMock()
    pipeline.resolver.resolve.side_effect = ResolutionFailed("catalog down")

    assert pipeline.handle("tt1234567") is None
    assert len(cache) == 0


def test_malformed_download_never_reaches_translator(pipeline, translation_provider, cache):
    pipeline.fetcher = SubtitleFetcher(session_manager=mock_session(b"<html>rate limited</html>"))

    assert pipeline.handle("tt1234567") is None
    assert translation_provider.calls == []
    assert len(cache) == 0


def test_translation_failure_returns_empty_and_caches_nothing(pipeline, cache):
    def fail(text):
        raise TranslationFailed("timeout")

    pipeline.translator = SubtitleTranslator(StubTranslationProvider(fail))

    assert pipeline.handle("tt1234567") is None
    assert len(cache) == 0


def test_write_failure_returns_empty(pipeline):
    pipeline.cache = MagicMock()
    pipeline.cache.get.return_value = None
    pipeline.cache.put.side_effect = WriteFailed("disk full")

    assert pipeline.handle("tt1234567") is None


def test_unexpected_error_returns_empty(pipeline):
    pipeline.translator = MagicMock()
    pipeline.translator.translate.side_effect = RuntimeError("bug")

    assert pipeline.handle("tt1234567") is None


def test_file_backed_pipeline(tmp_path, catalog, translation_provider, download_session):
    store = FileCacheStore(tmp_path, suffix="_he.srt")
    pipeline = SubtitlePipeline(
        resolver=SourceResolver(catalog),
        fetcher=SubtitleFetcher(session_manager=download_session),
        translator=SubtitleTranslator(translation_provider),
        cache=store,
        target_language='he',
        base_url='http://localhost:7000/',
    )

    reference = pipeline.handle("tt1234567")

    assert reference.url == "http://localhost:7000/subs/tt1234567_he.srt"
    assert (tmp_path / "tt1234567_he.srt").read_text(encoding='utf-8').count("HELLO THERE") == 3


def test_concurrent_requests_for_same_key_run_pipeline_once(catalog, download_session):
    entered = threading.Event()
    release = threading.Event()

    def slow_identity(text):
        entered.set()
        release.wait(5)
        return text

    provider = StubTranslationProvider(slow_identity)
    pipeline = SubtitlePipeline(
        resolver=SourceResolver(catalog),
        fetcher=SubtitleFetcher(session_manager=download_session),
        translator=SubtitleTranslator(provider),
        cache=MemoryCacheStore(suffix="_he.srt"),
        target_language='he',
        base_url='https://addon.example.com',
    )
    results = []

    def worker():
        results.append(pipeline.handle("tt1234567"))

    first = threading.Thread(target=worker)
    first.start()
    assert entered.wait(5)
    second = threading.Thread(target=worker)
    second.start()
    time.sleep(0.1)
    release.set()
    first.join(5)
    second.join(5)

    assert len(provider.calls) == 1
    assert len(catalog.searches) == 1
    assert len(results) == 2 and all(results)
    assert len(pipeline._inflight) == 0


def test_keyed_locks_are_released():
    locks = KeyedLocks()
    with locks.hold("a"):
        with locks.hold("b"):
            assert len(locks) == 2
    assert len(locks) == 0


@pytest.mark.parametrize("code,expected", [("he", "heb"), ("fr", "fra"), ("pt-BR", "por")])
def test_stremio_language_code(code, expected):
    assert stremio_language_code(code) == expected


def test_close_releases_collaborators(pipeline, catalog):
    pipeline.fetcher = MagicMock()
    pipeline.translator = MagicMock()

    pipeline.close()

    assert catalog.closed
    pipeline.fetcher.close.assert_called_once()
    pipeline.translator.provider.close.assert_called_once()


def test_waiting_request_gives_up_after_timeout(catalog, download_session):
    entered = threading.Event()
    release = threading.Event()

    def slow_identity(text):
        entered.set()
        release.wait(5)
        return text

    provider = StubTranslationProvider(slow_identity)
    pipeline = SubtitlePipeline(
        resolver=SourceResolver(catalog),
        fetcher=SubtitleFetcher(session_manager=download_session),
        translator=SubtitleTranslator(provider),
        cache=MemoryCacheStore(suffix="_he.srt"),
        target_language='he',
        base_url='https://addon.example.com',
        wait_timeout=0.05,
    )
    results = []
    first = threading.Thread(target=lambda: results.append(pipeline.handle("tt1234567")))
    first.start()
    assert entered.wait(5)

    assert pipeline.handle("tt1234567") is None

    release.set()
    first.join(5)
    assert results[0] is not None
    assert pipeline.handle("tt1234567").url == results[0].url
    assert len(provider.calls) == 1
    assert len(pipeline._inflight) == 0


def test_keyed_lock_timeout_yields_false():
    locks = KeyedLocks()
    with locks.hold("a") as first:
        assert first
        waiter = []

        def wait():
            with locks.hold("a", timeout=0.01) as acquired:
                waiter.append(acquired)

        thread = threading.Thread(target=wait)
        thread.start()
        thread.join(5)
        assert waiter == [False]
    assert len(locks) == 0
