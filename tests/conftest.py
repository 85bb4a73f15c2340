import re
from unittest.mock import MagicMock

import pytest

from subtranslate.core.cache_store import MemoryCacheStore
from subtranslate.core.fetcher import SubtitleFetcher
from subtranslate.core.pipeline import SubtitlePipeline
from subtranslate.core.resolver import SourceResolver
from subtranslate.core.translator import SubtitleTranslator
from subtranslate.providers.base_provider import (
    CatalogProvider, CatalogSubtitle, CatalogFile, TranslationProvider,
)

TIMING_LINE = re.compile(r'^\d{2}:\d{2}:\d{2},\d{3} --> \d{2}:\d{2}:\d{2},\d{3}$')


def format_ms(ms):
    hours, rest = divmod(ms, 3600000)
    minutes, rest = divmod(rest, 60000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def make_srt(count, text="Hello there"):
    blocks = []
    for i in range(1, count + 1):
        start = i * 2000
        blocks.append(f"{i}\n{format_ms(start)} --> {format_ms(start + 1500)}\n{text} {i}")
    return "\n\n".join(blocks) + "\n"


class FakeCatalog(CatalogProvider):
    def __init__(self, results=None, link="https://dl.example.com/file/1.srt",
                 search_error=None, link_error=None):
        self.results = results if results is not None else [
            CatalogSubtitle('100', 'en', [CatalogFile(1, 'movie.srt')], download_count=50)
        ]
        self.link = link
        self.search_error = search_error
        self.link_error = link_error
        self.searches = []
        self.link_requests = []
        self.closed = False

    def search_subtitles(self, content_id, language):
        self.searches.append((content_id, language))
        if self.search_error:
            raise self.search_error
        return self.results

    def request_download_link(self, file_id):
        self.link_requests.append(file_id)
        if self.link_error:
            raise self.link_error
        return self.link

    def close(self):
        self.closed = True


class StubTranslationProvider(TranslationProvider):
    def __init__(self, transform=None):
        self.transform = transform or (lambda text: text)
        self.calls = []

    def translate_text(self, text, source_language, target_language):
        self.calls.append((text, source_language, target_language))
        return self.transform(text)


def uppercase_dialogue(text):
    lines = []
    for line in text.split('\n'):
        if not line.strip() or line.strip().isdigit() or TIMING_LINE.match(line):
            lines.append(line)
        else:
            lines.append(line.upper())
    return '\n'.join(lines)


def mock_session(payload):
    response = MagicMock()
    response.content = payload
    session_manager = MagicMock()
    session_manager.get.return_value = response
    return session_manager


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def translation_provider():
    return StubTranslationProvider(uppercase_dialogue)


@pytest.fixture
def download_session():
    return mock_session(make_srt(3).encode('utf-8'))


@pytest.fixture
def cache():
    return MemoryCacheStore(suffix='_he.srt')


@pytest.fixture
def pipeline(catalog, translation_provider, download_session, cache):
    return SubtitlePipeline(
        resolver=SourceResolver(catalog),
        fetcher=SubtitleFetcher(session_manager=download_session),
        translator=SubtitleTranslator(translation_provider),
        cache=cache,
        target_language='he',
        base_url='https://addon.example.com',
    )
