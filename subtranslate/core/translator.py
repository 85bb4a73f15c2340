"""Subtitle translation with batching for large files"""

import logging
import time
from typing import List

from ..parsers.subtitle_parser import SubtitleDocument
from ..providers.base_provider import TranslationProvider
from ..utils.exceptions import TranslationFailed

logger = logging.getLogger(__name__)

DEFAULT_LINE_THRESHOLD = 1000
DEFAULT_BATCH_SIZE = 100


def split_batches(document: SubtitleDocument, batch_size: int = DEFAULT_BATCH_SIZE) -> List[str]:
    """Split a document into batches of whole blocks, never mid-entry"""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    blocks = document.blocks
    return [
        '\n\n'.join(blocks[start:start + batch_size])
        for start in range(0, len(blocks), batch_size)
    ]


class SubtitleTranslator:
    """Translates subtitle documents through a translation provider.

    Documents longer than ``line_threshold`` lines are split into batches of
    ``batch_size`` entries, translated one after another and joined back in
    order. No context is shared between batches.
    """

    def __init__(self, provider: TranslationProvider, source_language: str = 'en',
                 line_threshold: int = DEFAULT_LINE_THRESHOLD,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 verify_structure: bool = False):
        self.provider = provider
        self.source_language = source_language
        self.line_threshold = line_threshold
        self.batch_size = batch_size
        self.verify_structure = verify_structure

    def needs_chunking(self, document: SubtitleDocument) -> bool:
        return document.line_count > self.line_threshold

    def translate(self, document: SubtitleDocument, target_language: str) -> SubtitleDocument:
        """
        Translate a document to ``target_language``.

        Raises:
            TranslationFailed: on empty input, any failed batch, an empty
                reply, or (with verify_structure) a changed entry layout
        """
        if document is None or document.is_empty():
            raise TranslationFailed("Input text is empty or invalid")

        started = time.monotonic()
        if self.needs_chunking(document):
            batches = split_batches(document, self.batch_size)
            logger.info(
                f"Document has {document.line_count} lines, translating "
                f"{len(document.blocks)} blocks in {len(batches)} batches"
            )
        else:
            batches = [document.text]

        translated_batches = []
        for number, batch in enumerate(batches, start=1):
            logger.debug(f"Translating batch {number}/{len(batches)} ({len(batch)} chars)")
            translated = self.provider.translate_text(batch, self.source_language, target_language)
            if not translated or not translated.strip():
                raise TranslationFailed(f"Batch {number}/{len(batches)} came back empty")
            translated_batches.append(translated.strip('\n'))

        result = SubtitleDocument.from_blocks(translated_batches, filename=document.filename)

        if self.verify_structure and not result.structure_matches(document):
            raise TranslationFailed(
                f"Translated structure differs from source "
                f"({len(result.entries)} vs {len(document.entries)} entries)"
            )

        logger.info(f"Translation to {target_language} finished in {time.monotonic() - started:.1f}s")
        return result
