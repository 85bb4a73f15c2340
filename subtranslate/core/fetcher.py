"""Downloads and validates source subtitle text"""

import logging
from typing import Optional

from .resolver import SourceReference
from .session_manager import SessionManager
from ..parsers.download_parser import DownloadParser, DEFAULT_MIN_BYTES
from ..parsers.subtitle_parser import SubtitleDocument
from ..utils.exceptions import FetchFailed, RequestError

logger = logging.getLogger(__name__)


class SubtitleFetcher:
    """Retrieves raw subtitle text from a resolved download URL"""

    def __init__(self, timeout: float = 15, min_bytes: int = DEFAULT_MIN_BYTES,
                 user_agent: Optional[str] = None,
                 session_manager: Optional[SessionManager] = None):
        headers = {'User-Agent': user_agent} if user_agent else None
        self.session_manager = session_manager or SessionManager(timeout=timeout, headers=headers)
        self.timeout = timeout
        self.download_parser = DownloadParser(min_bytes=min_bytes)

    def fetch(self, source: SourceReference) -> SubtitleDocument:
        """
        Download the subtitle file and check it looks like a timed subtitle.

        Raises:
            FetchFailed: on network errors, undecodable payloads, or content
                that is empty, too short, lacks timing lines or has no
                parseable entries
        """
        logger.info(f"Downloading subtitle text from: {source.download_url}")
        try:
            response = self.session_manager.get(source.download_url, timeout=self.timeout)
        except RequestError as e:
            raise FetchFailed(f"Subtitle download failed: {e}")

        try:
            payload = response.content
        finally:
            response.close()

        subtitle_data = self.download_parser.extract_subtitle(payload, source.file_name)
        self.download_parser.validate_subtitle_content(subtitle_data['content'])

        document = SubtitleDocument(subtitle_data['content'], filename=subtitle_data['filename'])
        if not document.is_well_formed():
            raise FetchFailed(
                f"Downloaded {subtitle_data['filename']} is not a well-formed subtitle "
                f"({len(document.entries)} entries parsed)"
            )

        logger.info(
            f"Downloaded {subtitle_data['filename']} ({subtitle_data['size']} bytes, "
            f"{subtitle_data['encoding']}, {len(document.blocks)} blocks)"
        )
        return document

    def close(self):
        self.session_manager.close()
