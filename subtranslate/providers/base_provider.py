"""Base interfaces for the external subtitle catalog and translation services"""

import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional

from ..parsers.id_parser import ContentIdentifier

logger = logging.getLogger(__name__)


class CatalogFile:
    """A downloadable file attached to a catalog subtitle"""

    def __init__(self, file_id: int, file_name: Optional[str] = None):
        self.file_id = file_id
        self.file_name = file_name

    def __repr__(self):
        return f"CatalogFile(file_id={self.file_id!r}, file_name={self.file_name!r})"


class CatalogSubtitle:
    """One subtitle listing returned by a catalog search"""

    def __init__(self, subtitle_id: str, language: str, files: List[CatalogFile],
                 download_count: int = 0, release_name: str = ''):
        self.subtitle_id = subtitle_id
        self.language = language
        self.files = files
        self.download_count = download_count
        self.release_name = release_name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'subtitle_id': self.subtitle_id,
            'language': self.language,
            'download_count': self.download_count,
            'release_name': self.release_name,
            'files': [{'file_id': f.file_id, 'file_name': f.file_name} for f in self.files],
        }

    def __repr__(self):
        return f"CatalogSubtitle(subtitle_id={self.subtitle_id!r}, files={len(self.files)})"


class CatalogProvider(ABC):
    """Subtitle catalog: ranked search plus temporary download links"""

    @abstractmethod
    def search_subtitles(self, content_id: ContentIdentifier, language: str) -> List[CatalogSubtitle]:
        """Search subtitles for a content id, most downloaded first"""
        pass

    @abstractmethod
    def request_download_link(self, file_id: int) -> Optional[str]:
        """Exchange a file id for a time-limited download URL"""
        pass

    def close(self):
        """Release network resources"""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class TranslationProvider(ABC):
    """Text translation service with bounded input size"""

    @abstractmethod
    def translate_text(self, text: str, source_language: str, target_language: str) -> str:
        """Translate subtitle text, keeping its structure intact"""
        pass

    def close(self):
        """Release network resources"""
        pass
