"""OpenSubtitles REST API catalog provider"""

import logging
from typing import List, Optional, Dict, Any

from .base_provider import CatalogProvider, CatalogSubtitle, CatalogFile
from ..core.session_manager import SessionManager
from ..parsers.id_parser import ContentIdentifier
from ..utils.helpers import build_url, truncate

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.opensubtitles.com/api/v1"


class OpenSubtitlesProvider(CatalogProvider):
    """Catalog provider backed by api.opensubtitles.com"""

    def __init__(self, api_key: str, user_agent: str, base_url: str = DEFAULT_BASE_URL,
                 timeout: float = 10, max_retries: int = 0,
                 session_manager: Optional[SessionManager] = None):
        self.base_url = base_url
        self.session_manager = session_manager or SessionManager(
            timeout=timeout,
            headers={
                'Api-Key': api_key,
                'User-Agent': user_agent,
                'Content-Type': 'application/json',
                'Accept': 'application/json',
            },
            # The API allows five requests per second per key
            min_request_interval=0.2,
            max_retries=max_retries,
        )

    def _search_params(self, content_id: ContentIdentifier, language: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            'languages': language,
            'order_by': 'download_count',
            'order_direction': 'desc',
        }
        if content_id.is_episode:
            params['parent_imdb_id'] = content_id.catalog_id
            params['season_number'] = content_id.season
            params['episode_number'] = content_id.episode
        else:
            params['imdb_id'] = content_id.catalog_id
        return params

    def search_subtitles(self, content_id: ContentIdentifier, language: str) -> List[CatalogSubtitle]:
        """Search subtitles for a content id, most downloaded first"""
        url = build_url(self.base_url, '/subtitles')
        params = self._search_params(content_id, language)
        logger.info(f"Searching catalog for {content_id} ({language}): {params}")

        response = self.session_manager.get(url, params=params)
        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"Catalog returned non-JSON body: {truncate(response.text)}")
            return []
        finally:
            response.close()

        items = payload.get('data') if isinstance(payload, dict) else None
        if not isinstance(items, list):
            logger.warning("Catalog response has no 'data' list")
            return []

        results = [self._parse_item(item) for item in items]
        logger.info(f"Catalog returned {len(results)} subtitles for {content_id}")
        return results

    def _parse_item(self, item: Any) -> CatalogSubtitle:
        """Convert one API result, tolerating missing fields"""
        attributes = item.get('attributes') if isinstance(item, dict) else None
        if not isinstance(attributes, dict):
            attributes = {}

        files = []
        for entry in attributes.get('files') or []:
            if isinstance(entry, dict) and entry.get('file_id') is not None:
                files.append(CatalogFile(file_id=entry['file_id'], file_name=entry.get('file_name')))

        return CatalogSubtitle(
            subtitle_id=str(attributes.get('subtitle_id') or (item.get('id') if isinstance(item, dict) else '')),
            language=attributes.get('language') or '',
            files=files,
            download_count=attributes.get('download_count') or 0,
            release_name=attributes.get('release') or '',
        )

    def request_download_link(self, file_id: int) -> Optional[str]:
        """Exchange a file id for a time-limited download URL"""
        url = build_url(self.base_url, '/download')
        logger.info(f"Requesting download link for file {file_id}")

        response = self.session_manager.post(url, json={'file_id': file_id})
        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"Download endpoint returned non-JSON body: {truncate(response.text)}")
            return None
        finally:
            response.close()

        if not isinstance(payload, dict):
            return None

        if 'remaining' in payload:
            logger.debug(f"Catalog downloads remaining today: {payload['remaining']}")
        return payload.get('link') or None

    def close(self):
        self.session_manager.close()
