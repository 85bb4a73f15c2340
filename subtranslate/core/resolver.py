"""Resolves a content id to a downloadable source subtitle"""

import logging
from typing import List, Optional

from ..parsers.id_parser import ContentIdentifier
from ..providers.base_provider import CatalogProvider, CatalogSubtitle, CatalogFile
from ..utils.exceptions import NotFound, RequestError, ResolutionFailed

logger = logging.getLogger(__name__)


class SourceReference:
    """A chosen catalog file plus its temporary download URL"""

    def __init__(self, subtitle_id: str, file_id: int, download_url: str,
                 file_name: Optional[str] = None):
        self.subtitle_id = subtitle_id
        self.file_id = file_id
        self.download_url = download_url
        self.file_name = file_name

    def __repr__(self):
        return f"SourceReference(subtitle_id={self.subtitle_id!r}, file_id={self.file_id!r})"


def select_best(results: List[CatalogSubtitle]) -> CatalogFile:
    """Selection policy 'first-with-file'.

    Takes the catalog's top-ranked result. If that result has no file the
    lookup is a miss; lower-ranked results are never considered.
    """
    if not results:
        raise NotFound("No subtitles found in catalog")

    best = results[0]
    if not best.files:
        raise NotFound(f"Top-ranked subtitle {best.subtitle_id} has no associated file")
    return best.files[0]


class SourceResolver:
    """Maps a content id to a source subtitle via the catalog"""

    def __init__(self, catalog: CatalogProvider, source_language: str = 'en'):
        self.catalog = catalog
        self.source_language = source_language

    def resolve(self, content_id: ContentIdentifier) -> SourceReference:
        """
        Resolve the best source subtitle for a content id.

        Raises:
            NotFound: no results, top result without file, or no download link
            ResolutionFailed: the catalog could not be queried
        """
        try:
            results = self.catalog.search_subtitles(content_id, self.source_language)
        except RequestError as e:
            raise ResolutionFailed(f"Catalog search failed for {content_id}: {e}")

        chosen = select_best(results)
        logger.info(f"Selected file {chosen.file_id} from subtitle {results[0].subtitle_id} for {content_id}")

        try:
            link = self.catalog.request_download_link(chosen.file_id)
        except RequestError as e:
            raise ResolutionFailed(f"Download link request failed for file {chosen.file_id}: {e}")

        if not link:
            raise NotFound(f"Catalog returned no download link for file {chosen.file_id}")

        return SourceReference(
            subtitle_id=results[0].subtitle_id,
            file_id=chosen.file_id,
            download_url=link,
            file_name=chosen.file_name,
        )
