"""Parser for inbound content identifiers"""

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote

from ..utils.exceptions import InvalidIdentifier

logger = logging.getLogger(__name__)

_BASE_RE = re.compile(r'^(?:tt)?(\d{1,10})$', re.IGNORECASE)
_PART_RE = re.compile(r'^\d{1,4}$')


@dataclass(frozen=True)
class ContentIdentifier:
    """Normalized content id: IMDb base id plus optional season/episode"""

    base: str
    season: Optional[int] = None
    episode: Optional[int] = None

    @property
    def is_episode(self) -> bool:
        return self.season is not None and self.episode is not None

    @property
    def catalog_id(self) -> int:
        """Numeric form expected by the subtitle catalog"""
        return int(self.base[2:])

    @property
    def key(self) -> str:
        """Cache key and filename stem"""
        if self.is_episode:
            return f"{self.base}_s{self.season:02d}e{self.episode:02d}"
        return self.base

    def __str__(self):
        if self.is_episode:
            return f"{self.base}:{self.season}:{self.episode}"
        return self.base


def parse_content_id(raw_id: Optional[str]) -> ContentIdentifier:
    """
    Normalize an inbound id such as 'tt0111161', '0111161' or 'tt0111161:1:2'.

    Raises:
        InvalidIdentifier: if the id is not an IMDb id with an optional
            ':season:episode' suffix
    """
    if raw_id is None:
        raise InvalidIdentifier("Empty content id")

    value = unquote(str(raw_id)).strip()
    if value.lower().endswith('.json'):
        value = value[:-5]
    if not value:
        raise InvalidIdentifier("Empty content id")

    parts = value.split(':')
    if len(parts) not in (1, 3):
        raise InvalidIdentifier(f"Unsupported content id: {raw_id!r}")

    match = _BASE_RE.match(parts[0])
    if not match:
        raise InvalidIdentifier(f"Not an IMDb id: {raw_id!r}")

    digits = match.group(1)
    # IMDb ids are zero-padded to at least seven digits
    base = f"tt{digits.zfill(7)}" if len(digits) < 7 else f"tt{digits}"
    if int(digits) == 0:
        raise InvalidIdentifier(f"Not an IMDb id: {raw_id!r}")

    if len(parts) == 1:
        return ContentIdentifier(base=base)

    season, episode = parts[1], parts[2]
    if not _PART_RE.match(season) or not _PART_RE.match(episode):
        raise InvalidIdentifier(f"Malformed season/episode in {raw_id!r}")

    return ContentIdentifier(base=base, season=int(season), episode=int(episode))
