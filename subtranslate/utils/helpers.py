"""Helper utilities for the subtitle translation add-on"""

import re
import logging
from typing import Optional, Dict, Any
from urllib.parse import urlencode, quote

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe file operations"""
    # Replace anything outside the portable filename set
    filename = _UNSAFE_FILENAME_CHARS.sub('_', filename)
    # Remove leading/trailing dots so names never resolve to '.' or '..'
    filename = filename.strip('.')
    # Limit length
    if len(filename) > 200:
        filename = filename[:200]
    return filename


def build_url(base_url: str, path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Build URL with proper joining and parameters"""
    # Ensure base_url ends with / and path doesn't start with /
    base = base_url.rstrip('/')
    clean_path = path.lstrip('/')
    url = f"{base}/{clean_path}"

    if params:
        param_str = urlencode(params)
        if param_str:
            separator = '&' if '?' in url else '?'
            url = f"{url}{separator}{param_str}"

    return url


def public_file_url(base_url: str, prefix: str, filename: str) -> str:
    """Build the absolute URL a client uses to fetch a served file"""
    return build_url(base_url, f"{prefix.strip('/')}/{quote(filename)}")


def truncate(text: str, limit: int = 200) -> str:
    """Shorten text for log output"""
    if len(text) <= limit:
        return text
    return text[:limit] + '...'
