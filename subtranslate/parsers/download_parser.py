"""Parser for downloaded subtitle payloads"""

import gzip
import io
import logging
import re
import zipfile
from typing import Optional, Dict, Any, List

from .subtitle_parser import TIMING_SEPARATOR
from ..utils.exceptions import FetchFailed
from ..utils.helpers import sanitize_filename

logger = logging.getLogger(__name__)

GZIP_MAGIC = b'\x1f\x8b'
ZIP_MAGIC = b'PK\x03\x04'
UTF16_BOMS = (b'\xff\xfe', b'\xfe\xff')
DEFAULT_MIN_BYTES = 32


class DownloadParser:
    """Turns raw downloaded bytes into normalized subtitle text"""

    def __init__(self, min_bytes: int = DEFAULT_MIN_BYTES):
        self.min_bytes = min_bytes

    def extract_subtitle(self, payload: bytes, preferred_filename: Optional[str] = None) -> Dict[str, Any]:
        """Unpack gzip/zip payloads and decode the subtitle text.

        Returns:
            dict with 'filename', 'content', 'size' and 'encoding'
        """
        if not payload:
            raise FetchFailed("Empty download payload")

        filename = preferred_filename or 'subtitle.srt'

        # Catalog CDNs occasionally double-compress
        while payload[:2] == GZIP_MAGIC:
            try:
                payload = gzip.decompress(payload)
            except (OSError, EOFError) as e:
                raise FetchFailed(f"Invalid gzip payload: {e}")

        if payload[:4] == ZIP_MAGIC:
            return self.extract_subtitle_from_zip(payload, preferred_filename)

        return {
            'filename': sanitize_filename(filename),
            'content': self._decode_subtitle_content(payload),
            'size': len(payload),
            'encoding': self._detect_encoding(payload),
        }

    def extract_subtitle_from_zip(self, zip_content: bytes, preferred_filename: Optional[str] = None) -> Dict[str, Any]:
        """Extract subtitle file from ZIP archive"""
        try:
            subtitle_files = []

            with zipfile.ZipFile(io.BytesIO(zip_content), 'r') as zip_file:
                for file_info in zip_file.infolist():
                    filename = file_info.filename

                    if file_info.is_dir():
                        continue

                    if not re.search(r'\.(srt|vtt)$', filename, re.I):
                        continue

                    try:
                        file_content = zip_file.read(filename)
                    except (zipfile.BadZipFile, OSError) as e:
                        logger.warning(f"Failed to read file {filename} from ZIP: {e}")
                        continue

                    subtitle_files.append({
                        'filename': sanitize_filename(filename),
                        'content': self._decode_subtitle_content(file_content),
                        'size': len(file_content),
                        'encoding': self._detect_encoding(file_content)
                    })

        except zipfile.BadZipFile:
            raise FetchFailed("Invalid ZIP file")

        if not subtitle_files:
            raise FetchFailed("No subtitle files found in ZIP archive")

        selected_subtitle = self._select_best_subtitle(subtitle_files, preferred_filename)
        logger.info(f"Extracted subtitle: {selected_subtitle['filename']}")
        return selected_subtitle

    def _decode_subtitle_content(self, content: bytes) -> str:
        """Decode subtitle content with multiple encoding attempts"""
        encodings = ['utf-8-sig', 'cp1252']
        if content.startswith(UTF16_BOMS):
            # The codec reads the BOM for byte order and drops it
            encodings.insert(0, 'utf-16')

        for encoding in encodings:
            try:
                return self._normalize_subtitle_content(content.decode(encoding))
            except UnicodeDecodeError:
                continue

        logger.warning("Could not decode subtitle with standard encodings, using latin1")
        return self._normalize_subtitle_content(content.decode('latin1'))

    def _normalize_subtitle_content(self, content: str) -> str:
        """Normalize line endings and blank-line runs"""
        content = content.replace('\r\n', '\n').replace('\r', '\n')

        lines = content.split('\n')
        normalized_lines: List[str] = []

        for line in lines:
            line = line.strip()
            if line:
                normalized_lines.append(line)
            elif normalized_lines and normalized_lines[-1]:
                # Keep a single blank line between blocks
                normalized_lines.append('')

        result = '\n'.join(normalized_lines).rstrip('\n')
        if result:
            result += '\n'
        return result

    def _detect_encoding(self, content: bytes) -> str:
        """Detect encoding of subtitle content"""
        if content.startswith(b'\xef\xbb\xbf'):
            return 'utf-8-sig'
        elif content.startswith(b'\xff\xfe'):
            return 'utf-16-le'
        elif content.startswith(b'\xfe\xff'):
            return 'utf-16-be'

        for encoding in ['utf-8', 'cp1252']:
            try:
                content.decode(encoding)
                return encoding
            except UnicodeDecodeError:
                continue

        return 'latin1'

    def _select_best_subtitle(self, subtitle_files: List[Dict[str, Any]],
                              preferred_filename: Optional[str] = None) -> Dict[str, Any]:
        """Select the best subtitle file from multiple options"""
        if len(subtitle_files) == 1:
            return subtitle_files[0]

        if preferred_filename:
            preferred_name = sanitize_filename(preferred_filename).lower()
            for subtitle in subtitle_files:
                if preferred_name in subtitle['filename'].lower():
                    return subtitle

        # Prefer SRT files, largest first
        srt_files = [s for s in subtitle_files if s['filename'].lower().endswith('.srt')]
        if srt_files:
            return max(srt_files, key=lambda x: x['size'])

        return max(subtitle_files, key=lambda x: x['size'])

    def validate_subtitle_content(self, content: Optional[str]) -> None:
        """Reject content that cannot be a timed subtitle file.

        Raises:
            FetchFailed: if content is empty, too short or has no timing lines
        """
        if not content or not content.strip():
            raise FetchFailed("Subtitle content is empty")

        size = len(content.encode('utf-8'))
        if size < self.min_bytes:
            raise FetchFailed(f"Subtitle content too short ({size} bytes, minimum {self.min_bytes})")

        if TIMING_SEPARATOR not in content:
            raise FetchFailed(f"Subtitle content has no '{TIMING_SEPARATOR}' timing lines")
