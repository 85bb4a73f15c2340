"""Parser for SRT/VTT subtitle documents"""

import logging
import re
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)

TIMING_SEPARATOR = '-->'

TIMING_RE = re.compile(
    r'^\s*(?P<start>\d{1,2}:\d{2}:\d{2}[,.]\d{1,3})\s*-->\s*'
    r'(?P<end>\d{1,2}:\d{2}:\d{2}[,.]\d{1,3})'
)
BLOCK_SEPARATOR_RE = re.compile(r'\n\s*\n')


def parse_timestamp(value: str) -> int:
    """Convert 'HH:MM:SS,mmm' (or '.mmm') to milliseconds"""
    hms, _, millis = value.replace('.', ',').partition(',')
    hours, minutes, seconds = (int(part) for part in hms.split(':'))
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + int(millis.ljust(3, '0')[:3])


class SubtitleEntry:
    """One timed caption unit"""

    def __init__(self, index: Optional[int], start: str, end: str, lines: List[str]):
        self.index = index
        self.start = start
        self.end = end
        self.lines = lines

    @property
    def start_ms(self) -> int:
        return parse_timestamp(self.start)

    @property
    def end_ms(self) -> int:
        return parse_timestamp(self.end)

    @property
    def timing(self) -> str:
        return f"{self.start} --> {self.end}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'index': self.index,
            'start': self.start,
            'end': self.end,
            'lines': list(self.lines),
        }

    def __repr__(self):
        return f"SubtitleEntry(index={self.index!r}, timing={self.timing!r})"


def parse_block(block: str) -> Optional[SubtitleEntry]:
    """Parse one blank-line-delimited block, or None if it has no timing line"""
    lines = block.strip('\n').split('\n')
    for position, line in enumerate(lines):
        match = TIMING_RE.match(line)
        if not match:
            continue

        index = None
        if position > 0 and lines[position - 1].strip().isdigit():
            index = int(lines[position - 1].strip())
        return SubtitleEntry(
            index=index,
            start=match.group('start'),
            end=match.group('end'),
            lines=lines[position + 1:],
        )
    return None


class SubtitleDocument:
    """Subtitle text plus its structural segments.

    The text is kept verbatim; blocks and entries are derived on demand so
    validation does not pay for a full parse.
    """

    def __init__(self, text: str, filename: Optional[str] = None):
        self.text = text
        self.filename = filename
        self._blocks: Optional[List[str]] = None
        self._entries: Optional[List[SubtitleEntry]] = None

    @classmethod
    def from_blocks(cls, blocks: List[str], filename: Optional[str] = None) -> 'SubtitleDocument':
        """Reassemble a document from blank-line-delimited blocks"""
        text = '\n\n'.join(block.strip('\n') for block in blocks if block.strip())
        if text:
            text += '\n'
        return cls(text, filename=filename)

    @property
    def blocks(self) -> List[str]:
        """Raw blocks separated by blank lines, in document order"""
        if self._blocks is None:
            normalized = self.text.replace('\r\n', '\n').replace('\r', '\n')
            self._blocks = [
                block.strip('\n')
                for block in BLOCK_SEPARATOR_RE.split(normalized)
                if block.strip()
            ]
        return self._blocks

    @property
    def entries(self) -> List[SubtitleEntry]:
        if self._entries is None:
            entries = []
            for block in self.blocks:
                entry = parse_block(block)
                if entry:
                    entries.append(entry)
            self._entries = entries
        return self._entries

    @property
    def line_count(self) -> int:
        return len(self.text.splitlines())

    @property
    def size_bytes(self) -> int:
        return len(self.text.encode('utf-8'))

    def is_empty(self) -> bool:
        return not self.text or not self.text.strip()

    def is_well_formed(self) -> bool:
        """At least one entry, and no entry ends before it starts"""
        entries = self.entries
        if not entries:
            return False
        return all(entry.end_ms >= entry.start_ms for entry in entries)

    def structure_matches(self, other: 'SubtitleDocument') -> bool:
        """Same entry count and identical timings, in order"""
        mine, theirs = self.entries, other.entries
        if len(mine) != len(theirs):
            return False
        return all(
            (a.start_ms, a.end_ms) == (b.start_ms, b.end_ms)
            for a, b in zip(mine, theirs)
        )

    def __len__(self):
        return len(self.entries)

    def __repr__(self):
        return f"SubtitleDocument(filename={self.filename!r}, blocks={len(self.blocks)})"
