import unicodedata
from dataclasses import dataclass, field, fields, astuple
from typing import Dict, Optional


def has_control_chars(text: str) -> bool:
    """True for control/format (category C) characters; separators like U+00A0 pass."""
    return any(unicodedata.category(ch).startswith('C') for ch in text)


def strip_control_chars(text: str) -> str:
    return "".join(ch for ch in text if not unicodedata.category(ch).startswith('C'))


@dataclass(frozen=True)
class SourceFields:
    """
    Provenance of a file (device / software that produced it).

    Identity is the whole tuple, with None matching None.
    """
    Make: Optional[str] = None
    Model: Optional[str] = None
    Software: Optional[str] = None
    FileSource: Optional[str] = None
    SerialNumber: Optional[str] = None

    @classmethod
    def columns(cls) -> tuple:
        return tuple(f.name for f in fields(cls))

    def values(self) -> tuple:
        return astuple(self)

    def normalized(self) -> 'SourceFields':
        """Blank values and values carrying control characters count as absent."""
        clean = []
        for value in self.values():
            if value is None:
                clean.append(None)
                continue
            value = str(value)
            if not value.strip() or has_control_chars(value):
                clean.append(None)
            else:
                clean.append(value)
        return SourceFields(*clean)


@dataclass
class FileRecord:
    """
    Represents one file found during a scan.
    """
    full_path: str
    dir_name: str
    file_name: str
    file_extension: str
    mtime: Optional[str]
    size_bytes: Optional[int]
    size_blocks: Optional[int]
    block_size: Optional[int]

    # Method name ('MD5', 'SHA-256', ...) -> hex digest
    digests: Dict[str, str] = field(default_factory=dict)
    mime_type: str = 'unknown'
    file_type: str = ''

    # Descriptive metadata (fallback-chain selections)
    author: Optional[str] = None
    title: Optional[str] = None
    comment: Optional[str] = None
    copyright: Optional[str] = None

    source: SourceFields = field(default_factory=SourceFields)
    source_id: Optional[int] = None
