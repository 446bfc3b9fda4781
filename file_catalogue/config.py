"""
Configuration constants for the file catalogue.
"""
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .exceptions import ConfigurationError

# --- Database ---
DEFAULT_DB_FILENAME = 'file_catalogue.sqlite'
DEFAULT_MERGED_DB_FILENAME = 'merged_file_catalogue.sqlite'
BUSY_TIMEOUT_SEC = 60.0
COMMIT_INTERVAL = 1000

# --- Digests ---
# Method name -> (hashlib name, files column)
DIGEST_METHODS = {
    'MD5': ('md5', 'MD5'),
    'SHA-1': ('sha1', 'SHA1'),
    'SHA-256': ('sha256', 'SHA256'),
    'SHA-512': ('sha512', 'SHA512'),
}
REQUIRED_DIGESTS = ['MD5', 'SHA-256']
DEFAULT_DIGESTS = 'MD5,SHA-256'
UNREADABLE_DIGEST = '0'
HASH_CHUNK_SIZE = 1024 * 1024  # 1 MB chunks for reading

# --- Type classification ---
MIME_METHODS = ('auto', 'file', 'magic', 'extension')
FILE_UTILITY = '/usr/bin/file'
UNKNOWN_MIME = 'unknown'

# --- Metadata ---
EXIFTOOL = 'exiftool'

# Curated tag set (EXIF, XMP/Dublin Core, ICC)
METADATA_TAGS = [
    # EXIF (JPEG, TIFF)
    'Make', 'Model', 'Software', 'Artist', 'Copyright', 'Comment',
    'UserComment', 'FileSource', 'SerialNumber', 'ImageDescription',
    # XMP
    'Author', 'Keywords',
    # ICC
    'ManufacturerName',
    # Dublin Core (e.g. office documents)
    'Title', 'Creator', 'Subject', 'Description', 'Contributor', 'Source',
    'Language', 'Rights',
]

# Tags dropped entirely (rather than cleaned) when they hold unprintables
DISCARD_IF_UNPRINTABLE = {'SerialNumber'}

# First present tag wins
FIELD_FALLBACKS = {
    'author': ('Creator', 'Author', 'Artist', 'Contributor'),
    'title': ('Title', 'Description', 'ImageDescription'),
    'comment': ('Comment', 'Subject', 'Keywords'),
    'copyright': ('Copyright', 'Rights'),
}
SOURCE_FALLBACKS = {
    'Make': ('Make', 'ManufacturerName'),
    'Model': ('Model',),
    'Software': ('Software',),
    'FileSource': ('FileSource',),
    'SerialNumber': ('SerialNumber',),
}

# exifread tag key -> curated tag name
EXIFREAD_TAGS = {
    'Image Make': 'Make',
    'Image Model': 'Model',
    'Image Software': 'Software',
    'Image Artist': 'Artist',
    'Image Copyright': 'Copyright',
    'Image ImageDescription': 'ImageDescription',
    'EXIF UserComment': 'UserComment',
    'EXIF FileSource': 'FileSource',
    'EXIF BodySerialNumber': 'SerialNumber',
    'MakerNote SerialNumber': 'SerialNumber',
}

# pymediainfo General track attribute -> curated tag name
MEDIAINFO_TAGS = {
    'title': 'Title',
    'performer': 'Artist',
    'copyright': 'Copyright',
    'comment': 'Comment',
    'description': 'Description',
    'encoded_application': 'Software',
    'writing_application': 'Software',
    'make': 'Make',
    'model': 'Model',
}

IMAGE_EXTS = {'.jpg', '.jpeg', '.jpe', '.tif', '.tiff', '.png', '.webp', '.heic',
              '.cr2', '.cr3', '.nef', '.arw', '.orf', '.rw2', '.dng'}
MEDIA_EXTS = {'.mp4', '.mov', '.m4v', '.avi', '.mts', '.m2ts', '.3gp', '.mpg', '.mpeg',
              '.mkv', '.webm', '.mp3', '.m4a', '.flac', '.ogg', '.wav', '.wma'}


def canonical_digest_method(name: str) -> str:
    """Maps 'sha256', 'SHA256', 'SHA-256' etc. onto the canonical method name."""
    key = name.strip().upper().replace('_', '-')
    if key in DIGEST_METHODS:
        return key
    if key.startswith('SHA') and '-' not in key:
        key = f"SHA-{key[3:]}"
        if key in DIGEST_METHODS:
            return key
    raise ConfigurationError(f"Unsupported digest method: {name}")


def parse_digest_methods(spec: str) -> List[str]:
    """Parses a 'MD5,SHA-256' style list, keeping order and dropping repeats."""
    methods: List[str] = []
    for part in spec.replace(';', ',').split(','):
        if not part.strip():
            continue
        method = canonical_digest_method(part)
        if method not in methods:
            methods.append(method)
    return methods


def digest_column(method: str) -> str:
    return DIGEST_METHODS[canonical_digest_method(method)][1]


@dataclass
class CatalogueConfig:
    """
    Run configuration, built once at start-up and handed to each component.
    """
    db_path: Path = Path(DEFAULT_DB_FILENAME)
    digest_methods: List[str] = field(default_factory=lambda: list(REQUIRED_DIGESTS))
    mime_method: str = 'auto'
    file_utility: Optional[str] = FILE_UTILITY
    use_exiftool: bool = True
    busy_timeout: float = BUSY_TIMEOUT_SEC
    chunk_size: int = HASH_CHUNK_SIZE
    workers: int = 1

    def __post_init__(self):
        self.db_path = Path(self.db_path)
        methods = [canonical_digest_method(m) for m in self.digest_methods]
        # The schema needs these two for every row
        for required in REQUIRED_DIGESTS:
            if required not in methods:
                methods.append(required)
        self.digest_methods = list(dict.fromkeys(methods))

        if self.mime_method not in MIME_METHODS:
            raise ConfigurationError(
                f"Invalid MIME method: {self.mime_method} (expected one of {', '.join(MIME_METHODS)})")
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1")

    @classmethod
    def from_strings(cls, db_path: Path, digests: str = DEFAULT_DIGESTS, **kwargs) -> 'CatalogueConfig':
        return cls(db_path=db_path, digest_methods=parse_digest_methods(digests), **kwargs)

    def resolved_file_utility(self) -> Optional[str]:
        """Returns the file(1) utility path if it is executable, else None."""
        if not self.file_utility:
            return None
        if Path(self.file_utility).is_file():
            return self.file_utility
        return shutil.which(self.file_utility)
