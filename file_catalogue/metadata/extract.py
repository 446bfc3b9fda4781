import logging
import subprocess
import json
from pathlib import Path
from typing import Optional, Dict, Any

from .. import config
from ..exceptions import MetadataExtractionError
from ..models import has_control_chars, strip_control_chars

# Optional imports handled gracefully to prevent crashes if libs are missing
try:
    import exifread
except ImportError:
    exifread = None

# Type hint 'Any' prevents Pylance from complaining about "None" having no attribute "parse"
MediaInfo: Any = None
try:
    from pymediainfo import MediaInfo
except ImportError:
    MediaInfo = None


def _as_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    return str(value)


def sanitize_tags(raw: Dict[str, Any]) -> Dict[str, str]:
    """
    Restricts raw tags to the curated set and cleans the values.

    Values are trimmed and stripped of unprintable characters, except tags in
    DISCARD_IF_UNPRINTABLE (SerialNumber) which are dropped outright since a
    corrupted serial is worse than a missing one. Empty results are omitted.
    """
    clean: Dict[str, str] = {}
    for tag in config.METADATA_TAGS:
        value = raw.get(tag)
        if value is None:
            continue
        text = _as_text(value).strip()
        if not text:
            continue
        if has_control_chars(text):
            if tag in config.DISCARD_IF_UNPRINTABLE:
                logging.debug(f"Discarding corrupt {tag}: {text!r}")
                continue
            text = strip_control_chars(text).strip()
        if text:
            clean[tag] = text
    return clean


class MetadataExtractor:
    """
    Pulls the curated tag set out of a file's embedded metadata.

    Strategies:
      - 'exiftool' (all formats, requires system install) when available.
      - Otherwise 'exifread' for images and 'pymediainfo' for audio/video.
    """

    def __init__(self, use_exiftool: bool = True, exiftool: str = config.EXIFTOOL):
        self.use_exiftool = use_exiftool
        self.exiftool = exiftool

    def extract(self, path: Path) -> Dict[str, str]:
        """
        Returns tag -> value for the curated tags present in the file.
        Unreadable or unsupported files give an empty mapping.
        """
        raw: Optional[Dict[str, Any]] = None

        # Strategy 1: ExifTool (most complete)
        if self.use_exiftool:
            try:
                raw = self._extract_exiftool(path)
            except FileNotFoundError:
                logging.info(f"'{self.exiftool}' not found; falling back to exifread/pymediainfo.")
                self.use_exiftool = False
            except (MetadataExtractionError, OSError, subprocess.SubprocessError) as e:
                logging.debug(f"ExifTool failed for {path}: {e}")

        # Strategy 2: Python-native readers
        if raw is None:
            raw = {}
            suffix = path.suffix.lower()
            if suffix in config.IMAGE_EXTS:
                for tag, value in self._extract_exifread(path).items():
                    raw.setdefault(tag, value)
            if suffix in config.MEDIA_EXTS:
                for tag, value in self._extract_mediainfo(path).items():
                    raw.setdefault(tag, value)

        return sanitize_tags(raw)

    # --- Internal Extraction Helpers ---

    def _extract_exiftool(self, path: Path) -> Dict[str, Any]:
        """
        Wraps the 'exiftool' command line utility.
        Must be installed and on the system PATH.
        """
        # -j = JSON output, -q = no informational messages
        cmd = [self.exiftool, "-j", "-q", *[f"-{tag}" for tag in config.METADATA_TAGS], "--", str(path)]
        proc = subprocess.run(cmd, capture_output=True, text=True, errors='replace')
        if proc.returncode != 0:
            # Keep any JSON it managed to produce
            logging.warning(f"exiftool exited with status {proc.returncode} for {path}")

        if not proc.stdout.strip():
            return {}
        try:
            data_list = json.loads(proc.stdout)
        except ValueError as e:
            raise MetadataExtractionError(f"Invalid exiftool output for {path}: {e}") from e

        if not data_list:
            return {}
        return {k: v for k, v in data_list[0].items() if k in config.METADATA_TAGS}

    def _extract_exifread(self, path: Path) -> Dict[str, str]:
        """Reads EXIF tags from image files using exifread."""
        if not exifread:
            logging.debug("exifread module not found. Skipping image metadata.")
            return {}

        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.debug(f"ExifRead failed for {path}: {e}")
            return {}

        data: Dict[str, str] = {}
        for key, tag in config.EXIFREAD_TAGS.items():
            if key in tags and tag not in data:
                data[tag] = str(tags[key])
        return data

    def _extract_mediainfo(self, path: Path) -> Dict[str, str]:
        """Reads container tags from audio/video files using pymediainfo."""
        if MediaInfo is None:
            return {}

        try:
            mi = MediaInfo.parse(str(path))
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")
            return {}

        data: Dict[str, str] = {}
        for track in mi.tracks:
            if track.track_type != "General":
                continue
            for attr, tag in config.MEDIAINFO_TAGS.items():
                val = getattr(track, attr, None)
                if val and tag not in data:
                    data[tag] = str(val)
        return data
