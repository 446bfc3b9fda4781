"""
File type classification.

Each backend maps a path to a MIME type and a free-text "kind" description.
The scanner only sees the TypeClassifier interface; the backend is picked
once, from configuration, by build_classifier().
"""
import logging
import mimetypes
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .. import config
from ..exceptions import ClassificationError

# Optional: python-magic needs the libmagic shared library at import time
magic: Any = None
try:
    import magic
except ImportError:
    magic = None


@dataclass
class Classification:
    mime_type: str = config.UNKNOWN_MIME
    description: str = ''


def normalize_description(text: Optional[str]) -> str:
    """Collapses whitespace runs and removes spaces before commas."""
    if not text:
        return ''
    text = re.sub(r'\s+', ' ', text).strip()
    return re.sub(r' +,', ',', text)


class TypeClassifier:
    name = 'none'

    def classify(self, path: Path, display_path: str = '') -> Classification:
        """
        Never raises: any backend failure is logged and reported as 'unknown'.
        """
        try:
            result = self._classify(path)
        except Exception as e:
            logging.warning(f"Unable to get MIME type for: {display_path or path} ({e})")
            return Classification()
        mime = (result.mime_type or '').strip() or config.UNKNOWN_MIME
        return Classification(mime, normalize_description(result.description))

    def _classify(self, path: Path) -> Classification:
        return Classification()


class NullClassifier(TypeClassifier):
    """Used when no backend is available."""
    name = 'none'


class FileUtilityClassifier(TypeClassifier):
    """
    Wraps the 'file' command line utility.
    Must be installed; the path is resolved by the caller.
    """
    name = 'file'

    def __init__(self, utility: str):
        self.utility = utility

    def _classify(self, path: Path) -> Classification:
        mime = self._run(['-b', '--mime-type'], path)
        kind = self._run(['-b'], path)
        return Classification(mime, kind)

    def _run(self, flags, path: Path) -> str:
        # '--' so names beginning with '-' are not read as options
        cmd = [self.utility, *flags, '--', str(path)]
        proc = subprocess.run(cmd, capture_output=True, text=True, errors='replace')
        if proc.returncode != 0:
            # Keep whatever partial output it produced
            logging.warning(f"'{' '.join(cmd)}' exited with status {proc.returncode}")
        return proc.stdout.strip()


class MagicClassifier(TypeClassifier):
    """Magic-number detection through python-magic (libmagic)."""
    name = 'magic'

    def __init__(self):
        if magic is None:
            raise ClassificationError("python-magic is not available")
        self._mime = magic.Magic(mime=True)
        self._kind = magic.Magic()

    def _classify(self, path: Path) -> Classification:
        return Classification(self._mime.from_file(str(path)), self._kind.from_file(str(path)))


class ExtensionClassifier(TypeClassifier):
    """Guesses from the file name only; gives no kind description."""
    name = 'extension'

    def _classify(self, path: Path) -> Classification:
        mime, _ = mimetypes.guess_type(path.name, strict=False)
        return Classification(mime or config.UNKNOWN_MIME, '')


def build_classifier(cfg: config.CatalogueConfig) -> TypeClassifier:
    """
    Selects the backend named by cfg.mime_method.
    'auto' prefers python-magic, then the file utility, then extensions.
    """
    method = cfg.mime_method
    utility = cfg.resolved_file_utility()

    if method in ('auto', 'magic'):
        try:
            return MagicClassifier()
        except Exception as e:
            if method == 'magic':
                logging.warning(f"MIME method 'magic' unavailable ({e}); MIME types will be 'unknown'.")
                return NullClassifier()
            logging.debug(f"python-magic unavailable: {e}")

    if method in ('auto', 'file'):
        if utility:
            return FileUtilityClassifier(utility)
        if method == 'file':
            logging.warning(f"File utility not found ({cfg.file_utility}); MIME types will be 'unknown'.")
            return NullClassifier()

    return ExtensionClassifier()
