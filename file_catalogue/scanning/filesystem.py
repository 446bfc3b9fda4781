import os
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, UTC
from itertools import islice
from pathlib import Path
from typing import Iterator, Optional, Tuple

from .. import config
from ..models import FileRecord
from ..metadata.extract import MetadataExtractor
from ..metadata.fields import descriptive_fields, source_fields
from .classifier import Classification, TypeClassifier, build_classifier
from .hasher import FileHasher

BATCH_SIZE = 64


@dataclass
class ScanEntry:
    path: str                   # path as walked, e.g. './photos/a.jpg'
    is_dir: bool
    stat: Optional[os.stat_result] = None


def file_extension(name: str) -> str:
    """Text after the last '.', or '' when the name has none."""
    _, dot, ext = name.rpartition('.')
    return ext if dot else ''


def format_mtime(ts: float) -> str:
    """Sortable ISO-8601 style UTC timestamp."""
    return datetime.fromtimestamp(ts, UTC).strftime('%Y-%m-%d %H:%M:%S')


def catalogue_path(path: str) -> str:
    """
    Storable text for a walked path. Bytes that are not valid UTF-8 (legal in
    POSIX names) come back as \\xNN escapes instead of lone surrogates.
    """
    return os.fsencode(path).decode('utf-8', 'backslashreplace')


class DiskScanner:
    def __init__(self,
                 cfg: config.CatalogueConfig,
                 classifier: Optional[TypeClassifier] = None,
                 metadata: Optional[MetadataExtractor] = None,
                 hasher: Optional[FileHasher] = None):
        self.cfg = cfg
        self.hasher = hasher or FileHasher(cfg.digest_methods, cfg.chunk_size)
        self.classifier = classifier or build_classifier(cfg)
        self.metadata = metadata or MetadataExtractor(use_exiftool=cfg.use_exiftool)

    def scan(self, root: Path) -> Iterator[Tuple[ScanEntry, Optional[FileRecord]]]:
        """
        Generator over (entry, record) in walk order; record is None for
        directories. A directory is always yielded before its contents.

        With cfg.workers > 1 files are processed in parallel batches, but
        results are still yielded in walk order.
        """
        entries = self.iter_entries(root)

        if self.cfg.workers <= 1:
            for entry in entries:
                yield entry, self._process_entry(entry)
            return

        logging.info(f"Parallel scan: {self.cfg.workers} workers")
        with ThreadPoolExecutor(max_workers=self.cfg.workers) as executor:
            while batch := list(islice(entries, BATCH_SIZE)):
                # map() keeps input order
                for entry, record in zip(batch, executor.map(self._process_entry, batch)):
                    yield entry, record

    def iter_entries(self, root: Path) -> Iterator[ScanEntry]:
        """
        Depth-first walker using os.scandir for speed.
        Symlinks, devices and other special entries are skipped silently.
        """
        stack = [str(Path(root))]
        while stack:
            current = stack.pop()
            yield ScanEntry(current, is_dir=True)

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Unable to list directory {current}: {e}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name)

            dirs = []
            for e in entries:
                path = os.path.join(current, e.name)
                try:
                    if e.is_dir(follow_symlinks=False):
                        dirs.append(path)
                    elif e.is_file(follow_symlinks=False):
                        yield ScanEntry(path, is_dir=False, stat=e.stat(follow_symlinks=False))
                except OSError as err:
                    logging.warning(f"Unable to stat {path}: {err}")

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

    def _process_entry(self, entry: ScanEntry) -> Optional[FileRecord]:
        if entry.is_dir:
            return None
        return self.process_file(entry)

    def process_file(self, entry: ScanEntry) -> FileRecord:
        """
        Builds the full record for one regular file. Component failures
        degrade to sentinel values; this never raises for an unreadable file.
        """
        path = Path(entry.path)
        st = entry.stat or path.stat()
        full_path = catalogue_path(entry.path)
        dir_name, file_name = os.path.split(full_path)

        tags = {}
        if os.access(path, os.R_OK):
            hash_res = self.hasher.compute(path, entry.path)
        else:
            logging.warning(f"Unable to read {entry.path}, so no digest, MIME or file type recorded")
            hash_res = self.hasher.unreadable()

        if hash_res.readable:
            kind = self.classifier.classify(path, entry.path)
            try:
                tags = self.metadata.extract(path)
            except Exception as e:
                logging.warning(f"Metadata extraction failed for {entry.path}: {e}")
        else:
            kind = Classification()

        fields = descriptive_fields(tags)
        return FileRecord(
            full_path=full_path,
            dir_name=dir_name,
            file_name=file_name,
            file_extension=file_extension(file_name),
            mtime=format_mtime(st.st_mtime),
            size_bytes=st.st_size,
            size_blocks=getattr(st, 'st_blocks', None),
            block_size=getattr(st, 'st_blksize', None),
            digests=hash_res.digests,
            mime_type=kind.mime_type,
            file_type=kind.description,
            author=fields['author'],
            title=fields['title'],
            comment=fields['comment'],
            copyright=fields['copyright'],
            source=source_fields(tags),
        )
