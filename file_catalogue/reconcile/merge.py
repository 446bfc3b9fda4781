"""
Merge independently built catalogues into one target catalogue.

Inputs are assumed to describe disjoint trees: a directory or file path that
appears in more than one input aborts the merge. Source rows are
deduplicated by provenance tuple, so sourceId values are remapped per input.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from tqdm import tqdm

from .. import config
from ..database.db import DBManager
from ..database.ops import DBOperations
from ..database.schema import FILE_COLUMNS
from ..exceptions import MergeError, DatabaseError

SOURCE_ID_INDEX = FILE_COLUMNS.index('sourceId')


@dataclass
class MergeStats:
    catalogues: int = 0
    directories: int = 0
    sources_added: int = 0
    sources_reused: int = 0
    files: int = 0
    per_catalogue: Dict[str, int] = field(default_factory=dict)


def build_source_mapping(source_ops: DBOperations, target_ops: DBOperations,
                         stats: Optional[MergeStats] = None) -> Dict[int, int]:
    """
    Maps every sourceId of the input onto a target sourceId, reusing target
    rows with an identical provenance tuple and inserting the rest.
    """
    mapping: Dict[int, int] = {}
    for source_id, fields in source_ops.iter_sources():
        existing = target_ops.find_source(fields)
        if existing is not None:
            mapping[source_id] = existing
            if stats:
                stats.sources_reused += 1
        else:
            mapping[source_id] = target_ops.upsert_source(fields)
            if stats:
                stats.sources_added += 1
    return mapping


def remap_file_rows(rows: Iterable[tuple], mapping: Dict[int, int]) -> Iterator[tuple]:
    """Lazily rewrites sourceId through mapping; a NULL sourceId stays NULL."""
    for row in rows:
        source_id = row[SOURCE_ID_INDEX]
        if source_id is not None:
            if source_id not in mapping:
                raise MergeError(f"File {row[0]} references unknown source {source_id}")
            row = row[:SOURCE_ID_INDEX] + (mapping[source_id],) + row[SOURCE_ID_INDEX + 1:]
        yield row


class CatalogueMerger:
    def __init__(self, target_path: Path, busy_timeout: float = config.BUSY_TIMEOUT_SEC,
                 show_progress: bool = False):
        self.target_path = Path(target_path)
        self.busy_timeout = busy_timeout
        self.show_progress = show_progress

    def merge(self, source_paths: List[Path]) -> MergeStats:
        """
        Initialises the target and copies each input into it, in order.
        """
        stats = MergeStats()
        # Fail before touching the target if any input is missing
        for path in source_paths:
            if not Path(path).is_file():
                raise MergeError(f"Source catalogue not found: {path}")

        target = DBManager(self.target_path, busy_timeout=self.busy_timeout)
        target.initialise()
        with target as target_conn:
            target_ops = DBOperations(target_conn)
            for path in source_paths:
                logging.info(f"Merging {path} -> {self.target_path}")
                with DBManager(path, read_only=True, busy_timeout=self.busy_timeout) as source_conn:
                    source_ops = DBOperations(source_conn, read_only=True)
                    copied = self.merge_one(source_ops, target_ops, stats, label=str(path))
                stats.per_catalogue[str(path)] = copied
                stats.catalogues += 1
                target_conn.commit()

        logging.info(f"Merged {stats.catalogues} catalogues: {stats.files} files, "
                     f"{stats.directories} directories, {stats.sources_added} sources "
                     f"({stats.sources_reused} reused).")
        return stats

    def merge_one(self, source_ops: DBOperations, target_ops: DBOperations,
                  stats: MergeStats, label: str = '') -> int:
        """Copies one input catalogue into the target; returns the file count copied."""
        try:
            # 1. Directories, verbatim
            stats.directories += target_ops.insert_directories(source_ops.iter_directories())

            # 2. Sources, deduplicated
            mapping = build_source_mapping(source_ops, target_ops, stats)

            # 3. Files, with sourceId remapped
            rows = remap_file_rows(source_ops.iter_file_rows(), mapping)
            if self.show_progress:
                rows = tqdm(rows, desc=f"Merging {label}", unit="file")
            copied = target_ops.insert_file_rows(rows)
        except MergeError:
            raise
        except DatabaseError as e:
            raise MergeError(f"Unable to merge {label}: {e}") from e

        stats.files += copied
        return copied
