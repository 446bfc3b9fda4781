import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO

from . import config
from .database.db import DBManager
from .database.ops import DBOperations
from .scanning.filesystem import DiskScanner, catalogue_path


@dataclass
class ScanStats:
    directories: int = 0
    files: int = 0
    unreadable: int = 0


class CatalogueApp:
    def __init__(self, cfg: config.CatalogueConfig):
        self.cfg = cfg
        self.db_manager = DBManager(cfg.db_path, busy_timeout=cfg.busy_timeout)

    def build(self,
              root: Path,
              init_db: bool = False,
              progress: Optional[TextIO] = None,
              scanner: Optional[DiskScanner] = None) -> ScanStats:
        """
        Walks root and upserts every directory and regular file into the
        catalogue. Each processed path is written to `progress`, one per line.

        The catalogue is (re)initialised when init_db is set or the database
        file does not exist yet.
        """
        progress = progress if progress is not None else sys.stdout
        stats = ScanStats()

        if init_db or not self.cfg.db_path.exists():
            logging.info(f"Initialising catalogue {self.cfg.db_path}")
            self.db_manager.initialise()

        with self.db_manager as conn:
            db_ops = DBOperations(conn)
            scanner = scanner or DiskScanner(self.cfg)

            logging.info(f"Scanning {root} (digests={','.join(self.cfg.digest_methods)}, "
                         f"mime={scanner.classifier.name})...")

            for entry, record in scanner.scan(root):
                name = catalogue_path(entry.path)
                if record is None:
                    db_ops.upsert_directory(name)
                    stats.directories += 1
                else:
                    # Source first so the file's foreign key resolves
                    record.source_id = db_ops.upsert_source(record.source)
                    db_ops.upsert_file(record)
                    stats.files += 1
                    if record.digests.get('MD5') == config.UNREADABLE_DIGEST:
                        stats.unreadable += 1
                    if stats.files % config.COMMIT_INTERVAL == 0:
                        conn.commit()

                print(name, file=progress)

            db_ops.refresh_directory_counts()
            conn.commit()

        logging.info(f"Scan complete. Processed {stats.files} files in {stats.directories} directories "
                     f"({stats.unreadable} unreadable).")
        return stats
