"""
Database connection management.
"""
import sqlite3
import logging
from pathlib import Path
from typing import Optional

from .. import config
from ..exceptions import CatalogueNotFoundError, DatabaseError
from .schema import init_schema


class DBManager:
    """
    Owns the single connection to one catalogue file.

    Read-write handles require the file to exist unless ``create`` is set;
    read-only handles open the file through an SQLite ``mode=ro`` URI.
    """

    def __init__(self, db_path: Path, read_only: bool = False,
                 busy_timeout: float = config.BUSY_TIMEOUT_SEC):
        self.db_path = Path(db_path)
        self.read_only = read_only
        self.busy_timeout = busy_timeout
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self, create: bool = False) -> sqlite3.Connection:
        """
        Connects to the SQLite database and configures pragmas.
        """
        if self._conn:
            return self._conn

        if not self.db_path.is_file():
            if self.read_only or not create:
                raise CatalogueNotFoundError(f"Catalogue database not found: {self.db_path}")

        mode = "read-only" if self.read_only else "read-write"
        logging.info(f"Connecting to database ({mode}): {self.db_path}")
        try:
            if self.read_only:
                uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
                self._conn = sqlite3.connect(uri, uri=True, timeout=self.busy_timeout)
            else:
                self._conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
            self._conn.execute("PRAGMA foreign_keys=ON;")
            # Fails early on files that are not SQLite databases
            self._conn.execute("SELECT name FROM sqlite_master LIMIT 1;").fetchall()
        except sqlite3.Error as e:
            self.close()
            raise CatalogueNotFoundError(f"Unable to open catalogue {self.db_path}: {e}") from e

        return self._conn

    def initialise(self) -> sqlite3.Connection:
        """
        Deletes any existing catalogue at db_path and creates an empty one.
        """
        if self.read_only:
            raise DatabaseError(f"Cannot initialise read-only catalogue: {self.db_path}")
        self.close()
        try:
            if self.db_path.exists():
                logging.debug(f"Deleting old database: {self.db_path}")
                self.db_path.unlink()
        except OSError as e:
            raise DatabaseError(f"Unable to remove old catalogue {self.db_path}: {e}") from e

        conn = self.connect(create=True)
        init_schema(conn)
        return conn

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
