import sqlite3
import logging
from typing import Optional, Tuple, List, Dict, Any, Iterable, Iterator

from .. import config
from ..exceptions import DatabaseError, ReadOnlyCatalogueError, ConfigurationError
from ..models import FileRecord, SourceFields
from .schema import FILE_COLUMNS, DIRECTORY_COLUMNS

SOURCE_COLUMNS = SourceFields.columns()

# NULL-aware tuple match, shared by scanning and merging
_SOURCE_MATCH = " AND ".join(f"{col} IS ?" for col in SOURCE_COLUMNS)


class DBOperations:
    def __init__(self, conn: sqlite3.Connection, read_only: bool = False):
        self.conn = conn
        self.read_only = read_only

    # --- Write helpers ---

    def _execute_write(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        self._check_writable()
        try:
            return self.conn.execute(sql, tuple(params))
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise self._wrap_write_error(e, sql) from e

    def _check_writable(self):
        if self.read_only:
            raise ReadOnlyCatalogueError("Catalogue is open read-only; writes are rejected.")

    def _wrap_write_error(self, err: Exception, sql: str) -> DatabaseError:
        if isinstance(err, sqlite3.OperationalError) and 'readonly' in str(err).replace(' ', '').lower():
            return ReadOnlyCatalogueError(f"Catalogue is read-only: {err}")
        statement = " ".join(sql.split())[:80]
        return DatabaseError(f"Write rejected ({err}): {statement}")

    def commit(self):
        if not self.read_only:
            self.conn.commit()

    # --- Sources ---

    def find_source(self, source: SourceFields) -> Optional[int]:
        """Returns the sourceId whose field tuple equals source, or None."""
        cur = self.conn.execute(
            f"SELECT sourceId FROM source WHERE {_SOURCE_MATCH} ORDER BY sourceId LIMIT 1",
            source.normalized().values(),
        )
        row = cur.fetchone()
        return int(row[0]) if row else None

    def upsert_source(self, source: SourceFields) -> int:
        """
        Find-or-insert for a provenance tuple. Existing rows are never updated,
        so the first key issued for a tuple is reused for every later match.
        """
        source = source.normalized()
        existing = self.find_source(source)
        if existing is not None:
            return existing

        cols = ", ".join(SOURCE_COLUMNS)
        marks = ", ".join("?" for _ in SOURCE_COLUMNS)
        cur = self._execute_write(f"INSERT INTO source ({cols}) VALUES ({marks})", source.values())
        if cur.lastrowid is None:
            raise DatabaseError("Database INSERT failed to return a source ID.")
        logging.debug(f"New source {cur.lastrowid}: {source}")
        return int(cur.lastrowid)

    def iter_sources(self) -> Iterator[Tuple[int, SourceFields]]:
        cur = self.conn.execute(f"SELECT sourceId, {', '.join(SOURCE_COLUMNS)} FROM source ORDER BY sourceId")
        for row in cur:
            yield int(row[0]), SourceFields(*row[1:])

    def count_sources(self) -> int:
        return self.conn.execute("SELECT COUNT(sourceId) FROM source").fetchone()[0]

    # --- Directories ---

    def upsert_directory(self, dir_name: str):
        """Adds a directory row; an existing row (and its numFiles) is kept."""
        self._execute_write("INSERT OR IGNORE INTO directories (dirName) VALUES (?)", (dir_name,))

    def insert_directories(self, rows: Iterable[Tuple[str, Optional[int]]]) -> int:
        """Strict bulk insert: a dirName already present is an error."""
        self._check_writable()
        cur = self.conn.cursor()
        try:
            cur.executemany("INSERT INTO directories (dirName, numFiles) VALUES (?, ?)", rows)
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise self._wrap_write_error(e, "INSERT INTO directories") from e
        return cur.rowcount

    def iter_directories(self) -> Iterator[Tuple[str, Optional[int]]]:
        return iter(self.conn.execute(f"SELECT {', '.join(DIRECTORY_COLUMNS)} FROM directories"))

    def count_directories(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM (SELECT DISTINCT dirName FROM directories) T").fetchone()[0]

    def refresh_directory_counts(self):
        """Recomputes numFiles for every directory from the files table."""
        self._execute_write("""
            UPDATE directories
            SET numFiles = (SELECT COUNT(*) FROM files WHERE files.dirName = directories.dirName)
        """)

    # --- Files ---

    def upsert_file(self, rec: FileRecord):
        """Insert-or-replace keyed by full path; the new row replaces the old one entirely."""
        row = self._file_row(rec)
        cols = ", ".join(FILE_COLUMNS)
        marks = ", ".join("?" for _ in FILE_COLUMNS)
        self._execute_write(f"INSERT OR REPLACE INTO files ({cols}) VALUES ({marks})", row)

    def insert_file_rows(self, rows: Iterable[tuple]) -> int:
        """
        Strict bulk insert of raw rows in FILE_COLUMNS order.
        Rows are consumed lazily, so a generator keeps memory bounded.
        """
        self._check_writable()
        cols = ", ".join(FILE_COLUMNS)
        marks = ", ".join("?" for _ in FILE_COLUMNS)
        cur = self.conn.cursor()
        try:
            cur.executemany(f"INSERT INTO files ({cols}) VALUES ({marks})", rows)
        except (sqlite3.Error, UnicodeEncodeError) as e:
            raise self._wrap_write_error(e, "INSERT INTO files") from e
        return cur.rowcount

    def iter_file_rows(self) -> Iterator[tuple]:
        """Yields raw files rows in FILE_COLUMNS order."""
        return iter(self.conn.execute(f"SELECT {', '.join(FILE_COLUMNS)} FROM files"))

    def get_file(self, full_path: str) -> Optional[Dict[str, Any]]:
        cur = self.conn.execute(f"SELECT {', '.join(FILE_COLUMNS)} FROM files WHERE fullFilename = ?", (full_path,))
        row = cur.fetchone()
        return dict(zip(FILE_COLUMNS, row)) if row else None

    def count_files(self) -> int:
        return self.conn.execute("SELECT COUNT(fullFilename) FROM files").fetchone()[0]

    def _file_row(self, rec: FileRecord) -> tuple:
        values = {
            'fullFilename': rec.full_path,
            'mtime': rec.mtime,
            'sizeBytes': rec.size_bytes,
            'sizeBlocks': rec.size_blocks,
            'blockSize': rec.block_size,
            'MIMEType': rec.mime_type,
            'dirName': rec.dir_name,
            'fileName': rec.file_name,
            'fileExtension': rec.file_extension,
            'fileType': rec.file_type,
            'Author': rec.author,
            'Title': rec.title,
            'Comment': rec.comment,
            'Copyright': rec.copyright,
            'sourceId': rec.source_id,
        }
        for method, (_, column) in config.DIGEST_METHODS.items():
            values[column] = rec.digests.get(method)
        return tuple(values[col] for col in FILE_COLUMNS)

    # --- Digest queries ---

    def distinct_digests(self, method: str) -> Iterator[str]:
        column = config.digest_column(method)
        cur = self.conn.execute(f"SELECT DISTINCT {column} FROM files WHERE {column} IS NOT NULL")
        for (value,) in cur:
            yield value

    def count_files_with_digest(self, method: str, value: str) -> int:
        column = config.digest_column(method)
        cur = self.conn.execute(f"SELECT COUNT(fullFilename) FROM files WHERE {column} IS ?", (value,))
        return cur.fetchone()[0]

    def files_with_digest(self, method: str, value: str) -> List[str]:
        column = config.digest_column(method)
        cur = self.conn.execute(
            f"SELECT fullFilename FROM files WHERE {column} IS ? ORDER BY fullFilename", (value,))
        return [row[0] for row in cur.fetchall()]

    def duplicated_digests(self, method: str) -> List[Tuple[str, int]]:
        """Returns (digest, file count) for every digest shared by more than one file."""
        column = config.digest_column(method)
        cur = self.conn.execute(f"""
            SELECT {column}, COUNT({column}) FROM files
            WHERE {column} IS NOT NULL
            GROUP BY {column}
            HAVING COUNT({column}) > 1
            ORDER BY {column}
        """)
        return [(row[0], row[1]) for row in cur.fetchall()]

    # --- Summary queries ---

    def count_distinct(self, column: str, table: str = 'files') -> int:
        column = self._checked_column(column, table)
        cur = self.conn.execute(f"SELECT COUNT(*) FROM (SELECT DISTINCT {column} FROM {table}) T")
        return cur.fetchone()[0]

    def group_counts(self, column: str, limit: Optional[int] = None) -> List[Tuple[Any, int]]:
        """Returns (value, file count) per distinct value, most frequent first."""
        column = self._checked_column(column, 'files')
        sql = f"SELECT {column}, COUNT(*) AS n FROM files GROUP BY {column} ORDER BY n DESC, {column}"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        return [(row[0], row[1]) for row in self.conn.execute(sql, params).fetchall()]

    def size_stats(self) -> Tuple[Optional[int], Optional[int], Optional[float], Optional[int]]:
        """Returns (min, max, mean, sum) of sizeBytes."""
        cur = self.conn.execute("SELECT MIN(sizeBytes), MAX(sizeBytes), AVG(sizeBytes), SUM(sizeBytes) FROM files")
        return cur.fetchone()

    def _checked_column(self, column: str, table: str) -> str:
        allowed = {
            'files': FILE_COLUMNS,
            'directories': DIRECTORY_COLUMNS,
            'source': ('sourceId',) + SOURCE_COLUMNS,
        }.get(table)
        if allowed is None or column not in allowed:
            raise ConfigurationError(f"Unknown column {table}.{column}")
        return column
