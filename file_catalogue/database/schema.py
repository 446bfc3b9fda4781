"""
Database schema definitions.
"""
import sqlite3
import logging

from ..exceptions import DatabaseError

TABLES = ('files', 'directories', 'source')

# Whitelisted files columns, in bulk-copy order
FILE_COLUMNS = (
    'fullFilename', 'mtime', 'sizeBytes', 'sizeBlocks', 'blockSize',
    'MD5', 'SHA1', 'SHA256', 'SHA512', 'MIMEType',
    'dirName', 'fileName', 'fileExtension', 'fileType',
    'Author', 'Title', 'Comment', 'Copyright', 'sourceId',
)
DIRECTORY_COLUMNS = ('dirName', 'numFiles')


def init_schema(conn: sqlite3.Connection):
    """
    Drops any existing catalogue tables and recreates them empty.
    Destructive: every row in the three tables is lost.
    """
    try:
        with conn:
            # Children first so foreign keys never dangle
            for table in TABLES:
                conn.execute(f"DROP TABLE IF EXISTS {table};")

            # 1. Provenance (device / software)
            conn.execute("""
            CREATE TABLE source (
                sourceId        INTEGER PRIMARY KEY AUTOINCREMENT,
                Make            TEXT,
                Model           TEXT,
                Software        TEXT,
                FileSource      TEXT,
                SerialNumber    TEXT
            );
            """)

            # 2. Directories seen by the walk
            conn.execute("""
            CREATE TABLE directories (
                dirName         TEXT PRIMARY KEY,
                numFiles        INT
            );
            """)

            # 3. One row per file path
            conn.execute("""
            CREATE TABLE files (
                fullFilename    TEXT PRIMARY KEY,
                mtime           TEXT,
                sizeBytes       INT,
                sizeBlocks      INT,
                blockSize       INT,
                MD5             TEXT NOT NULL,
                SHA1            TEXT,
                SHA256          TEXT NOT NULL,
                SHA512          TEXT,
                MIMEType        TEXT NOT NULL,
                dirName         TEXT NOT NULL,
                fileName        TEXT NOT NULL,
                fileExtension   TEXT,
                fileType        TEXT,
                Author          TEXT,
                Title           TEXT,
                Comment         TEXT,
                Copyright       TEXT,
                sourceId        INTEGER,
                FOREIGN KEY(dirName) REFERENCES directories(dirName),
                FOREIGN KEY(sourceId) REFERENCES source(sourceId)
            );
            """)

            # 4. Indices for reconciliation queries
            conn.execute("CREATE INDEX idx_files_md5 ON files(MD5);")
            conn.execute("CREATE INDEX idx_files_sha256 ON files(SHA256);")
            conn.execute("CREATE INDEX idx_files_dirname ON files(dirName);")
            conn.execute("CREATE INDEX idx_files_source ON files(sourceId);")
    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to initialise catalogue schema: {e}") from e

    logging.debug("Database schema initialized.")
