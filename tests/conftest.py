import pytest
import sqlite3
from file_catalogue import config
from file_catalogue.database.db import DBManager
from file_catalogue.database.schema import init_schema
from file_catalogue.database.ops import DBOperations
from file_catalogue.models import FileRecord


@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    c.execute("PRAGMA foreign_keys=ON;")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)


@pytest.fixture
def cfg(tmp_path):
    """Deterministic config: extension-based MIME, no exiftool."""
    return config.CatalogueConfig(
        db_path=tmp_path / "catalogue.sqlite",
        mime_method="extension",
        use_exiftool=False,
    )


def make_record(path: str, md5: str = "m", sha256: str = "s", source_id=None, **kwargs) -> FileRecord:
    dir_name, _, file_name = path.rpartition("/")
    values = dict(
        full_path=path,
        dir_name=dir_name,
        file_name=file_name,
        file_extension=file_name.rpartition(".")[2] if "." in file_name else "",
        mtime="2020-01-01 00:00:00",
        size_bytes=10,
        size_blocks=8,
        block_size=4096,
        digests={"MD5": md5, "SHA-256": sha256},
        mime_type="text/plain",
        source_id=source_id,
    )
    values.update(kwargs)
    return FileRecord(**values)


@pytest.fixture
def make_catalogue(tmp_path):
    """
    Factory writing an on-disk catalogue.

    files: list of (path, md5, SourceFields or None)
    """
    def _make(name, files, directories=None):
        db_path = tmp_path / name
        manager = DBManager(db_path)
        conn = manager.initialise()
        ops = DBOperations(conn)
        dirs = set(directories or []) | {p.rpartition("/")[0] for p, _, _ in files}
        for d in sorted(dirs):
            ops.upsert_directory(d)
        for path, md5, source in files:
            source_id = ops.upsert_source(source) if source is not None else None
            ops.upsert_file(make_record(path, md5=md5, sha256=f"sha-{md5}", source_id=source_id))
        conn.commit()
        manager.close()
        return db_path

    return _make
