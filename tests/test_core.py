import hashlib
import io
import os
import sqlite3

import pytest

from file_catalogue.core import CatalogueApp
from file_catalogue.scanning import filesystem
from file_catalogue.scanning.filesystem import DiskScanner
from file_catalogue.scanning.classifier import ExtensionClassifier


class TagsByName:
    def __init__(self, tags_by_name):
        self.tags_by_name = tags_by_name

    def extract(self, path):
        return dict(self.tags_by_name.get(path.name, {}))


def _tree(tmp_path):
    root = tmp_path / "tree"
    (root / "photos").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "photos" / "a.jpg").write_bytes(b"aaa")
    (root / "photos" / "b.jpg").write_bytes(b"bbb")
    (root / "photos" / "c.jpg").write_bytes(b"ccc")
    (root / "notes.txt").write_text("hello")
    (root / "empty.qqx").write_bytes(b"")
    return root


def _rows(db_path, sql):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(sql).fetchall()
    finally:
        conn.close()


def test_build_catalogue(tmp_path, cfg):
    root = _tree(tmp_path)
    progress = io.StringIO()

    stats = CatalogueApp(cfg).build(root, progress=progress)

    assert stats.files == 5
    assert stats.directories == 3
    assert stats.unreadable == 0

    lines = progress.getvalue().splitlines()
    assert len(lines) == 8
    assert lines[0] == str(root)
    assert str(root / "photos" / "a.jpg") in lines

    empty_row = _rows(cfg.db_path, f"SELECT MD5, SHA256, MIMEType, fileExtension, dirName "
                                   f"FROM files WHERE fileName = 'empty.qqx'")
    assert empty_row == [("d41d8cd98f00b204e9800998ecf8427e",
                          "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
                          "unknown", "qqx", str(root))]

    dirs = dict(_rows(cfg.db_path, "SELECT dirName, numFiles FROM directories"))
    assert dirs == {str(root): 2, str(root / "photos"): 3, str(root / "empty"): 0}


def test_rescan_is_idempotent(tmp_path, cfg):
    root = _tree(tmp_path)
    app = CatalogueApp(cfg)

    app.build(root, progress=io.StringIO())
    first = _rows(cfg.db_path, "SELECT * FROM files ORDER BY fullFilename")
    first_sources = _rows(cfg.db_path, "SELECT * FROM source ORDER BY sourceId")

    app.build(root, progress=io.StringIO())
    second = _rows(cfg.db_path, "SELECT * FROM files ORDER BY fullFilename")
    second_sources = _rows(cfg.db_path, "SELECT * FROM source ORDER BY sourceId")

    assert first == second
    assert first_sources == second_sources
    assert len(second) == 5


def test_dbinit_wipes_previous_catalogue(tmp_path, cfg):
    root = _tree(tmp_path)
    app = CatalogueApp(cfg)
    app.build(root, progress=io.StringIO())

    other = tmp_path / "other"
    other.mkdir()
    (other / "x.txt").write_text("x")
    app.build(other, init_db=True, progress=io.StringIO())

    assert _rows(cfg.db_path, "SELECT COUNT(*) FROM files") == [(1,)]


def test_sources_are_shared_by_provenance(tmp_path, cfg):
    root = _tree(tmp_path)
    tags = {
        "a.jpg": {"Make": "Canon", "Model": "EOS 5D"},
        "b.jpg": {"Make": "Canon", "Model": "EOS 5D", "Artist": "Ann"},
        "c.jpg": {"Make": "Canon", "Model": "EOS 6D"},
    }
    scanner = DiskScanner(cfg, classifier=ExtensionClassifier(), metadata=TagsByName(tags))
    CatalogueApp(cfg).build(root, progress=io.StringIO(), scanner=scanner)

    refs = dict(_rows(cfg.db_path, "SELECT fileName, sourceId FROM files"))
    assert refs["a.jpg"] == refs["b.jpg"]
    assert refs["a.jpg"] != refs["c.jpg"]
    # Files with no provenance at all share the all-NULL source
    assert refs["notes.txt"] == refs["empty.qqx"]
    assert refs["notes.txt"] not in (refs["a.jpg"], refs["c.jpg"])
    assert _rows(cfg.db_path, "SELECT COUNT(*) FROM source") == [(3,)]

    author = _rows(cfg.db_path, "SELECT Author, MIMEType FROM files WHERE fileName = 'b.jpg'")
    assert author == [("Ann", "image/jpeg")]


def test_unreadable_file_is_still_recorded(monkeypatch, tmp_path, cfg):
    root = _tree(tmp_path)
    real_access = filesystem.os.access

    def deny_notes(path, mode):
        if str(path).endswith("notes.txt"):
            return False
        return real_access(path, mode)

    monkeypatch.setattr(filesystem.os, "access", deny_notes)
    stats = CatalogueApp(cfg).build(root, progress=io.StringIO())

    assert stats.unreadable == 1
    row = _rows(cfg.db_path, "SELECT MD5, SHA256, MIMEType, fileType, sizeBytes FROM files "
                             "WHERE fileName = 'notes.txt'")
    assert row == [("0", "0", "unknown", "", 5)]


def test_non_utf8_file_name_is_catalogued(tmp_path, cfg):
    root = tmp_path / "tree"
    root.mkdir()
    (root / "ok.txt").write_text("ok")
    try:
        with open(os.path.join(os.fsencode(root), b"bad\xff.txt"), "wb") as f:
            f.write(b"raw")
    except OSError:
        pytest.skip("filesystem rejects non-UTF-8 names")
    progress = io.StringIO()

    stats = CatalogueApp(cfg).build(root, progress=progress)

    assert stats.files == 2
    stored = f"{root}/bad\\xff.txt"
    assert stored in progress.getvalue().splitlines()
    row = _rows(cfg.db_path, "SELECT fullFilename, dirName, fileName, fileExtension, MD5 FROM files "
                             "WHERE fileName LIKE 'bad%'")
    assert row == [(stored, str(root), "bad\\xff.txt", "txt", hashlib.md5(b"raw").hexdigest())]
