import pytest

from file_catalogue.exceptions import DuplicateVerificationError
from file_catalogue.reconcile.verify import DuplicateVerifier
from conftest import make_record


def _catalogue(db_ops, entries):
    """entries: (path, md5)"""
    for path, md5 in entries:
        db_ops.upsert_directory(str(path.parent))
        db_ops.upsert_file(make_record(str(path), md5=md5))
    db_ops.commit()


def test_identical_duplicates(tmp_path, db_ops):
    a = tmp_path / "a.txt"
    b = tmp_path / "b.txt"
    a.write_text("same")
    b.write_text("same")
    _catalogue(db_ops, [(a, "d1"), (b, "d1")])

    summary = DuplicateVerifier(db_ops).run()

    assert summary.groups_checked == 1
    assert summary.non_identical == 0
    assert summary.line() == "0 of 1 digests grouped non-identical files."


def test_colliding_digest_is_reported(tmp_path, db_ops, caplog):
    a, b, c = (tmp_path / n for n in ("a.txt", "b.txt", "c.txt"))
    a.write_text("one")
    b.write_text("two")
    c.write_text("one")
    # Fake shared digest over different contents
    _catalogue(db_ops, [(a, "d1"), (b, "d1"), (c, "d2")])
    (tmp_path / "d.txt").write_text("one")
    _catalogue(db_ops, [(tmp_path / "d.txt", "d2")])

    summary = DuplicateVerifier(db_ops, "md5").run()

    assert summary.groups_checked == 2
    assert summary.non_identical == 1
    assert summary.non_identical_digests == ["d1"]
    assert "non-identical files: d1" in caplog.text


def test_unreadable_sentinel_group_aborts(tmp_path, db_ops):
    # Files recorded as unreadable during the scan share the "0" digest
    _catalogue(db_ops, [(tmp_path / "gone1", "0"), (tmp_path / "gone2", "0")])

    with pytest.raises(DuplicateVerificationError):
        DuplicateVerifier(db_ops).run()


def test_missing_first_file_aborts(tmp_path, db_ops):
    b = tmp_path / "b.txt"
    b.write_text("x")
    _catalogue(db_ops, [(tmp_path / "a.txt", "d1"), (b, "d1")])

    with pytest.raises(DuplicateVerificationError):
        DuplicateVerifier(db_ops).run()


def test_missing_later_file_counts_as_different(tmp_path, db_ops):
    a = tmp_path / "a.txt"
    a.write_text("x")
    _catalogue(db_ops, [(a, "d1"), (tmp_path / "b.txt", "d1")])

    assert DuplicateVerifier(db_ops).run().non_identical == 1


def test_relative_paths_use_base_dir(tmp_path, db_ops):
    (tmp_path / "photos").mkdir()
    (tmp_path / "photos" / "a.jpg").write_bytes(b"img")
    (tmp_path / "photos" / "b.jpg").write_bytes(b"img")
    db_ops.upsert_directory("photos")
    db_ops.upsert_file(make_record("photos/a.jpg", md5="d1"))
    db_ops.upsert_file(make_record("photos/b.jpg", md5="d1"))

    summary = DuplicateVerifier(db_ops, base_dir=tmp_path).run()
    assert (summary.groups_checked, summary.non_identical) == (1, 0)
