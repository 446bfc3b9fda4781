import io

import pytest

from file_catalogue.database.db import DBManager
from file_catalogue.database.ops import DBOperations
from file_catalogue.reconcile.nonoverlap import NonOverlapFinder, NonOverlapSummary, write_header


@pytest.fixture
def open_ro():
    managers = []

    def _open(path):
        manager = DBManager(path, read_only=True)
        managers.append(manager)
        return DBOperations(manager.connect(), read_only=True)

    yield _open
    for manager in managers:
        manager.close()


@pytest.fixture
def query_db(make_catalogue):
    return make_catalogue("query.sqlite", [
        ("/q/a1.txt", "A", None),
        ("/q/a2.txt", "A", None),
        ("/q/b.txt", "B", None),
        ("/q/c.txt", "C", None),
    ])


def test_unmatched_digests(make_catalogue, query_db, open_ro):
    search_db = make_catalogue("search.sqlite", [("/s/b.txt", "B", None)])

    finder = NonOverlapFinder(open_ro(query_db), [open_ro(search_db)], "MD5")
    unmatched = dict(finder.iter_unmatched())

    assert unmatched == {"A": ["/q/a1.txt", "/q/a2.txt"], "C": ["/q/c.txt"]}
    assert finder.summary == NonOverlapSummary("MD5", query_unique=3, match_found=1,
                                               match_not_found=2, files_not_matched=3)


def test_matches_combine_across_search_catalogues(make_catalogue, query_db, open_ro):
    s1 = make_catalogue("s1.sqlite", [("/s1/a.txt", "A", None)])
    s2 = make_catalogue("s2.sqlite", [("/s2/c.txt", "C", None), ("/s2/z.txt", "Z", None)])

    finder = NonOverlapFinder(open_ro(query_db), [open_ro(s1), open_ro(s2)])
    summary = finder.run()

    assert summary.match_found == 2
    assert summary.match_not_found == 1
    assert summary.files_not_matched == 1


def test_other_digest_method(make_catalogue, query_db, open_ro):
    # make_catalogue stores SHA256 as "sha-<md5>"
    search_db = make_catalogue("search.sqlite", [("/s/b.txt", "B", None)])

    finder = NonOverlapFinder(open_ro(query_db), [open_ro(search_db)], "sha256")
    assert sorted(d for d, _ in finder.iter_unmatched()) == ["sha-A", "sha-C"]
    assert finder.method == "SHA-256"


def test_report_and_verbose_output(make_catalogue, query_db, open_ro):
    search_db = make_catalogue("search.sqlite", [("/s/a.txt", "A", None), ("/s/b.txt", "B", None)])
    report = io.StringIO()
    verbose = io.StringIO()

    write_header(report, "query.sqlite", ["search.sqlite"])
    NonOverlapFinder(open_ro(query_db), [open_ro(search_db)]).run(report=report, verbose=verbose)

    assert report.getvalue().splitlines() == [
        "QD\tquery.sqlite",
        "SD\tsearch.sqlite",
        "CK\tC",
        "FI\t/q/c.txt",
    ]
    assert verbose.getvalue().splitlines() == ["MD5 C not overlapping", "= /q/c.txt"]


def test_summary_lines():
    lines = NonOverlapSummary("MD5", 3, 1, 2, 3).lines()
    assert lines[:4] == [
        "# For 3 unique checksums:",
        "# * 1 found matches",
        "# * 2 checksums did not find matches",
        "# * 3 files did not find matches",
    ]
