"""
Find digests present in a query catalogue but absent from every search catalogue.

Report stream records (tab separated):
  QD  query database        SD  search database
  CK  non-overlapping digest FI  file path carrying that digest
"""
from dataclasses import dataclass
from typing import Iterator, List, Optional, TextIO, Tuple

from .. import config
from ..database.ops import DBOperations


@dataclass
class NonOverlapSummary:
    method: str
    query_unique: int = 0
    match_found: int = 0
    match_not_found: int = 0
    files_not_matched: int = 0

    def lines(self) -> List[str]:
        return [
            f"# For {self.query_unique} unique checksums:",
            f"# * {self.match_found} found matches",
            f"# * {self.match_not_found} checksums did not find matches",
            f"# * {self.files_not_matched} files did not find matches",
            "# " + "=" * 40,
        ]


class NonOverlapFinder:
    def __init__(self, query: DBOperations, search: List[DBOperations], method: str = 'MD5'):
        self.query = query
        self.search = search
        self.method = config.canonical_digest_method(method)
        self.summary = NonOverlapSummary(self.method)

    def iter_unmatched(self) -> Iterator[Tuple[str, List[str]]]:
        """
        Yields (digest, query file paths) for each distinct query digest with
        zero matching files across all search catalogues combined.
        Updates self.summary as it goes.
        """
        summary = self.summary
        for digest in self.query.distinct_digests(self.method):
            summary.query_unique += 1
            found = sum(ops.count_files_with_digest(self.method, digest) for ops in self.search)
            if found > 0:
                summary.match_found += 1
                continue

            summary.match_not_found += 1
            paths = self.query.files_with_digest(self.method, digest)
            summary.files_not_matched += len(paths)
            yield digest, paths

    def run(self,
            report: Optional[TextIO] = None,
            verbose: Optional[TextIO] = None) -> NonOverlapSummary:
        """
        Consumes iter_unmatched(), mirroring CK/FI records to `report` and
        human-readable lines to `verbose` when given.
        """
        for digest, paths in self.iter_unmatched():
            if verbose is not None:
                print(f"{self.method} {digest} not overlapping", file=verbose)
                for path in paths:
                    print(f"= {path}", file=verbose)
            if report is not None:
                print(f"CK\t{digest}", file=report)
                for path in paths:
                    print(f"FI\t{path}", file=report)
        return self.summary


def write_header(report: TextIO, query_name: str, search_names: List[str]):
    print(f"QD\t{query_name}", file=report)
    for name in search_names:
        print(f"SD\t{name}", file=report)
