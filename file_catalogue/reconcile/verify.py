"""
Check that files grouped under one digest really are byte-identical.
"""
import filecmp
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .. import config
from ..database.ops import DBOperations
from ..exceptions import DuplicateVerificationError


@dataclass
class VerificationSummary:
    method: str
    groups_checked: int = 0
    non_identical: int = 0
    non_identical_digests: List[str] = field(default_factory=list)

    def line(self) -> str:
        return f"{self.non_identical} of {self.groups_checked} digests grouped non-identical files."


class DuplicateVerifier:
    def __init__(self, ops: DBOperations, method: str = 'MD5', base_dir: Optional[Path] = None):
        self.ops = ops
        self.method = config.canonical_digest_method(method)
        # Catalogue paths are relative to where the scan ran
        self.base_dir = Path(base_dir) if base_dir else None

    def run(self) -> VerificationSummary:
        """
        Byte-compares the first file of each duplicate group with the others.
        A group with any differing member is counted once and the run moves on.

        Raises DuplicateVerificationError when the first file of a group is
        unreadable, since there is no baseline to compare against.
        """
        summary = VerificationSummary(self.method)
        for digest, _count in self.ops.duplicated_digests(self.method):
            summary.groups_checked += 1
            if not self._group_identical(digest):
                logging.warning(f"{self.method} value finds non-identical files: {digest}")
                summary.non_identical += 1
                summary.non_identical_digests.append(digest)
        return summary

    def _group_identical(self, digest: str) -> bool:
        first, *others = [self._resolve(p) for p in self.ops.files_with_digest(self.method, digest)]
        try:
            with open(first, 'rb'):
                pass
        except OSError as e:
            raise DuplicateVerificationError(f"Unable to read {first}, so unable to compare ({e})") from e

        for other in others:
            try:
                if not filecmp.cmp(first, other, shallow=False):
                    return False
            except OSError as e:
                logging.warning(f"Unable to compare {first} with {other}: {e}")
                return False
        return True

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if self.base_dir and not p.is_absolute():
            return self.base_dir / p
        return p
