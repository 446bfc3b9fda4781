import hashlib
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List

from .. import config


@dataclass
class HashResult:
    digests: Dict[str, str] = field(default_factory=dict)
    readable: bool = True  # False when the file could not be opened


class FileHasher:
    """
    Computes every configured digest in a single read pass.
    """

    def __init__(self, methods: List[str], chunk_size: int = config.HASH_CHUNK_SIZE):
        self.methods = [config.canonical_digest_method(m) for m in methods]
        self.chunk_size = chunk_size

    def compute(self, path: Path, display_path: str = '') -> HashResult:
        """
        Returns method -> lowercase hex digest.

        If the file cannot be read every method gets the sentinel '0' and a
        warning is logged; the caller carries on with the partial record.
        """
        hashers = {m: hashlib.new(config.DIGEST_METHODS[m][0]) for m in self.methods}
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(self.chunk_size):
                    for h in hashers.values():
                        h.update(chunk)
        except OSError as e:
            logging.warning(f"Unable to read {display_path or path} ({e})")
            return self.unreadable()

        return HashResult({m: h.hexdigest() for m, h in hashers.items()})

    def unreadable(self) -> HashResult:
        return HashResult({m: config.UNREADABLE_DIGEST for m in self.methods}, readable=False)
