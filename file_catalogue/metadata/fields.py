"""
Fallback-chain selection of catalogue fields from extracted tags.

Each field takes the first tag present in its chain (config.FIELD_FALLBACKS,
config.SOURCE_FALLBACKS); values are never merged.
"""
from typing import Dict, Iterable, Optional

from .. import config
from ..models import SourceFields


def first_present(tags: Dict[str, str], chain: Iterable[str]) -> Optional[str]:
    for tag in chain:
        value = tags.get(tag)
        if value:
            return value
    return None


def descriptive_fields(tags: Dict[str, str]) -> Dict[str, Optional[str]]:
    """Returns author/title/comment/copyright picked from tags."""
    return {name: first_present(tags, chain) for name, chain in config.FIELD_FALLBACKS.items()}


def source_fields(tags: Dict[str, str]) -> SourceFields:
    """Builds the provenance tuple; Make falls back to the ICC ManufacturerName."""
    return SourceFields(**{
        name: first_present(tags, chain) for name, chain in config.SOURCE_FALLBACKS.items()
    })
