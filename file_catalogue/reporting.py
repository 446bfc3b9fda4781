from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Any

from .database.ops import DBOperations


@dataclass
class CatalogueSummary:
    total_files: int = 0
    unique_md5: int = 0
    unique_sha256: int = 0
    unique_mime: int = 0
    unique_extensions: int = 0
    directories: int = 0
    unique_file_names: int = 0
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    mean_size: Optional[float] = None
    sum_size: Optional[int] = None
    sources: int = 0
    top_mime: List[Tuple[Any, int]] = field(default_factory=list)
    top_extensions: List[Tuple[Any, int]] = field(default_factory=list)


def summarize(db: DBOperations, top: int = 0) -> CatalogueSummary:
    """Collects catalogue-wide counts; `top` > 0 adds MIME/extension breakdowns."""
    min_size, max_size, mean_size, sum_size = db.size_stats()
    summary = CatalogueSummary(
        total_files=db.count_files(),
        unique_md5=db.count_distinct('MD5'),
        unique_sha256=db.count_distinct('SHA256'),
        unique_mime=db.count_distinct('MIMEType'),
        unique_extensions=db.count_distinct('fileExtension'),
        # The directories table also holds empty directories
        directories=db.count_directories(),
        unique_file_names=db.count_distinct('fileName'),
        min_size=min_size,
        max_size=max_size,
        mean_size=mean_size,
        sum_size=sum_size,
        sources=db.count_sources(),
    )
    if top > 0:
        summary.top_mime = db.group_counts('MIMEType', limit=top)
        summary.top_extensions = db.group_counts('fileExtension', limit=top)
    return summary


def _fmt(value) -> str:
    if value is None:
        return ''
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def format_summary(summary: CatalogueSummary, db_name: str = '') -> List[str]:
    lines = []
    if db_name:
        lines.append(f"# Catalogue database: {db_name}")
    lines += [
        f"# Total files: {summary.total_files}",
        f"# Total unique MD5: {summary.unique_md5}",
        f"# Total unique SHA256: {summary.unique_sha256}",
        f"# Total unique MIME: {summary.unique_mime}",
        f"# Total unique file extensions: {summary.unique_extensions}",
        f"# Total number of directories: {summary.directories}",
        f"# Total unique file names: {summary.unique_file_names}",
        f"# Minimum file size: {_fmt(summary.min_size)}",
        f"# Maximum file size: {_fmt(summary.max_size)}",
        f"# Mean file size: {_fmt(summary.mean_size)}",
        f"# Sum file size: {_fmt(summary.sum_size)}",
        f"# Total data sources: {summary.sources}",
    ]
    for title, rows in (("MIME types", summary.top_mime), ("file extensions", summary.top_extensions)):
        if rows:
            lines.append(f"# Top {title}:")
            lines += [f"#   {count:8d}  {value if value else '(none)'}" for value, count in rows]
    return lines
