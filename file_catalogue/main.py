import argparse
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

from . import config
from .core import CatalogueApp
from .database.db import DBManager
from .database.ops import DBOperations
from .exceptions import FileCatalogueError
from .reconcile.merge import CatalogueMerger
from .reconcile.nonoverlap import NonOverlapFinder, write_header
from .reconcile.verify import DuplicateVerifier
from .reporting import summarize, format_summary


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Warnings and errors go to stderr; optionally mirrored to a log file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: list = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)


def parse_args(argv=None):
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging / verbose output")
    common.add_argument("--log-file", type=Path, default=None, help="Also write log messages to this file")

    p = argparse.ArgumentParser(prog="file-catalogue",
                                description="Build and reconcile catalogues of files on disk.")
    sub = p.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", parents=[common], help="Catalogue a directory tree")
    scan.add_argument("-d", "--directory", type=Path, default=Path("."), help="Directory to process [.]")
    scan.add_argument("-c", "--checksum", default=config.DEFAULT_DIGESTS,
                      help=f"Digest methods, comma separated [{config.DEFAULT_DIGESTS}]")
    scan.add_argument("-m", "--mime", choices=config.MIME_METHODS, default="auto", help="MIME detection method")
    scan.add_argument("--file-utility", default=config.FILE_UTILITY, help="Path to the 'file' utility")
    scan.add_argument("--no-exiftool", action="store_true", help="Do not call exiftool for metadata")
    scan.add_argument("--dbinit", action="store_true", help="Initialise (wipe) the database first")
    scan.add_argument("--dbfile", type=Path, default=Path(config.DEFAULT_DB_FILENAME), help="Database filename")
    scan.add_argument("--workers", type=int, default=1, help="Parallel workers for hashing/metadata [1]")

    merge = sub.add_parser("merge", parents=[common], help="Merge catalogues into a new one")
    merge.add_argument("-o", "--targetdb", type=Path, default=Path(config.DEFAULT_MERGED_DB_FILENAME),
                       help="Target database filename")
    merge.add_argument("sources", nargs="+", type=Path, help="Source catalogue databases")

    nonoverlap = sub.add_parser("nonoverlap", parents=[common],
                                help="List digests of a query catalogue absent from search catalogues")
    nonoverlap.add_argument("-c", "--checksum", default="MD5", help="Digest method [MD5]")
    nonoverlap.add_argument("--dbfile", type=Path, required=True, help="Query database")
    nonoverlap.add_argument("-o", "--output", type=Path, default=None, help="Write QD/SD/CK/FI report here")
    nonoverlap.add_argument("search", nargs="+", type=Path, help="Search databases")

    verify = sub.add_parser("verify", parents=[common], help="Byte-compare files sharing a digest")
    verify.add_argument("-c", "--checksum", default="MD5", help="Digest method [MD5]")
    verify.add_argument("--dbfile", type=Path, default=Path(config.DEFAULT_DB_FILENAME), help="Database filename")
    verify.add_argument("--base-dir", type=Path, default=None, help="Directory the scan was run from")

    summary = sub.add_parser("summary", parents=[common], help="Summary statistics for a catalogue")
    summary.add_argument("--dbfile", type=Path, default=Path(config.DEFAULT_DB_FILENAME), help="Database filename")
    summary.add_argument("--top", type=int, default=0, help="Also list the N most common MIME types/extensions")

    return p.parse_args(argv)


def run_scan(args) -> int:
    cfg = config.CatalogueConfig.from_strings(
        db_path=args.dbfile,
        digests=args.checksum,
        mime_method=args.mime,
        file_utility=args.file_utility,
        use_exiftool=not args.no_exiftool,
        workers=args.workers,
    )
    if not args.directory.is_dir():
        logging.error(f"Not a directory: {args.directory}")
        return 1
    app = CatalogueApp(cfg)
    app.build(args.directory, init_db=args.dbinit)
    return 0


def run_merge(args) -> int:
    merger = CatalogueMerger(args.targetdb, show_progress=args.verbose)
    stats = merger.merge(args.sources)
    for name, count in stats.per_catalogue.items():
        print(f"{name}\tRows: {count}")
    return 0


def run_nonoverlap(args) -> int:
    # Check all inputs before opening anything
    missing = [p for p in [args.dbfile, *args.search] if not p.is_file()]
    for p in missing:
        logging.error(f"Database file not accessible: {p}")
    if missing:
        logging.error(f"Unable to access {len(missing)} databases [abort]")
        return 1

    with ExitStack() as stack:
        report = None
        if args.output:
            try:
                report = stack.enter_context(args.output.open("w", encoding="utf-8"))
            except OSError as e:
                logging.error(f"Unable to open output file {args.output}: {e}")
                return 1
            write_header(report, str(args.dbfile), [str(p) for p in args.search])

        print(f"# Query database: {args.dbfile}")
        query = DBOperations(stack.enter_context(DBManager(args.dbfile, read_only=True)), read_only=True)
        search = []
        for path in args.search:
            print(f"# Search database: {path}")
            search.append(DBOperations(stack.enter_context(DBManager(path, read_only=True)), read_only=True))

        finder = NonOverlapFinder(query, search, args.checksum)
        summary = finder.run(report=report, verbose=sys.stdout if args.verbose else None)
        print("\n".join(summary.lines()))
    return 0


def run_verify(args) -> int:
    with DBManager(args.dbfile, read_only=True) as conn:
        print(f"For database: {args.dbfile}")
        verifier = DuplicateVerifier(DBOperations(conn, read_only=True), args.checksum, args.base_dir)
        summary = verifier.run()
    print(summary.line())
    return 0


def run_summary(args) -> int:
    with DBManager(args.dbfile, read_only=True) as conn:
        summary = summarize(DBOperations(conn, read_only=True), top=args.top)
    print("\n".join(format_summary(summary, str(args.dbfile))))
    return 0


COMMANDS = {
    "scan": run_scan,
    "merge": run_merge,
    "nonoverlap": run_nonoverlap,
    "verify": run_verify,
    "summary": run_summary,
}


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        status = COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except FileCatalogueError as e:
        logging.error(f"{e} [abort]")
        sys.exit(1)
    except Exception:
        logging.exception(f"Fatal error during {args.command}.")
        sys.exit(1)
    sys.exit(status)


if __name__ == "__main__":
    main()
