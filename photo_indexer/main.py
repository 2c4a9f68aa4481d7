import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from . import config
from .core import PhotoIndexerApp

def setup_logging(log_file: Optional[Path], verbose: bool):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Photo Indexer: build a catalog of photos from a media tree")

    p.add_argument("src", type=Path, help="Source directory to index")

    p.add_argument("--db", type=Path, default=None, help=f"Custom path for SQLite DB (default: src/{config.DEFAULT_DB_NAME})")
    p.add_argument("--related", type=Path, default=None, help="Only index the group of files related to this file")
    p.add_argument("--sidecar-dir", action="append", default=None, dest="sidecar_dirs",
                   help="Extra directory (relative to each file) holding related files; repeatable")
    p.add_argument("--workers", type=int, default=1, help="Number of groups reconciled in parallel")
    p.add_argument("--report-csv", type=Path, default=None, help="Write per-file outcomes to this CSV")
    p.add_argument("--log-file", type=Path, default=None, help="Also log to this file")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)

    src_root = args.src.resolve()
    setup_logging(args.log_file, args.verbose)

    if not src_root.is_dir():
        logging.error(f"Source directory not found: {src_root}")
        sys.exit(1)

    logging.info("=== Photo Indexer Started ===")
    logging.info(f"Source: {src_root}")

    db_path = args.db if args.db else src_root / config.DEFAULT_DB_NAME
    app = PhotoIndexerApp(db_path)

    def request_cancel(signum, frame):
        logging.warning("Cancel requested; stopping after the current group.")
        app.cancel()

    previous_handler = signal.signal(signal.SIGINT, request_cancel)

    try:
        app.index(
            src_root=src_root,
            related=args.related.resolve() if args.related else None,
            sidecar_dirs=args.sidecar_dirs,
            max_workers=args.workers,
        )
    except Exception:
        logging.exception("Fatal error during indexing.")
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        if args.report_csv:
            app.report.write_csv(args.report_csv)

    if app.cancel_event.is_set():
        logging.warning("Operation cancelled by user.")
        sys.exit(1)

if __name__ == "__main__":
    main()
