"""
Command line batch reviewer.

    qrrpa-review reports/*.xlsx --scope "Agusan del Sur" --output compilation.xlsx

Exit status: 0 when every file was reviewed, 1 when any file could not be
parsed, 2 on usage errors.
"""

import argparse
import logging
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from .ordinances import PROVINCES_AND_CITIES, OrdinanceStore
from .pipeline import export_compilation, review_batch
from .settings import Settings, setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="qrrpa-review",
        description="Validate QRRPA spreadsheets and compile the results.",
    )
    parser.add_argument("files", nargs="+", type=Path, help="QRRPA files (.csv, .xls, .xlsx).")
    parser.add_argument(
        "--scope",
        default=None,
        help=f"Force one province/city scope for every file (e.g. {PROVINCES_AND_CITIES[1]!r}). "
             "Auto-detected per file when omitted.",
    )
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory of the saved ordinance table.")
    parser.add_argument("--output", type=Path, default=None, help="Compilation file to write.")
    parser.add_argument("--format", choices=["xlsx", "csv"], default="xlsx", help="Compilation format.")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING ...")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    setup_logging(args.log_level or settings.log_level)

    store = OrdinanceStore(args.config_dir or settings.config_dir)
    config = store.load()

    files = []
    for path in args.files:
        try:
            files.append((path.name, path.read_bytes()))
        except OSError as e:
            logger.error("Cannot read %s: %s", path, e)
            return 2

    batch = review_batch(
        files, config,
        forced_scope=args.scope,
        default_scope=settings.default_scope,
        pause=0,
    )

    output = args.output or Path(f"QRRPA_Report_{date.today().isoformat()}.{args.format}")
    output.write_bytes(export_compilation(batch.reviews, fmt=args.format))

    for review in batch.reviews:
        logger.info("%-40s %-25s score=%3d", review.file_name, review.scope, review.result.score)
    for err in batch.errors:
        logger.error("%s: %s", err.file_name, err.message)
    logger.info("Wrote %d reviews to %s", len(batch.reviews), output)

    return 1 if batch.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
