"""CLI job that turns scraped review files into a flat dataset."""

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from twogis_scraper.core.config import get_settings
from twogis_scraper.core.repository import ScrapeRepository
from twogis_scraper.etl.export import EXPORT_FORMATS, export_reviews

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    repository = ScrapeRepository(settings.data_dir)
    parser = argparse.ArgumentParser(description="Export scraped 2GIS reviews as a text/rating dataset")
    parser.add_argument("--format", dest="fmt", choices=EXPORT_FORMATS, default="jsonl")
    parser.add_argument("--reviews-dir", dest="reviews_dir", type=Path, default=repository.reviews_dir)
    parser.add_argument("--output-dir", dest="output_dir", type=Path, default=Path(settings.data_dir) / "exports")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(level=get_settings().log_level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)
    try:
        export_reviews(args.reviews_dir, args.output_dir, args.fmt)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
