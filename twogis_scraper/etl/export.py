"""Flatten collected reviews into a (text, rating) dataset with a markdown dataset card."""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("jsonl", "csv")
DATASET_CARD_NAME = "README.md"

DATASET_FIELDS = (
    ("text", "Review text as written by the author"),
    ("rating", "Review rating (1-5)"),
)


def review_files(reviews_dir: Path) -> List[Path]:
    if not reviews_dir.is_dir():
        raise FileNotFoundError(f"Reviews directory not found: {reviews_dir}")
    return sorted(reviews_dir.glob("*.json"))


def collect_reviews(reviews_dir: Path) -> List[Dict[str, Any]]:
    """Every review with text and a non-zero rating from the per-run review files."""
    dataset: List[Dict[str, Any]] = []
    for path in review_files(reviews_dir):
        with path.open("r", encoding="utf-8") as fh:
            document = json.load(fh)
        for review in document.get("data") or []:
            if review.get("text") and review.get("rating"):
                dataset.append({"text": review["text"], "rating": review["rating"]})
    logger.info("Collected %d reviews from %s", len(dataset), reviews_dir)
    return dataset


def to_jsonl(reviews: Iterable[Dict[str, Any]]) -> str:
    return "\n".join(json.dumps(review, ensure_ascii=False) for review in reviews)


def to_csv(reviews: Iterable[Dict[str, Any]]) -> str:
    buffer = io.StringIO()
    buffer.write("rating,text\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for review in reviews:
        writer.writerow([review["rating"], review["text"]])
    return buffer.getvalue()


def size_category(count: int) -> str:
    if count < 1000:
        return "n<1K"
    if count < 10000:
        return "1K<n<10K"
    return "10K<n<100K"


def build_dataset_card(total_records: int, total_files: int, fmt: str) -> str:
    """Markdown description of an exported review dataset, with front matter for dataset hubs."""
    fields = "\n".join(f"- `{name}`: {description}" for name, description in DATASET_FIELDS)
    return f"""---
license: mit
task_categories:
- text-classification
language:
- ru
tags:
- 2gis
- reviews
- sentiment
pretty_name: 2GIS Organization Reviews
size_categories:
- {size_category(total_records)}
---

# 2GIS Organization Reviews

Review texts and star ratings collected from public 2GIS organization pages.

## Dataset Description

- **Total Records**: {total_records}
- **Source Files**: {total_files}
- **Format**: {fmt.upper()}

## Data Fields

{fields}

## Data Collection

Reviews were collected with Playwright browser automation. Only reviews with non-empty text and a non-zero rating are included.

## Disclaimer

This dataset contains publicly available information from 2GIS. Users should respect the original data source's terms of service.
"""


def export_reviews(reviews_dir: Path, output_dir: Path, fmt: str = "jsonl") -> Path:
    """Write ``reviews-dataset.<fmt>`` and its dataset card into ``output_dir``."""
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format {fmt!r}")

    files = review_files(reviews_dir)
    reviews = collect_reviews(reviews_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"reviews-dataset.{fmt}"
    content = to_jsonl(reviews) if fmt == "jsonl" else to_csv(reviews)
    output_path.write_text(content, encoding="utf-8")

    card_path = output_dir / DATASET_CARD_NAME
    card_path.write_text(build_dataset_card(len(reviews), len(files), fmt), encoding="utf-8")
    logger.info("Exported %d reviews to %s (card: %s)", len(reviews), output_path, card_path)
    return output_path
