"""JSON persistence for scrape runs: raw audit payloads, parsed records and review files."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from twogis_scraper.models import MODE_FULL_WITH_REVIEWS, OrganizationRecord

logger = logging.getLogger(__name__)

RAW_DIR = "raw"
PARSED_DIR = "parsed"
REVIEWS_SUBDIR = "full-with-reviews/reviews"
LIST_ID_KEYS = ("firm_id", "org_id", "firmId", "orgId")


class InvalidListFileError(ValueError):
    """Raised when a list file does not hold an array of organizations."""

    def __init__(self, message: str, file_path: str) -> None:
        super().__init__(f"{message}: {file_path}")
        self.file_path = file_path


@dataclass
class RunMetadata:
    query: str
    mode: str
    elapsed_ms: int
    total_results: int
    fetched_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class ListData:
    firm_ids: List[str]
    query: Optional[str] = None

    @property
    def total_results(self) -> int:
        return len(self.firm_ids)


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-") or "run"


def file_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


class ScrapeRepository:
    """Writes one raw and one parsed JSON document per run under ``data_dir``."""

    def __init__(self, data_dir: str | Path = "data") -> None:
        self.data_dir = Path(data_dir)

    def _write(self, path: Path, metadata: RunMetadata, data: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump({"meta": asdict(metadata), "data": data}, fh, ensure_ascii=False, indent=2)
        return path

    def save_run(
        self,
        metadata: RunMetadata,
        records: Sequence[OrganizationRecord],
        raw_items: Sequence[Dict[str, Any]],
    ) -> Tuple[Path, Path]:
        """Persist index-aligned records and raw items; returns ``(raw_path, parsed_path)``."""
        if len(records) != len(raw_items):
            raise ValueError(f"records ({len(records)}) and raw items ({len(raw_items)}) are not aligned")

        stamp = file_timestamp()
        slug = slugify(metadata.query)
        raw_path = self._write(
            self.data_dir / RAW_DIR / metadata.mode / f"{metadata.mode}-raw-{slug}-{stamp}.json",
            metadata,
            list(raw_items),
        )
        parsed_path = self._write(
            self.data_dir / PARSED_DIR / metadata.mode / f"{metadata.mode}-{slug}-{stamp}.json",
            metadata,
            [record.to_dict() for record in records],
        )
        logger.info("Saved %s raw items to %s", len(raw_items), raw_path)
        logger.info("Saved %s parsed records to %s", len(records), parsed_path)
        return raw_path, parsed_path

    def save_reviews(self, metadata: RunMetadata, records: Sequence[OrganizationRecord]) -> Optional[Path]:
        """Flatten every record's reviews into one file, tagged with the owning organization."""
        reviews: List[Dict[str, Any]] = []
        for record in records:
            for review in record.reviews or []:
                entry = review.to_dict()
                entry["organization_id"] = record.firm_id
                entry["organization_name"] = record.name
                reviews.append(entry)

        if not reviews:
            return None

        review_meta = RunMetadata(
            query=metadata.query,
            mode=MODE_FULL_WITH_REVIEWS,
            elapsed_ms=metadata.elapsed_ms,
            total_results=len(reviews),
            fetched_at=metadata.fetched_at,
        )
        path = self._write(
            self.data_dir / PARSED_DIR / REVIEWS_SUBDIR / f"reviews-{slugify(metadata.query)}-{file_timestamp()}.json",
            review_meta,
            reviews,
        )
        logger.info("Saved %s reviews to %s", len(reviews), path)
        return path

    @property
    def reviews_dir(self) -> Path:
        return self.data_dir / PARSED_DIR / REVIEWS_SUBDIR

    @staticmethod
    def read_list_file(file_path: str | Path) -> ListData:
        """Firm ids from a previous list-mode run (parsed or raw document, or a bare array)."""
        path = Path(file_path)
        try:
            with path.open("r", encoding="utf-8") as fh:
                parsed = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise InvalidListFileError(f"Unable to read list file ({exc})", str(path)) from exc

        data = parsed.get("data", parsed) if isinstance(parsed, dict) else parsed
        if not isinstance(data, list):
            raise InvalidListFileError("Invalid list file format", str(path))

        firm_ids: List[str] = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            firm_id = next((entry[key] for key in LIST_ID_KEYS if entry.get(key)), None)
            if firm_id:
                firm_ids.append(str(firm_id))

        query = (parsed.get("meta") or {}).get("query") if isinstance(parsed, dict) else None
        return ListData(firm_ids=firm_ids, query=query)
