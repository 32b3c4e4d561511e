"""Utilities for transforming 2GIS organization payloads into OrganizationRecord objects."""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from twogis_scraper.models import OrganizationRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

ADDRESS_COMPONENT_TYPES = ("city", "district", "region", "country")
PAYMENT_GROUP_NAMES = {"Способы оплаты"}
WEEK_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MAX_METRO_STATIONS = 3


def _guarded(group: str, extractor: Callable[[Dict[str, Any]], T], item: Dict[str, Any], default: T) -> T:
    """Run one field-group extractor; a failure leaves that group at ``default``."""
    try:
        return extractor(item)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to extract %s: %s", group, exc)
        return default


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _integer(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def find_contact(item: Dict[str, Any], contact_type: str) -> Optional[str]:
    """First contact of ``contact_type`` across all contact groups, in source order."""
    for group in item.get("contact_groups") or []:
        for contact in group.get("contacts") or []:
            if contact.get("type") == contact_type:
                value = _text(contact.get("value") or contact.get("text"))
                if value:
                    return value
    return None


def parse_address_components(components: Iterable[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """First component per type tag, independent of the order the source lists them in."""
    found: Dict[str, Optional[str]] = {key: None for key in ADDRESS_COMPONENT_TYPES}
    for component in components or []:
        component_type = component.get("type")
        if component_type in found and found[component_type] is None:
            found[component_type] = _text(component.get("name"))
    return found


def _name_group(item: Dict[str, Any]) -> Dict[str, Any]:
    name_ex = item.get("name_ex")
    if isinstance(name_ex, dict):
        return {
            "name": name_ex.get("primary") or item.get("name") or "",
            "description": _text(name_ex.get("extension")),
        }
    return {"name": item.get("name") or ""}


def _address_line_group(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "address": item.get("address_name") or "",
        "address_comment": _text(item.get("address_comment")),
    }


def _address_hierarchy_group(item: Dict[str, Any]) -> Dict[str, Any]:
    address = item.get("address")
    if not address:
        return {}
    fields: Dict[str, Any] = {"postcode": _text(address.get("postcode"))}
    components = address.get("components")
    if components is not None:
        if not isinstance(components, list):
            raise TypeError(f"address components is {type(components).__name__}, expected list")
        fields.update(parse_address_components(components))
    return fields


def _misc_group(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "firm_id": _text(item.get("id")),
        "timezone": _text(item.get("timezone")),
        "type": _text(item.get("type")),
    }


def _contacts_group(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "phone": find_contact(item, "phone"),
        "email": find_contact(item, "email"),
        "website": find_contact(item, "website"),
    }


def format_schedule(schedule: Any) -> Optional[str]:
    """Render the schedule as ``Day: hours; Day: hours``."""
    if not schedule:
        return None
    if isinstance(schedule, str):
        return schedule

    hours = schedule.get("working_hours")
    if isinstance(hours, str):
        return hours or None
    if isinstance(hours, list) and hours:
        parts = []
        for entry in hours:
            ranges = entry.get("working_hours")
            parts.append(f"{entry.get('day')}: {', '.join(ranges) if ranges else 'closed'}")
        return "; ".join(parts)

    parts = []
    for day in WEEK_DAYS:
        day_info = schedule.get(day)
        if day_info is None:
            continue
        ranges = [f"{r.get('from')}-{r.get('to')}" for r in day_info.get("working_hours") or []]
        parts.append(f"{day}: {', '.join(ranges) if ranges else 'closed'}")
    if schedule.get("is_24x7"):
        parts.insert(0, "24x7")
    return "; ".join(parts) or None


def _schedule_group(item: Dict[str, Any]) -> Dict[str, Any]:
    return {"schedule": format_schedule(item.get("schedule"))}


def _rating_group(item: Dict[str, Any]) -> Dict[str, Any]:
    reviews = item.get("reviews")
    if not reviews:
        return {}
    return {
        "rating": _number(reviews.get("rating")),
        "review_count": _integer(reviews.get("general_rating_count")),
    }


def _rubrics_group(item: Dict[str, Any]) -> Dict[str, Any]:
    rubrics = item.get("rubrics")
    if not isinstance(rubrics, list):
        return {"rubrics": []}
    names = [rubric.get("name") for rubric in rubrics if isinstance(rubric, dict)]
    return {"rubrics": [name for name in names if isinstance(name, str)]}


def _review_summary_group(item: Dict[str, Any]) -> Dict[str, Any]:
    reviews = item.get("reviews")
    if not reviews:
        return {}
    summary: Dict[str, Any] = {
        "rating": reviews.get("rating") or 0,
        "review_count": reviews.get("review_count") or 0,
        "general_rating": reviews.get("general_rating"),
        "general_review_count": reviews.get("general_review_count"),
        "org_rating": reviews.get("org_rating"),
        "org_review_count": reviews.get("org_review_count"),
    }
    sources = reviews.get("items")
    if isinstance(sources, list):
        summary["sources"] = [
            {"tag": source.get("tag"), "rating": source.get("rating"), "review_count": source.get("review_count")}
            for source in sources
        ]
    return {"review_summary": {key: value for key, value in summary.items() if value is not None}}


def _coordinates_group(item: Dict[str, Any]) -> Dict[str, Any]:
    point = item.get("point") or {}
    lat, lon = _number(point.get("lat")), _number(point.get("lon"))
    if lat is None or lon is None:
        return {}
    return {"coordinates": {"lat": lat, "lon": lon}}


def _metro_group(item: Dict[str, Any]) -> Dict[str, Any]:
    stations = (item.get("links") or {}).get("nearest_stations")
    if not isinstance(stations, list):
        return {}
    nearest = []
    for station in stations[:MAX_METRO_STATIONS]:
        if not station.get("name"):
            continue
        entry = {
            "name": station.get("name"),
            "distance": station.get("distance"),
            "line": station.get("comment"),
            "color": station.get("color"),
        }
        nearest.append({key: value for key, value in entry.items() if value is not None})
    return {"nearest_metro": nearest or None}


def _attributes_group(item: Dict[str, Any]) -> Dict[str, Any]:
    groups = item.get("attribute_groups")
    if not isinstance(groups, list):
        return {}
    payments: List[str] = []
    features: List[str] = []
    for group in groups:
        attributes = group.get("attributes")
        if not isinstance(attributes, list):
            continue
        names = [attribute.get("name") for attribute in attributes if attribute.get("name")]
        if group.get("name") in PAYMENT_GROUP_NAMES:
            payments.extend(names)
        else:
            features.extend(names)
    return {"payment_methods": payments or None, "features": features or None}


def _org_group(item: Dict[str, Any]) -> Dict[str, Any]:
    org = item.get("org")
    if not org:
        return {}
    return {
        "org_name": _text(org.get("name") or org.get("primary")),
        "org_id": _text(org.get("id")),
        "branch_count": _integer(org.get("branch_count")),
    }


def _photos_group(item: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    content = item.get("external_content")
    if isinstance(content, list):
        total = sum(entry.get("count") or 0 for entry in content if entry.get("type") == "photo_album")
        fields["photo_count"] = total or None
    if (item.get("flags") or {}).get("photos"):
        fields["has_photos"] = True
    return fields


def _dates_group(item: Dict[str, Any]) -> Dict[str, Any]:
    dates = item.get("dates")
    if not dates:
        return {}
    return {"created_at": _text(dates.get("created_at")), "updated_at": _text(dates.get("updated_at"))}


FIELD_GROUPS = (
    ("name", _name_group),
    ("address", _address_line_group),
    ("address hierarchy", _address_hierarchy_group),
    ("identifiers", _misc_group),
    ("contacts", _contacts_group),
    ("schedule", _schedule_group),
    ("rating", _rating_group),
    ("rubrics", _rubrics_group),
    ("review summary", _review_summary_group),
    ("coordinates", _coordinates_group),
    ("metro stations", _metro_group),
    ("attributes", _attributes_group),
    ("org info", _org_group),
    ("photos", _photos_group),
    ("dates", _dates_group),
)


def minimal_record(item: Any) -> OrganizationRecord:
    if not isinstance(item, dict):
        return OrganizationRecord(name="Unknown", address="", rubrics=[])
    return OrganizationRecord(name=str(item.get("name") or "Unknown"), address=str(item.get("address_name") or ""), rubrics=[])


def to_organization_record(item: Dict[str, Any]) -> OrganizationRecord:
    """Normalize one raw organization payload.

    Each field group is isolated: a malformed group is logged and left absent
    while the rest of the record is still built. If the payload itself has an
    unexpected shape, a minimal name/address record is returned instead.
    """
    try:
        if not isinstance(item, dict):
            raise TypeError(f"expected an object payload, got {type(item).__name__}")
        fields: Dict[str, Any] = {"name": "", "address": "", "rubrics": []}
        for group, extractor in FIELD_GROUPS:
            fields.update(_guarded(group, extractor, item, {}))
        return OrganizationRecord(**fields)
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to extract organization data: %s", exc)
        return minimal_record(item)
