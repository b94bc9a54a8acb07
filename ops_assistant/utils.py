from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, TypeVar
import logging
import re

from .config import LLM_DEBUG, LOG_LEVEL

T = TypeVar("T")


def _log_debug(message: str) -> None:
    if LLM_DEBUG:
        print(message, flush=True)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_text(text: str) -> str:
    t = (text or "").strip()
    t = re.sub(r"\s+", " ", t)
    return t


def _clean_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value))
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if not match:
            return None
        return int(round(float(match.group(0))))
    return None


def find_by_name(items: Iterable[T], query: str,
                 name_of: Callable[[T], str]) -> Optional[T]:
    """Exact match first, then substring, then any word longer than two letters."""
    candidates: List[T] = list(items)
    name = normalize_text(query).lower()
    if not name:
        return None
    for item in candidates:
        if (name_of(item) or "").lower() == name:
            return item
    for item in candidates:
        if name in (name_of(item) or "").lower():
            return item
    for word in (w for w in name.split(" ") if len(w) > 2):
        for item in candidates:
            if word in (name_of(item) or "").lower():
                return item
    return None


def format_clock(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def format_day(value: date, with_year: bool = False) -> str:
    label = f"{value.strftime('%A')}, {value.strftime('%B')} {value.day}"
    if with_year:
        label += f", {value.year}"
    return label


def bullet_list(lines: Iterable[str], limit: Optional[int] = None,
                more_label: str = "more") -> str:
    items = list(lines)
    shown = items if limit is None else items[:limit]
    text = "\n".join(shown)
    if limit is not None and len(items) > limit:
        text += f"\n_...and {len(items) - limit} {more_label}_"
    return text
