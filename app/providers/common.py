from __future__ import annotations

import time
from typing import Any, TypedDict
from urllib.parse import urlparse


class ProviderAdapterResult(TypedDict):
    attempt: dict[str, Any]
    mapped: Any


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_json_or_raw(text: str, parser: Any) -> dict[str, Any]:
    try:
        parsed = parser()
        if isinstance(parsed, dict):
            return parsed
        return {"value": parsed}
    except Exception:  # noqa: BLE001
        return {"raw": text}


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def as_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def domain_from_website(website: str | None) -> str | None:
    """Hostname of a website value, with a leading ``www.`` removed."""
    if not website:
        return None
    candidate = website.strip()
    if not candidate:
        return None
    if not candidate.startswith("http"):
        candidate = f"https://{candidate}"
    try:
        hostname = urlparse(candidate).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return hostname.replace("www.", "", 1)
