from __future__ import annotations

import json
import re
from typing import Any

import httpx

from app.providers.common import ProviderAdapterResult, now_ms, parse_json_or_raw

_CODE_FENCE = re.compile(r"```(?:json)?\s*")


def extract_json_block(text: str) -> dict[str, Any] | None:
    text = _CODE_FENCE.sub("", text).strip()
    try:
        loaded = json.loads(text)
        if isinstance(loaded, dict):
            return loaded
    except ValueError:
        pass
    match = re.search(r"\{.*\}", text, flags=re.DOTALL)
    if not match:
        return None
    try:
        loaded = json.loads(match.group(0))
    except ValueError:
        return None
    return loaded if isinstance(loaded, dict) else None


async def generate_json(
    *,
    api_key: str | None,
    model: str,
    prompt: str,
    action: str = "generate_json",
) -> ProviderAdapterResult:
    if not api_key:
        return {
            "attempt": {"provider": "gemini", "action": action, "status": "skipped", "skip_reason": "missing_provider_api_key"},
            "mapped": None,
        }
    use_model = model.strip() or "gemini-2.0-flash"
    url = f"https://generativelanguage.googleapis.com/v1beta/models/{use_model}:generateContent"
    start_ms = now_ms()
    async with httpx.AsyncClient(timeout=60.0) as client:
        res = await client.post(
            url,
            params={"key": api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )
        body = parse_json_or_raw(res.text, res.json)
    if res.status_code >= 400:
        return {
            "attempt": {
                "provider": "gemini",
                "action": action,
                "status": "failed",
                "http_status": res.status_code,
                "duration_ms": now_ms() - start_ms,
                "raw_response": body,
            },
            "mapped": None,
        }
    text = ""
    for candidate in body.get("candidates") or []:
        parts = ((candidate.get("content") or {}).get("parts") or [])
        for part in parts:
            if isinstance(part.get("text"), str):
                text += part["text"]
    mapped = extract_json_block(text)
    return {
        "attempt": {
            "provider": "gemini",
            "action": action,
            "status": "completed" if mapped is not None else "failed",
            "duration_ms": now_ms() - start_ms,
            "raw_text": text,
        },
        "mapped": mapped,
    }
