import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import requests

from app.config import Settings

logger = logging.getLogger(__name__)

FUNCTION_NAME = "name-detection-check"


@dataclass
class DetectedNames:
    names: list[str] = field(default_factory=list)
    public_names: list[str] = field(default_factory=list)
    fictional_names: list[str] = field(default_factory=list)


def functions_url(supabase_url: Optional[str]) -> Optional[str]:
    """https://abc.supabase.co -> https://abc.functions.supabase.co/name-detection-check"""
    if not supabase_url:
        return None

    parsed = urlparse(supabase_url)
    if not parsed.scheme or not parsed.hostname:
        return None

    host = parsed.hostname.replace(".supabase.co", ".functions.supabase.co")
    return f"{parsed.scheme}://{host}/{FUNCTION_NAME}"


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def detect_names(content: str, config: Settings, timeout: float = 15.0) -> DetectedNames:
    """
    Ask the edge function for person names in a note body.

    Detection is advisory: any failure is logged and yields no names.
    """
    if not content or not content.strip():
        return DetectedNames()

    url = functions_url(config.SUPABASE_URL)
    if not url or not config.LLM_FUNCTION_SECRET:
        logger.warning("name detection skipped: SUPABASE_URL or LLM_FUNCTION_SECRET missing")
        return DetectedNames()

    try:
        resp = requests.post(
            url,
            json={"content": content},
            headers={"Authorization": f"Bearer {config.LLM_FUNCTION_SECRET}"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        logger.warning("name detection request failed: %s", exc.__class__.__name__)
        return DetectedNames()

    if not resp.ok:
        logger.warning("name detection returned %s", resp.status_code)
        return DetectedNames()

    try:
        data = resp.json()
    except ValueError:
        logger.warning("name detection returned invalid JSON")
        return DetectedNames()

    if not isinstance(data, dict):
        return DetectedNames()

    return DetectedNames(
        names=_string_list(data.get("names")),
        public_names=_string_list(data.get("public_names")),
        fictional_names=_string_list(data.get("fictional_names")),
    )
