import json
from collections.abc import Mapping
from typing import Any

from adworker.extraction.html_extractor import HtmlExtractor
from adworker.extraction.json_extractor import JsonExtractor
from adworker.extraction.models import ExtractedAdsData
from adworker.logging.logger import Log

_html_extractor = HtmlExtractor()
_json_extractor = JsonExtractor()


def _unwrap_envelope(payload: Any) -> Any:
    """Strip scraping service envelopes: ``{"results": [{"content": ...}]}``."""
    for _ in range(3):
        if not isinstance(payload, Mapping):
            break
        results = payload.get("results")
        if not isinstance(results, list) or not results:
            break
        first = results[0]
        if not isinstance(first, Mapping) or "content" not in first:
            break
        payload = first["content"]
    return payload


def _extract(payload: Any, depth: int = 0) -> ExtractedAdsData:
    if isinstance(payload, (bytes, bytearray)):
        payload = bytes(payload).decode("utf-8", errors="replace")
    if isinstance(payload, str):
        text = payload.strip()
        if not text:
            return ExtractedAdsData.empty()
        if text[0] not in "{[":
            return _html_extractor.extract(text)
        try:
            payload = json.loads(text)
        except ValueError:
            return _html_extractor.extract(text)
    payload = _unwrap_envelope(payload)
    if isinstance(payload, str) and depth < 2:
        return _extract(payload, depth + 1)
    if isinstance(payload, Mapping):
        return _json_extractor.extract(payload)
    return ExtractedAdsData.empty()


def extract_from_payload(payload: Any) -> ExtractedAdsData:
    """Turn a SERP payload (parsed JSON, raw HTML, or a service envelope) into ads data.

    Never raises: malformed or unrecognised input yields an empty result,
    since a page without ads is a normal outcome.
    """
    try:
        return _extract(payload)
    except Exception as exc:  # noqa: BLE001
        Log.warning(f"Extraction failed, returning empty result: {exc!r}")
        return ExtractedAdsData.empty()


def serp_summary(data: ExtractedAdsData) -> tuple[int, int, int]:
    """Return ``(ads_count, organic_count, local_count)`` for a SERP row."""
    return data.ad_metrics.total_ads, len(data.organic_results), len(data.local_pack)
