import re
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import TypeVar
from urllib.parse import parse_qs, urlparse

from adworker.extraction.domains import UNKNOWN_ADVERTISER, unwrap_click_url
from adworker.extraction.models import (
    AdMetrics,
    ExtractedAd,
    ExtractedAdsData,
    LocalResult,
    OrganicResult,
    ShoppingAd,
)

TRACKING_PARAMETERS = (
    "gclid",
    "gclsrc",
    "campaignid",
    "adgroupid",
    "creative",
    "keyword",
    "matchtype",
    "network",
    "device",
    "adposition",
)
_PARAMETER_ALIASES = {"campaign_id": "campaignid", "adgroup_id": "adgroupid"}
_WHITESPACE_RE = re.compile(r"\s+")


TitledT = TypeVar("TitledT", ExtractedAd, ShoppingAd, OrganicResult, LocalResult)


def normalize_title(title: str) -> str:
    return _WHITESPACE_RE.sub(" ", title).strip().casefold()


def dedupe_by_title(candidates: Iterable[TitledT]) -> list[TitledT]:
    """Keep the first candidate for each normalized title, dropping untitled ones."""
    seen: set[str] = set()
    accepted: list[TitledT] = []
    for candidate in candidates:
        key = normalize_title(candidate.title)
        if not key or key in seen:
            continue
        seen.add(key)
        accepted.append(candidate)
    return accepted


def tracking_parameters(urls: Iterable[str | None]) -> tuple[tuple[str, tuple[str, ...]], ...]:
    """Collect ad tracking parameters from links and the landing URLs they redirect to."""
    found: dict[str, list[str]] = {}
    for url in urls:
        if not url:
            continue
        candidates = [url]
        unwrapped = unwrap_click_url(url)
        if unwrapped and unwrapped != url:
            candidates.append(unwrapped)
        for candidate in candidates:
            for key, values in parse_qs(urlparse(candidate).query).items():
                name = _PARAMETER_ALIASES.get(key.lower(), key.lower())
                if name not in TRACKING_PARAMETERS:
                    continue
                bucket = found.setdefault(name, [])
                bucket.extend(value for value in values if value not in bucket)
    return tuple((name, tuple(found[name])) for name in TRACKING_PARAMETERS if name in found)


def assemble(
    *,
    top_ads: Sequence[ExtractedAd] = (),
    bottom_ads: Sequence[ExtractedAd] = (),
    shopping_ads: Sequence[ShoppingAd] = (),
    organic_results: Sequence[OrganicResult] = (),
    local_pack: Sequence[LocalResult] = (),
    ad_parameters: tuple[tuple[str, tuple[str, ...]], ...] = (),
) -> ExtractedAdsData:
    """Number every record and compute ad metrics.

    ``position`` is the 1-based index inside the record's own category, so
    bottom ads restart at 1. ``position_overall`` counts top ads first and
    then bottom ads, and is what ``adPositions`` reports.
    """
    top = tuple(
        replace(ad, position=index, position_overall=index)
        for index, ad in enumerate(top_ads, start=1)
    )
    bottom = tuple(
        replace(ad, position=index, position_overall=len(top) + index)
        for index, ad in enumerate(bottom_ads, start=1)
    )
    shopping = tuple(
        replace(ad, position=index) for index, ad in enumerate(shopping_ads, start=1)
    )
    organic = tuple(
        replace(result, position=index) for index, result in enumerate(organic_results, start=1)
    )
    local = tuple(
        replace(result, position=index) for index, result in enumerate(local_pack, start=1)
    )

    domains: list[str] = []
    for domain in [ad.advertiser_domain for ad in top + bottom] + [
        ad.advertiser_domain for ad in shopping
    ]:
        if domain and domain != UNKNOWN_ADVERTISER and domain not in domains:
            domains.append(domain)

    total_ads = len(top) + len(bottom) + len(shopping)
    metrics = AdMetrics(
        total_ads=total_ads,
        has_ads=total_ads > 0,
        ad_positions=tuple(ad.position_overall for ad in top + bottom),
        ad_domains=tuple(domains),
    )
    return ExtractedAdsData(
        top_ads=top,
        bottom_ads=bottom,
        shopping_ads=shopping,
        organic_results=organic,
        local_pack=local,
        ad_metrics=metrics,
        ad_parameters=ad_parameters,
    )
