from collections.abc import Mapping
from typing import Any

from adworker.extraction.assembly import assemble, dedupe_by_title, tracking_parameters
from adworker.extraction.domains import advertiser_domain, unwrap_click_url
from adworker.extraction.models import (
    ExtractedAd,
    ExtractedAdsData,
    LocalResult,
    OrganicResult,
    ShoppingAd,
    Sitelink,
)


def _items(section: Any) -> list[Mapping[str, Any]]:
    """Section as a list of mappings; parsers nest some sections under ``items``."""
    if isinstance(section, Mapping):
        section = section.get("items", [])
    if not isinstance(section, list):
        return []
    return [item for item in section if isinstance(item, Mapping)]


def _str(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def _int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _sitelinks(value: Any) -> tuple[Sitelink, ...]:
    if isinstance(value, Mapping):
        entries: list[Any] = []
        for group in value.values():
            if isinstance(group, list):
                entries.extend(group)
    elif isinstance(value, list):
        entries = value
    else:
        return ()
    links = []
    for entry in entries:
        if isinstance(entry, Mapping) and entry.get("title"):
            url = _str(entry.get("url"))
            links.append(Sitelink(title=_str(entry["title"]), url=unwrap_click_url(url) or url))
    return tuple(links)


class JsonExtractor:
    """Maps a parsed SERP document onto the canonical extraction shape."""

    def extract(self, content: Mapping[str, Any]) -> ExtractedAdsData:
        results = content.get("results")
        sections: Mapping[str, Any] = results if isinstance(results, Mapping) else content

        paid = _items(sections.get("paid"))
        ordered = sorted(
            enumerate(paid),
            key=lambda pair: (_int(pair[1].get("pos_overall")) or 10**6, pair[0]),
        )
        top: list[ExtractedAd] = []
        bottom: list[ExtractedAd] = []
        for _, item in ordered:
            ad = self._map_paid(item)
            if ad is None:
                continue
            placement = _str(item.get("block") or item.get("placement")).lower()
            (bottom if placement == "bottom" else top).append(ad)

        shopping = [
            ad
            for ad in (self._map_shopping(item) for item in _items(sections.get("pla") or sections.get("shopping")))
            if ad is not None
        ]
        organic = [
            result
            for result in (self._map_organic(item) for item in _items(sections.get("organic")))
            if result is not None
        ]
        local = [
            result
            for result in (self._map_local(item) for item in _items(sections.get("local_pack")))
            if result is not None
        ]
        links = [_str(item.get("url")) for item in paid] + [_str(item.get("data_pcu")) for item in paid]
        return assemble(
            top_ads=dedupe_by_title(top),
            bottom_ads=dedupe_by_title(bottom),
            shopping_ads=dedupe_by_title(shopping),
            organic_results=dedupe_by_title(organic),
            local_pack=dedupe_by_title(local),
            ad_parameters=tracking_parameters(links),
        )

    @staticmethod
    def _map_paid(item: Mapping[str, Any]) -> ExtractedAd | None:
        title = _str(item.get("title"))
        if not title:
            return None
        url = _str(item.get("url") or item.get("data_pcu"))
        destination = unwrap_click_url(url) or url
        display_url = _str(item.get("url_shown"))
        return ExtractedAd(
            title=title,
            description=_str(item.get("desc") or item.get("description")),
            display_url=display_url,
            destination_url=destination,
            advertiser_domain=advertiser_domain(display_url, destination),
            container_type="parsed",
            sitelinks=_sitelinks(item.get("sitelinks")),
            extensions=tuple(
                _str(value)
                for value in (item.get("call_extension"), item.get("price"), item.get("seller"))
                if _str(value)
            ),
        )

    @staticmethod
    def _map_shopping(item: Mapping[str, Any]) -> ShoppingAd | None:
        title = _str(item.get("title"))
        if not title:
            return None
        url = _str(item.get("url"))
        destination = unwrap_click_url(url) or url
        merchant = item.get("merchant")
        merchant_name = _str(merchant.get("name") if isinstance(merchant, Mapping) else merchant or item.get("seller"))
        return ShoppingAd(
            title=title,
            url=destination,
            price=_str(item.get("price")),
            merchant=merchant_name,
            advertiser_domain=advertiser_domain(merchant_name, destination),
            container_type="parsed",
        )

    @staticmethod
    def _map_organic(item: Mapping[str, Any]) -> OrganicResult | None:
        title = _str(item.get("title"))
        if not title:
            return None
        return OrganicResult(
            title=title,
            url=_str(item.get("url")),
            display_url=_str(item.get("url_shown")),
            description=_str(item.get("desc") or item.get("description")),
            rating=_float(item.get("rating")),
            review_count=_int(item.get("review_count") or item.get("reviews_count")),
        )

    @staticmethod
    def _map_local(item: Mapping[str, Any]) -> LocalResult | None:
        title = _str(item.get("title") or item.get("name"))
        if not title:
            return None
        links = item.get("links")
        website = ""
        if isinstance(links, list):
            website = next(
                (_str(link.get("href")) for link in links if isinstance(link, Mapping) and link.get("href")),
                "",
            )
        return LocalResult(
            title=title,
            address=_str(item.get("address")),
            phone=_str(item.get("phone")),
            rating=_float(item.get("rating")),
            review_count=_int(item.get("rating_count") or item.get("reviews_count")),
            website=website,
        )
