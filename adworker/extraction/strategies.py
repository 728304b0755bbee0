"""Ordered HTML extraction strategies per result category.

Each category lists ``Strategy`` entries evaluated left to right. Every
strategy runs, and a candidate is kept only if no earlier candidate of the
same category has the same normalized title.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from bs4 import Tag

from adworker.extraction.domains import advertiser_domain, registrable_domain, unwrap_click_url
from adworker.extraction.models import (
    ExtractedAd,
    LocalResult,
    OrganicResult,
    ShoppingAd,
    Sitelink,
)

_RATING_RE = re.compile(r"(\d+(?:\.\d+)?)")
_REVIEW_COUNT_RE = re.compile(r"\((\d[\d,]*)\)")
_PRICE_RE = re.compile(r"[$€£¥]\s?\d[\d,]*(?:\.\d{1,2})?|\d[\d,]*(?:\.\d{1,2})?\s?(?:USD|EUR|GBP)")
_STREET_RE = re.compile(r"\d+\s+\w+(?:\s+\w+)*\s+(?:St|Ave|Blvd|Rd|Dr|Drive|Lane|Ln|Court|Ct|Way)\b", re.I)

ORGANIC_EXCLUDED_WITHIN = ('[data-feature="1"]', "[data-text-ad]", "#bottomads", "#tads")


@dataclass(frozen=True)
class Strategy:
    """One structural heuristic: where to look and how to map a match."""

    name: str
    selector: str
    mapper: Callable[[Tag, str], object | None]
    exclude_within: tuple[str, ...] = ()


def text_of(tag: Tag | None) -> str:
    if tag is None:
        return ""
    return " ".join(tag.get_text(" ", strip=True).split())


def _first(element: Tag, *selectors: str) -> Tag | None:
    for selector in selectors:
        found = element.select_one(selector)
        if found is not None:
            return found
    return None


def _href(link: Tag | None) -> str:
    if link is None:
        return ""
    value = link.get("href") or link.get("data-pcu") or ""
    return value if isinstance(value, str) else ""


def _landing_url(href: str) -> str:
    return unwrap_click_url(href) or href


def _description_of(element: Tag, title: str) -> str:
    description = element.select_one('div[data-dtld="true"]')
    if description is None:
        unroled = element.select("div:not([role])")
        description = unroled[1] if len(unroled) > 1 else None
    if description is not None and text_of(description) and text_of(description) != title:
        return text_of(description)
    for div in element.select("div"):
        text = text_of(div)
        if len(text) > 20 and div.select_one('div[role="heading"], h3') is None and title not in text:
            return text
    return ""


def _display_url_of(element: Tag) -> str:
    return text_of(_first(element, "cite", 'span[role="text"]'))


def _rating_of(element: Tag) -> tuple[float | None, int | None]:
    stars = element.select_one('span[aria-label*="stars"], span[aria-label*="Rated"]')
    if stars is None:
        return None, None
    match = _RATING_RE.search(str(stars.get("aria-label", "")))
    rating = float(match.group(1)) if match else None
    review_count = None
    container = stars.parent if stars.parent is not None else element
    reviews = _REVIEW_COUNT_RE.search(text_of(container))
    if reviews:
        review_count = int(reviews.group(1).replace(",", ""))
    return rating, review_count


def map_text_ad(element: Tag, container_type: str) -> ExtractedAd | None:
    """Map a ``div[data-text-ad]`` block to an ad."""
    title = text_of(_first(element, 'div[role="heading"]', "h3"))
    link = _first(element, "a[data-pcu]", "a[ping]", "a[href]")
    if not title or link is None:
        return None
    destination = _landing_url(_href(link))
    display_url = _display_url_of(element)
    description = _description_of(element, title)

    sitelinks: list[Sitelink] = []
    for extra in element.select("a[data-pcu]")[1:]:
        link_title = text_of(extra)
        if link_title and link_title != title:
            sitelinks.append(Sitelink(title=link_title, url=_landing_url(_href(extra))))

    extensions: list[str] = []
    sitelink_titles = {link.title for link in sitelinks}
    for div in element.select("div:not([role])"):
        text = text_of(div)
        if (
            3 < len(text) < 50
            and text != description
            and title not in text
            and text != display_url
            and text not in sitelink_titles
            and text not in extensions
        ):
            extensions.append(text)

    return ExtractedAd(
        title=title,
        description=description,
        display_url=display_url,
        destination_url=destination,
        advertiser_domain=advertiser_domain(display_url, destination),
        container_type=container_type,
        sitelinks=tuple(sitelinks),
        extensions=tuple(extensions),
    )


def map_ad_link(element: Tag, container_type: str) -> ExtractedAd | None:
    """Map an ad anchor (``#tads a``, ARIA "Ads" region) to an ad."""
    title = text_of(element.select_one('div[role="heading"]'))
    if not title:
        return None
    unroled = element.select("div:not([role])")
    description = text_of(unroled[1]) if len(unroled) > 1 else ""
    display_url = text_of(_first(element, 'span[role="text"]', "cite"))
    destination = _landing_url(_href(element))
    return ExtractedAd(
        title=title,
        description=description,
        display_url=display_url,
        destination_url=destination,
        advertiser_domain=advertiser_domain(display_url, destination),
        container_type=container_type,
    )


def map_shopping_unit(element: Tag, container_type: str) -> ShoppingAd | None:
    """Map a product listing unit to a shopping ad."""
    title = text_of(
        _first(
            element,
            'div[role="heading"]',
            '[class*="product-title"]',
            '[class*="shopping-title"]',
            "h3",
            "h4",
        )
    )
    if not title:
        image = element.select_one("img[alt]")
        title = str(image.get("alt", "")).strip() if image is not None else ""
    if not title:
        title = str(element.get("aria-label", "")).strip()
    if not title:
        return None
    link = element if element.name == "a" else element.select_one("a[href]")
    url = _landing_url(_href(link))
    price_match = _PRICE_RE.search(text_of(element))
    merchant = text_of(_first(element, '[class*="merchant"]', '[class*="seller"]', "cite"))
    return ShoppingAd(
        title=title,
        url=url,
        price=price_match.group(0) if price_match else "",
        merchant=merchant,
        advertiser_domain=advertiser_domain(merchant, url),
        container_type=container_type,
    )


def _organic_url(href: str) -> str:
    if href.startswith("/url?"):
        query = parse_qs(urlparse(href).query)
        for key in ("url", "q"):
            if query.get(key):
                return query[key][0]
    return href


def map_organic(element: Tag, result_type: str) -> OrganicResult | None:
    title = text_of(element.select_one("h3"))
    link = element.select_one("a[href]")
    if not title or link is None:
        return None
    description = text_of(
        _first(
            element,
            'div[data-sncf="1"] > div:not([class])',
            "div.VwiC3b",
            "span.aCOpRe",
            'div[style*="line-height"]',
        )
    )
    rating, review_count = _rating_of(element)
    return OrganicResult(
        title=title,
        url=_organic_url(_href(link)),
        display_url=text_of(element.select_one("cite")),
        description=description,
        result_type=result_type,
        rating=rating,
        review_count=review_count,
    )


def map_featured_snippet(element: Tag, result_type: str) -> OrganicResult | None:
    content = next((div for div in element.select("div") if len(text_of(div)) > 20), None)
    if content is None:
        return None
    link = element.select_one('a[href^="http"]')
    return OrganicResult(
        title=text_of(element.select_one("h3")) or "Featured Snippet",
        url=_href(link),
        display_url=text_of(element.select_one("cite")),
        description=text_of(content),
        result_type=result_type,
    )


def map_local_card(heading: Tag, container_type: str) -> LocalResult | None:
    """Map a local pack heading to a business listing using its enclosing card."""
    title = text_of(heading)
    card = heading.find_parent("div", attrs={"jscontroller": True}) or heading.find_parent(
        "div", attrs={"jsname": True}
    )
    if not title or card is None:
        return None
    address = text_of(card.select_one('div[data-local-attribute="d3adr"]'))
    if not address:
        text_nodes = card.select('div[role="text"]')
        address = text_of(text_nodes[0]) if text_nodes else ""
    if not address:
        street = _STREET_RE.search(text_of(card))
        address = street.group(0) if street else ""
    rating, review_count = _rating_of(card)
    website = card.select_one('a[href^="http"]')
    return LocalResult(
        title=title,
        address=address,
        phone=text_of(card.select_one('span[aria-label*="phone"], span[aria-label*="Phone"]')),
        rating=rating,
        review_count=review_count,
        website=_href(website) if registrable_domain(_href(website)) else "",
    )


TOP_AD_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("standard", "div[data-text-ad]", map_text_ad, exclude_within=("#bottomads",)),
    Strategy("tads", "#tads a", map_ad_link),
    Strategy("aria-label-ads", 'div[aria-label="Ads"] a', map_ad_link, exclude_within=("#bottomads",)),
)

BOTTOM_AD_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("bottomads-standard", "#bottomads div[data-text-ad]", map_text_ad),
    Strategy("bottomads", "#bottomads a", map_ad_link),
)

SHOPPING_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("pla-unit", ".pla-unit", map_shopping_unit),
    Strategy("commercial-unit", "div.commercial-unit-desktop-shopping a[href]", map_shopping_unit),
    Strategy("shopping-results", 'div[class*="shopping-result"] a[href]', map_shopping_unit),
)

ORGANIC_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("organic", "div.g", map_organic, exclude_within=ORGANIC_EXCLUDED_WITHIN),
    Strategy(
        "organic-alt",
        'div[data-sokoban-grid] div[data-header-feature="0"]',
        map_organic,
        exclude_within=ORGANIC_EXCLUDED_WITHIN,
    ),
    Strategy("featured-snippet", 'div[data-tts="answers"]', map_featured_snippet),
)

LOCAL_PACK_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("standard", 'div[data-local-attribute="d3bn"] div[role="heading"]', map_local_card),
    Strategy("carousel", 'div[aria-label="Local Results"] div[role="heading"]', map_local_card),
)

STRATEGIES: dict[str, tuple[Strategy, ...]] = {
    "top_ads": TOP_AD_STRATEGIES,
    "bottom_ads": BOTTOM_AD_STRATEGIES,
    "shopping_ads": SHOPPING_STRATEGIES,
    "organic_results": ORGANIC_STRATEGIES,
    "local_pack": LOCAL_PACK_STRATEGIES,
}

# Links whose query strings may carry ad tracking parameters.
AD_LINK_SELECTOR = "div[data-text-ad] a[href], #tads a[href], #bottomads a[href], .pla-unit a[href]"
