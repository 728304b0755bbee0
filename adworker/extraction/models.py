from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Sitelink:
    title: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url}


@dataclass(frozen=True)
class ExtractedAd:
    """Text ad from the top or bottom ad block."""

    title: str
    description: str = ""
    display_url: str = ""
    destination_url: str = ""
    advertiser_domain: str = "unknown"
    container_type: str = "standard"
    position: int = 0
    position_overall: int = 0
    sitelinks: tuple[Sitelink, ...] = ()
    extensions: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "displayUrl": self.display_url,
            "url": self.destination_url,
            "advertiser": self.advertiser_domain,
            "containerType": self.container_type,
            "position": self.position,
            "positionOverall": self.position_overall,
            "sitelinks": [link.to_dict() for link in self.sitelinks],
            "extensions": list(self.extensions),
        }


@dataclass(frozen=True)
class ShoppingAd:
    title: str
    url: str = ""
    price: str = ""
    merchant: str = ""
    advertiser_domain: str = "unknown"
    container_type: str = "pla"
    position: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "price": self.price,
            "merchant": self.merchant,
            "advertiser": self.advertiser_domain,
            "containerType": self.container_type,
            "position": self.position,
        }


@dataclass(frozen=True)
class OrganicResult:
    title: str
    url: str = ""
    display_url: str = ""
    description: str = ""
    result_type: str = "organic"
    rating: float | None = None
    review_count: int | None = None
    position: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "displayUrl": self.display_url,
            "description": self.description,
            "type": self.result_type,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "position": self.position,
        }


@dataclass(frozen=True)
class LocalResult:
    title: str
    address: str = ""
    phone: str = ""
    rating: float | None = None
    review_count: int | None = None
    website: str = ""
    position: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "address": self.address,
            "phone": self.phone,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "website": self.website,
            "position": self.position,
        }


@dataclass(frozen=True)
class AdMetrics:
    total_ads: int = 0
    has_ads: bool = False
    ad_positions: tuple[int, ...] = ()
    ad_domains: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAds": self.total_ads,
            "hasAds": self.has_ads,
            "adPositions": list(self.ad_positions),
            "adDomains": list(self.ad_domains),
        }


@dataclass(frozen=True)
class ExtractedAdsData:
    """Canonical extraction output, identical for JSON and HTML input."""

    top_ads: tuple[ExtractedAd, ...] = ()
    bottom_ads: tuple[ExtractedAd, ...] = ()
    shopping_ads: tuple[ShoppingAd, ...] = ()
    organic_results: tuple[OrganicResult, ...] = ()
    local_pack: tuple[LocalResult, ...] = ()
    ad_metrics: AdMetrics = field(default_factory=AdMetrics)
    # Tracking parameters (gclid, campaignid, ...) seen in ad links.
    ad_parameters: tuple[tuple[str, tuple[str, ...]], ...] = ()

    @classmethod
    def empty(cls) -> "ExtractedAdsData":
        return cls()

    @property
    def text_ads(self) -> tuple[ExtractedAd, ...]:
        """Top ads followed by bottom ads, in page order."""
        return self.top_ads + self.bottom_ads

    def parameters(self) -> dict[str, list[str]]:
        return {name: list(values) for name, values in self.ad_parameters}

    def to_dict(self) -> dict[str, Any]:
        return {
            "topAds": [ad.to_dict() for ad in self.top_ads],
            "bottomAds": [ad.to_dict() for ad in self.bottom_ads],
            "shoppingAds": [ad.to_dict() for ad in self.shopping_ads],
            "organicResults": [result.to_dict() for result in self.organic_results],
            "localPack": [result.to_dict() for result in self.local_pack],
            "adMetrics": self.ad_metrics.to_dict(),
        }
