from adworker.extraction.assembly import (
    assemble,
    dedupe_by_title,
    normalize_title,
    tracking_parameters,
)
from adworker.extraction.domains import UNKNOWN_ADVERTISER
from adworker.extraction.models import ExtractedAd, ShoppingAd


def _ad(title: str, domain: str = "fastfix.com", container: str = "standard") -> ExtractedAd:
    return ExtractedAd(title=title, advertiser_domain=domain, container_type=container)


class TestNormalizeTitle:
    def test_collapses_whitespace_and_case(self) -> None:
        assert normalize_title("  Boston\n Plumbing   PROS ") == "boston plumbing pros"


class TestDedupeByTitle:
    def test_keeps_first_candidate_per_title(self) -> None:
        first = _ad("Boston Plumbing Pros", container="standard")
        duplicate = _ad("boston  plumbing pros", container="tads")
        other = _ad("FastFix Plumbing", container="tads")

        result = dedupe_by_title([first, duplicate, other])

        assert result == [first, other]

    def test_drops_untitled_candidates(self) -> None:
        assert dedupe_by_title([_ad("   "), _ad("")]) == []

    def test_result_has_unique_normalized_titles(self) -> None:
        candidates = [_ad(title) for title in ["A", "a", "B", "b ", "A", "C"]]

        titles = [normalize_title(ad.title) for ad in dedupe_by_title(candidates)]

        assert titles == ["a", "b", "c"]


class TestTrackingParameters:
    def test_collects_known_parameters(self) -> None:
        params = tracking_parameters(
            [
                "https://www.fastfix.com/?gclid=abc&utm_source=google",
                "https://www.fastfix.com/?campaign_id=42&gclid=abc",
                None,
            ]
        )

        assert dict(params) == {"gclid": ("abc",), "campaignid": ("42",)}

    def test_reads_redirect_targets(self) -> None:
        params = tracking_parameters(
            ["https://www.googleadservices.com/pagead/aclk?adurl=https://x.com/%3Fkeyword%3Dplumber"]
        )

        assert dict(params) == {"keyword": ("plumber",)}


class TestAssemble:
    def test_positions_restart_per_category(self) -> None:
        data = assemble(
            top_ads=[_ad("Top A"), _ad("Top B")],
            bottom_ads=[_ad("Bottom A")],
        )

        assert [(ad.position, ad.position_overall) for ad in data.top_ads] == [(1, 1), (2, 2)]
        assert [(ad.position, ad.position_overall) for ad in data.bottom_ads] == [(1, 3)]
        assert data.ad_metrics.ad_positions == (1, 2, 3)

    def test_metrics_count_shopping_ads(self) -> None:
        data = assemble(
            top_ads=[_ad("Top A", "fastfix.com")],
            shopping_ads=[ShoppingAd(title="Pipe Wrench", advertiser_domain="acme-tools.com")],
        )

        assert data.ad_metrics.total_ads == 2
        assert data.ad_metrics.has_ads
        assert data.ad_metrics.ad_domains == ("fastfix.com", "acme-tools.com")
        assert data.shopping_ads[0].position == 1

    def test_domains_are_unique_and_known(self) -> None:
        data = assemble(
            top_ads=[
                _ad("A", "fastfix.com"),
                _ad("B", UNKNOWN_ADVERTISER),
                _ad("C", "fastfix.com"),
            ]
        )

        assert data.ad_metrics.ad_domains == ("fastfix.com",)

    def test_empty_input(self) -> None:
        data = assemble()

        assert data.ad_metrics.total_ads == 0
        assert not data.ad_metrics.has_ads
        assert data.ad_metrics.ad_positions == ()
