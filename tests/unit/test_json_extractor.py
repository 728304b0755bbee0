from adworker.extraction.html_extractor import HtmlExtractor
from adworker.extraction.json_extractor import JsonExtractor


class TestPaidAds:
    def test_orders_by_overall_position(self, parsed_serp: dict) -> None:
        data = JsonExtractor().extract(parsed_serp)

        assert [ad.title for ad in data.top_ads] == ["Boston Plumbing Pros", "Rooter Express"]
        assert [ad.title for ad in data.bottom_ads] == ["FastFix Plumbing"]
        assert data.bottom_ads[0].position == 1
        assert data.bottom_ads[0].position_overall == 3

    def test_maps_fields(self, parsed_serp: dict) -> None:
        ad = JsonExtractor().extract(parsed_serp).top_ads[0]

        assert ad.display_url == "www.bostonplumbing.com"
        assert ad.destination_url == "https://www.bostonplumbing.com/?gclid=abc123"
        assert ad.advertiser_domain == "bostonplumbing.com"
        assert ad.container_type == "parsed"

    def test_dedupes_titles(self) -> None:
        content = {
            "paid": [
                {"pos_overall": 1, "title": "Boston Plumbing Pros", "url": "https://a.com/"},
                {"pos_overall": 2, "title": "boston plumbing  PROS", "url": "https://b.com/"},
            ]
        }

        data = JsonExtractor().extract(content)

        assert [ad.destination_url for ad in data.top_ads] == ["https://a.com/"]

    def test_sitelinks_and_parameters(self) -> None:
        content = {
            "paid": [
                {
                    "pos_overall": 1,
                    "title": "FastFix Plumbing",
                    "url": "https://www.fastfix.com/?gclid=g1&campaignid=42",
                    "sitelinks": {
                        "expanded": [{"title": "Book Now", "url": "https://www.fastfix.com/book"}],
                        "inline": [{"title": "Coupons", "url": "https://www.fastfix.com/coupons"}],
                    },
                }
            ]
        }

        data = JsonExtractor().extract(content)

        assert [link.title for link in data.top_ads[0].sitelinks] == ["Book Now", "Coupons"]
        assert data.parameters() == {"gclid": ["g1"], "campaignid": ["42"]}

    def test_ignores_untitled_and_malformed_items(self) -> None:
        content = {"paid": [{"url": "https://a.com/"}, "garbage", None]}

        data = JsonExtractor().extract(content)

        assert data.top_ads == ()


class TestOtherSections:
    def test_local_pack_items(self) -> None:
        content = {
            "local_pack": {
                "items": [
                    {
                        "title": "Joe's Plumbing",
                        "address": "12 Main St",
                        "phone": "(617) 555-0100",
                        "rating": 4.5,
                        "rating_count": "120",
                        "links": [{"href": "https://www.joesplumbing.com/"}],
                    }
                ]
            }
        }

        business = JsonExtractor().extract(content).local_pack[0]

        assert business.rating == 4.5
        assert business.review_count == 120
        assert business.website == "https://www.joesplumbing.com/"
        assert business.position == 1

    def test_shopping_with_merchant_object(self) -> None:
        content = {
            "pla": {
                "items": [
                    {
                        "title": "Pipe Wrench 18in",
                        "price": "$24.99",
                        "url": "https://shop.acme-tools.com/p/1",
                        "merchant": {"name": "Acme Tools"},
                    }
                ]
            }
        }

        data = JsonExtractor().extract(content)

        assert data.shopping_ads[0].merchant == "Acme Tools"
        assert data.shopping_ads[0].advertiser_domain == "acme-tools.com"
        assert data.ad_metrics.total_ads == 1


class TestParity:
    def test_json_and_html_produce_the_same_shape(self, parsed_serp: dict, serp_html: str) -> None:
        from_json = JsonExtractor().extract(parsed_serp).to_dict()
        from_html = HtmlExtractor().extract(serp_html).to_dict()

        assert from_json.keys() == from_html.keys()
        assert from_json["adMetrics"] == from_html["adMetrics"]
        for category in ("topAds", "bottomAds", "organicResults"):
            assert [item["title"] for item in from_json[category]] == [
                item["title"] for item in from_html[category]
            ]
        assert [ad["url"] for ad in from_json["topAds"]] == [ad["url"] for ad in from_html["topAds"]]
