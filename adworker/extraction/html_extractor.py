from collections.abc import Mapping, Sequence

from bs4 import BeautifulSoup, Tag

from adworker.extraction.assembly import assemble, dedupe_by_title, tracking_parameters
from adworker.extraction.models import ExtractedAdsData
from adworker.extraction.strategies import AD_LINK_SELECTOR, STRATEGIES, Strategy


class HtmlExtractor:
    """Extracts ads and results from a SERP HTML document using ordered strategies."""

    def __init__(self, strategies: Mapping[str, Sequence[Strategy]] | None = None) -> None:
        self._strategies = strategies if strategies is not None else STRATEGIES

    def extract(self, html: str) -> ExtractedAdsData:
        soup = BeautifulSoup(html, "html.parser")
        categories = {
            category: self.run_category(soup, strategies)
            for category, strategies in self._strategies.items()
        }
        links = [a.get("href") for a in soup.select(AD_LINK_SELECTOR)]
        return assemble(
            top_ads=categories.get("top_ads", []),
            bottom_ads=categories.get("bottom_ads", []),
            shopping_ads=categories.get("shopping_ads", []),
            organic_results=categories.get("organic_results", []),
            local_pack=categories.get("local_pack", []),
            ad_parameters=tracking_parameters(
                link for link in links if isinstance(link, str)
            ),
        )

    @classmethod
    def run_category(cls, soup: Tag, strategies: Sequence[Strategy]) -> list:
        """Run every strategy in order, keeping the first candidate per normalized title."""
        candidates: list = []
        for strategy in strategies:
            candidates.extend(cls.run_strategy(soup, strategy))
        return dedupe_by_title(candidates)

    @staticmethod
    def run_strategy(soup: Tag, strategy: Strategy) -> list:
        excluded: set[int] = set()
        for ancestor in strategy.exclude_within:
            excluded.update(id(tag) for tag in soup.select(f"{ancestor} {strategy.selector}"))
        results = []
        for element in soup.select(strategy.selector):
            if id(element) in excluded:
                continue
            candidate = strategy.mapper(element, strategy.name)
            if candidate is not None:
                results.append(candidate)
        return results
