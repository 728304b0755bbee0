import pytest

TOP_ADS_HTML = """
<div id="tads">
  <div data-text-ad="1">
    <a data-pcu="https://www.bostonplumbing.com/?gclid=abc123"
       href="https://www.googleadservices.com/pagead/aclk?adurl=https://www.bostonplumbing.com/?gclid=abc123">
      <div role="heading">Boston Plumbing Pros</div>
    </a>
    <span role="text">www.bostonplumbing.com</span>
    <div data-dtld="true">24/7 emergency plumbing service across Greater Boston.</div>
  </div>
  <div data-text-ad="1">
    <a data-pcu="https://rooter.example-plumbers.net/" href="https://rooter.example-plumbers.net/">
      <div role="heading">Rooter Express</div>
    </a>
    <span role="text">rooter.example-plumbers.net</span>
    <div data-dtld="true">Drain cleaning from $99. Book online today.</div>
  </div>
</div>
"""

ORGANIC_HTML = """
<div id="search">
  <div class="g">
    <a href="https://www.yelp.com/search?find_desc=plumbers"><h3>Top 10 Plumbers in Boston</h3></a>
    <cite>https://www.yelp.com</cite>
    <div class="VwiC3b">Find the best plumbers near you, with reviews and prices.</div>
  </div>
</div>
"""

BOTTOM_ADS_HTML = """
<div id="bottomads">
  <div data-text-ad="1">
    <a data-pcu="https://www.fastfix.com/" href="https://www.fastfix.com/">
      <div role="heading">FastFix Plumbing</div>
    </a>
    <span role="text">www.fastfix.com</span>
    <div data-dtld="true">Licensed plumbers with upfront pricing.</div>
  </div>
</div>
"""


def _page(*sections: str) -> str:
    return "<html><body>" + "".join(sections) + "</body></html>"


@pytest.fixture()
def serp_html() -> str:
    """Two top ads, one organic result and one bottom ad."""
    return _page(TOP_ADS_HTML, ORGANIC_HTML, BOTTOM_ADS_HTML)


@pytest.fixture()
def plumbers_serp_html() -> str:
    """Two top ads and one organic result."""
    return _page(TOP_ADS_HTML, ORGANIC_HTML)


@pytest.fixture()
def no_ads_html() -> str:
    return _page(ORGANIC_HTML)


@pytest.fixture()
def parsed_serp() -> dict:
    """Parsed SERP document equivalent to ``serp_html``."""
    return {
        "url": "https://www.google.com/search?q=plumbers+near+me",
        "results": {
            "paid": [
                {
                    "pos": 1,
                    "pos_overall": 3,
                    "title": "FastFix Plumbing",
                    "url": "https://www.fastfix.com/",
                    "url_shown": "www.fastfix.com",
                    "desc": "Licensed plumbers with upfront pricing.",
                    "block": "bottom",
                },
                {
                    "pos": 1,
                    "pos_overall": 1,
                    "title": "Boston Plumbing Pros",
                    "url": "https://www.bostonplumbing.com/?gclid=abc123",
                    "url_shown": "www.bostonplumbing.com",
                    "desc": "24/7 emergency plumbing service across Greater Boston.",
                },
                {
                    "pos": 2,
                    "pos_overall": 2,
                    "title": "Rooter Express",
                    "url": "https://rooter.example-plumbers.net/",
                    "url_shown": "rooter.example-plumbers.net",
                    "desc": "Drain cleaning from $99. Book online today.",
                },
            ],
            "organic": [
                {
                    "pos": 1,
                    "title": "Top 10 Plumbers in Boston",
                    "url": "https://www.yelp.com/search?find_desc=plumbers",
                    "url_shown": "https://www.yelp.com",
                    "desc": "Find the best plumbers near you, with reviews and prices.",
                }
            ],
        },
    }
