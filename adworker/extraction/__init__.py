from adworker.extraction.extractor import extract_from_payload, serp_summary
from adworker.extraction.models import ExtractedAd, ExtractedAdsData

__all__ = ["ExtractedAd", "ExtractedAdsData", "extract_from_payload", "serp_summary"]
