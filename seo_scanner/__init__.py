"""
SEO Scanner
On-page SEO scans, keyword analysis, optimization scoring and rank tracking.
"""

__version__ = "1.0.0"

from .models import (
    PageDocument, KeywordAnalysis, OptimizationScore, Recommendation,
    RankRecord, RankTrend, InvalidRequestError
)
from .extractor import load_document, extract_page_document
from .keywords import analyze_keywords, calculate_readability_score
from .scoring import calculate_optimization_score, generate_recommendations, build_optimization_score
from .rank_history import RankHistoryStore, MemoryHistoryStorage, JsonFileHistoryStorage
from .fetcher import FetchError, fetch_page
from .scanner import SEOScanner
