"""
Scan orchestration: fetch a page and run the analyses its depth asks for.
"""
import asyncio
import logging
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import httpx
from openai import AsyncOpenAI

from seo_scanner.extractor import (
    analyze_mobile_friendliness, analyze_speed_hints, extract_page_document, load_document
)
from seo_scanner.fetcher import check_robots_txt, check_sitemap, fetch_page
from seo_scanner.keywords import analyze_content_structure, analyze_keywords, readability_metrics
from seo_scanner.models import InvalidRequestError
from seo_scanner.scoring import build_optimization_score
from seo_scanner.suggestions import generate_content_suggestions

logger = logging.getLogger(__name__)

SCAN_DEPTHS = ('basic', 'advanced', 'full')

_HOSTNAME_RE = re.compile(r'^(localhost|(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+(?:[a-z]{2,63}|xn--[a-z0-9-]+)|\d{1,3}(?:\.\d{1,3}){3})$')


def validate_url(url: Optional[str]) -> str:
    """
    Normalise a user supplied URL.

    'example.com/page' -> 'https://example.com/page'

    Raises:
        InvalidRequestError: If the URL is missing or not an http(s) URL with a valid host
    """
    url = (url or '').strip()
    if not url or any(char.isspace() for char in url):
        raise InvalidRequestError("Please provide a valid URL")
    if '://' not in url:
        url = f"https://{url}"

    parsed = urlparse(url)
    try:
        parsed.port
        # Internationalised hosts are matched in their punycode form
        hostname = (parsed.hostname or '').lower().encode('idna').decode('ascii')
    except (ValueError, UnicodeError):
        raise InvalidRequestError("Please provide a valid URL")
    if parsed.scheme not in ('http', 'https') or not _HOSTNAME_RE.match(hostname):
        raise InvalidRequestError("Please provide a valid URL")
    return url


def validate_scan_request(
    url: Optional[str],
    depth: Optional[str],
    target_keywords: Optional[Sequence[str]]
) -> Tuple[str, str, List[str]]:
    """
    Check scan input before any network work starts.

    Returns:
        (normalised url, depth, cleaned keyword list)

    Raises:
        InvalidRequestError: On a missing/invalid URL or an unknown depth
    """
    url = validate_url(url)
    depth = depth or 'basic'
    if depth not in SCAN_DEPTHS:
        raise InvalidRequestError(f"Depth must be one of: {', '.join(SCAN_DEPTHS)}")
    keywords = [keyword.strip() for keyword in (target_keywords or []) if keyword and keyword.strip()]
    return url, depth, keywords


class SEOScanner:
    """
    Runs page scans and keeps the results of this process in memory.

    Attributes:
        client: Optional shared httpx client for page fetches and probes
        ai_client: Optional OpenAI client for full-depth suggestions
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, ai_client: Optional[AsyncOpenAI] = None):
        self.client = client
        self.ai_client = ai_client
        self._scans: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    async def scan(
        self,
        url: Optional[str],
        depth: Optional[str] = 'basic',
        target_keywords: Optional[Sequence[str]] = (),
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Scan one page.

        Args:
            url: Page to scan; 'https://' is assumed when no scheme is given
            depth: 'basic', 'advanced' or 'full'
            target_keywords: Keywords for density and position analysis
            request_id: Prefix for log lines

        Returns:
            Scan result with camelCase keys: url, depth, timestamp, scanId, basic
            and, depending on depth, advanced and full

        Raises:
            InvalidRequestError: If the input is rejected
            FetchError: If the page cannot be fetched
        """
        url, depth, keywords = validate_scan_request(url, depth, target_keywords)
        logger.info(f"[{request_id}] Starting {depth} scan for: {url}")

        fetched = await fetch_page(url, self.client)
        page = load_document(fetched.html, fetched.url)
        document = extract_page_document(page)
        doc = document.model_dump(by_alias=True, mode='json')

        result: Dict[str, Any] = {
            'url': url,
            'depth': depth,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'scanId': uuid.uuid4().hex,
            'basic': {
                'title': doc['title'],
                'metaDescription': doc['metaDescription'],
                'metaKeywords': doc['metaKeywords'],
                'canonical': doc['canonical'],
                'openGraph': doc['openGraph'],
                'twitterCard': doc['twitterCard'],
                'headings': doc['headings'],
                'images': doc['images'],
                'links': doc['links'],
                'technicalIssues': doc['technicalIssues'],
            }
        }

        keyword_analysis = None
        if depth in ('advanced', 'full'):
            keyword_analysis = analyze_keywords(page.body_text, keywords)
            analysis = keyword_analysis.model_dump(by_alias=True, mode='json')
            result['advanced'] = {
                'keywordDensity': analysis['density'],
                'keywordPositions': analysis['positions'],
                'contentLength': analysis['contentLength'],
                'characterCount': analysis['characterCount'],
                'readabilityScore': analysis['readabilityScore'],
                'readabilityMetrics': readability_metrics(page.body_text),
                'contentStructure': analyze_content_structure(page).model_dump(by_alias=True, mode='json'),
                'schemaMarkup': doc['schemaMarkup'],
                'performanceHints': doc['performanceHints'],
                'mobileFriendliness': analyze_mobile_friendliness(page),
                'speedHints': analyze_speed_hints(page),
            }

        if depth == 'full':
            score = build_optimization_score(document, keyword_analysis)
            ai_suggestions, robots, sitemap = await asyncio.gather(
                generate_content_suggestions(document, keywords, client=self.ai_client),
                check_robots_txt(fetched.url, self.client),
                check_sitemap(fetched.url, self.client)
            )
            robots.pop('content', None)
            result['full'] = {
                'optimizationScore': score.score,
                'scoreBreakdown': score.components.model_dump(by_alias=True),
                'recommendations': [r.model_dump(by_alias=True) for r in score.recommendations],
                'aiSuggestions': ai_suggestions.model_dump(by_alias=True, mode='json'),
                'crawlability': {'robotsTxt': robots, 'sitemap': sitemap},
            }

        with self._lock:
            self._scans[result['scanId']] = result
        logger.info(f"[{request_id}] Scan completed for: {url}")
        return result

    def list_scans(self) -> List[Dict[str, Any]]:
        """Summaries of stored scans, newest first."""
        with self._lock:
            scans = list(self._scans.values())
        summaries = [
            {'id': scan['scanId'], 'url': scan['url'], 'depth': scan['depth'], 'timestamp': scan['timestamp']}
            for scan in scans
        ]
        return sorted(summaries, key=lambda summary: summary['timestamp'], reverse=True)

    def get_scan(self, scan_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._scans.get(scan_id)
