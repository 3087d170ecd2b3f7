"""
Rank checking against a SERP API.
"""
import asyncio
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from seo_scanner.config import (
    RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW, SERP_API_KEY,
    SERP_API_URL, SERP_RESULTS_LIMIT
)
from seo_scanner.models import InvalidRequestError, RankRecord
from seo_scanner.rank_history import RankHistoryStore

logger = logging.getLogger(__name__)

SEARCH_ENGINES = {'google', 'bing', 'yahoo', 'duckduckgo', 'yandex', 'baidu'}


class SerpApiError(Exception):
    """Custom exception for SERP API related errors."""
    pass


class RateLimiter:
    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests = []
        self.lock = asyncio.Lock()

    async def acquire(self):
        async with self.lock:
            now = datetime.now()
            # Remove old requests
            self.requests = [req_time for req_time in self.requests
                             if now - req_time < timedelta(seconds=self.window_seconds)]

            if len(self.requests) >= self.max_requests:
                # Wait until oldest request expires
                wait_time = (self.requests[0] + timedelta(seconds=self.window_seconds) - now).total_seconds()
                if wait_time > 0:
                    logger.info(f"Rate limit hit, waiting for {wait_time:.2f} seconds.")
                    await asyncio.sleep(wait_time)
                    now = datetime.now()
                    self.requests = [req_time for req_time in self.requests
                                     if now - req_time < timedelta(seconds=self.window_seconds)]

            self.requests.append(now)


def normalize_domain(domain: str) -> str:
    """'https://www.Example.com/page' -> 'www.example.com'"""
    domain = domain.strip().lower()
    if '://' in domain:
        domain = urlparse(domain).netloc
    return domain.split('/')[0]


def find_domain_position(organic_results: List[Dict[str, Any]], domain: str) -> Tuple[Optional[int], Optional[str]]:
    """1-based position and URL of the first organic result linking to the domain."""
    needle = normalize_domain(domain)
    for index, result in enumerate(organic_results):
        link = result.get('link') or ''
        if needle and needle in link.lower():
            return index + 1, link
    return None, None


class RankChecker:
    """
    Looks up where a domain ranks for a keyword and records the observation.

    Attributes:
        history: RankHistoryStore receiving every successful check
        rate_limiter: RateLimiter guarding the SERP API
        api_key: SERP API key
        serp_api_url: SERP API endpoint
    """

    def __init__(
        self,
        history: RankHistoryStore,
        api_key: Optional[str] = SERP_API_KEY,
        serp_api_url: str = SERP_API_URL,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.history = history
        self.api_key = api_key
        self.serp_api_url = serp_api_url
        self.client = client
        self.rate_limiter = RateLimiter(RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW)

    async def fetch_organic_results(self, keyword: str, search_engine: str = 'google') -> List[Dict[str, Any]]:
        """
        Organic results for a keyword from the SERP API.

        Raises:
            SerpApiError: If the API key is missing or API interaction fails
        """
        if not self.api_key:
            raise SerpApiError("SERP API key is not configured")

        await self.rate_limiter.acquire()
        params = {
            'api_key': self.api_key,
            'q': keyword,
            'num': SERP_RESULTS_LIMIT,
            'engine': search_engine,
        }
        logger.info(f"Fetching SERP for keyword='{keyword}', engine='{search_engine}'")

        owns_client = self.client is None
        client = self.client or httpx.AsyncClient(timeout=45.0)
        try:
            response = await client.get(self.serp_api_url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"HTTP error {status} fetching SERP: {e}")
            if status == 401:
                raise SerpApiError("Invalid SERP API key")
            elif status == 429:
                raise SerpApiError("SERP API rate limit exceeded")
            raise SerpApiError(f"HTTP error {status} fetching SERP results")
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error fetching SERP results: {e}")
            raise SerpApiError("SERP API request timed out")
        except httpx.RequestError as e:
            logger.error(f"Network error fetching SERP results: {e}")
            raise SerpApiError(f"Network error: {str(e)}")
        except json.JSONDecodeError:
            logger.error("Failed to decode SERP API JSON response")
            raise SerpApiError("Invalid JSON response from SERP API")
        finally:
            if owns_client:
                await client.aclose()

        if not isinstance(data, dict):
            raise SerpApiError("Invalid response format from SERP API")
        if data.get('error'):
            raise SerpApiError(f"SERP API Error: {data['error']}")

        organic_results = data.get('organic_results') or []
        if not organic_results:
            logger.warning(f"No organic results found for keyword '{keyword}'")
        return organic_results

    async def check_rank(
        self,
        keyword: Optional[str],
        domain: Optional[str],
        search_engine: str = 'google',
        request_id: Optional[str] = None
    ) -> RankRecord:
        """
        Check the rank of a domain for a keyword and append it to the history.

        Raises:
            InvalidRequestError: If keyword or domain is missing or the engine is unknown
            SerpApiError: If the SERP API call fails
        """
        keyword = (keyword or '').strip()
        domain = (domain or '').strip()
        if not keyword or not domain:
            raise InvalidRequestError("Both keyword and domain are required")
        search_engine = (search_engine or 'google').lower()
        if search_engine not in SEARCH_ENGINES:
            raise InvalidRequestError(f"Search engine must be one of: {', '.join(sorted(SEARCH_ENGINES))}")

        organic_results = await self.fetch_organic_results(keyword, search_engine)
        position, url = find_domain_position(organic_results, domain)
        logger.info(f"[{request_id}] Rank for '{keyword}' on {domain}: {position or 'not found'}")

        record = RankRecord(
            keyword=keyword,
            domain=domain,
            position=position,
            url=url,
            found=position is not None,
            search_engine=search_engine
        )
        return self.history.record(record)
