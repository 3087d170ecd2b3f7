"""
Page fetching for the SEO Scanner.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import httpx

from seo_scanner.config import FETCH_MAX_REDIRECTS, FETCH_TIMEOUT, PROBE_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
}


class FetchError(Exception):
    """
    Raised when a page cannot be fetched.

    kind is one of 'timeout', 'not_found', 'http_status', 'network' or 'invalid_url'.
    """

    def __init__(self, kind: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


@dataclass
class FetchedPage:
    url: str
    html: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)


def _new_client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        headers=DEFAULT_HEADERS,
        follow_redirects=True,
        max_redirects=FETCH_MAX_REDIRECTS
    )


async def fetch_page(url: str, client: Optional[httpx.AsyncClient] = None) -> FetchedPage:
    """
    Fetch the HTML of a page.

    Args:
        url: Absolute URL to fetch
        client: Optional shared httpx client; a short-lived one is created otherwise

    Returns:
        FetchedPage with the final URL, body and status

    Raises:
        FetchError: On timeout, DNS/connection failure, a non-2xx response or an unusable URL
    """
    logger.info(f"Fetching HTML from: {url}")
    owns_client = client is None
    client = client or _new_client(FETCH_TIMEOUT)
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.TimeoutException as e:
        logger.error(f"Request timed out while fetching {url}: {e}")
        raise FetchError('timeout', 'Request timeout - the website took too long to respond')
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error(f"HTTP error {status} fetching {url}")
        raise FetchError('http_status', f"HTTP {status}: {e.response.reason_phrase}", status_code=status)
    except httpx.ConnectError as e:
        logger.error(f"Could not connect to {url}: {e}")
        raise FetchError('not_found', 'Website not found - please check the URL')
    except httpx.RequestError as e:
        logger.error(f"Network error while fetching {url}: {e}")
        raise FetchError('network', f"Failed to fetch website: {e}")
    except httpx.InvalidURL as e:
        logger.error(f"Invalid URL {url}: {e}")
        raise FetchError('invalid_url', f"Invalid URL: {e}")
    finally:
        if owns_client:
            await client.aclose()

    html = response.text
    logger.info(f"HTML fetched successfully. Content length: {len(html)} characters")
    return FetchedPage(
        url=str(response.url),
        html=html,
        status_code=response.status_code,
        headers=dict(response.headers)
    )


async def _probe(url: str, path: str, client: Optional[httpx.AsyncClient]) -> Dict[str, Any]:
    target = urljoin(url, path)
    owns_client = client is None
    client = client or _new_client(PROBE_TIMEOUT)
    try:
        response = await client.get(target)
        return {'exists': response.status_code == 200, 'url': target, 'status': response.status_code,
                'content': response.text if response.status_code == 200 else None}
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Could not probe {target}: {e}")
        return {'exists': False, 'url': target, 'status': None, 'content': None, 'error': str(e)}
    finally:
        if owns_client:
            await client.aclose()


async def check_robots_txt(url: str, client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
    """Looks for /robots.txt on the page's host. Never raises."""
    return await _probe(url, '/robots.txt', client)


async def check_sitemap(url: str, client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
    """Looks for /sitemap.xml on the page's host. Never raises."""
    result = await _probe(url, '/sitemap.xml', client)
    result.pop('content', None)
    return result
