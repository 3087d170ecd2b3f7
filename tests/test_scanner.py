"""
Tests for scan orchestration across depths.
"""
from unittest.mock import patch

import httpx
import pytest

from seo_scanner.fetcher import FetchError
from seo_scanner.models import InvalidRequestError
from seo_scanner.scanner import SEOScanner, validate_scan_request, validate_url

MOCK_URL = "https://example-test.com/test-page"

MOCK_HTML_CONTENT = """
<!DOCTYPE html>
<html lang="en">
<head>
    <title>Best SEO Tools for Small Business Websites</title>
    <meta name="description" content="Short description">
</head>
<body>
    <h1>SEO Tools</h1>
    <h2>Why SEO matters</h2>
    <h4>Skipped level</h4>
    <p>seo seo seo analysis website</p>
    <img src="a.png" alt="A">
    <img src="b.png">
    <a href="/pricing">Pricing</a>
    <a href="https://other.com" rel="nofollow">Other</a>
</body>
</html>
"""


def site_handler(request):
    if request.url.path == "/robots.txt":
        return httpx.Response(200, text="User-agent: *")
    if request.url.path == "/sitemap.xml":
        return httpx.Response(404)
    return httpx.Response(200, text=MOCK_HTML_CONTENT, headers={'content-type': 'text/html'})


@pytest.fixture
def scanner():
    client = httpx.AsyncClient(transport=httpx.MockTransport(site_handler), follow_redirects=True)
    return SEOScanner(client=client)


@pytest.fixture(autouse=True)
def no_openai():
    with patch('seo_scanner.suggestions.get_openai_client', return_value=None):
        yield


@pytest.mark.parametrize("raw, expected", [
    ("https://example.com", "https://example.com"),
    ("example.com/page", "https://example.com/page"),
    ("  http://sub.example.co.uk/a?b=c ", "http://sub.example.co.uk/a?b=c"),
    ("http://localhost:8000/", "http://localhost:8000/"),
    ("https://bücher.de", "https://bücher.de"),
    ("https://example.xn--p1ai", "https://example.xn--p1ai"),
])
def test_validate_url_accepts(raw, expected):
    assert validate_url(raw) == expected


@pytest.mark.parametrize("raw", [
    None, "", "   ", "not a url", "ftp://example.com", "https://", "https://nodot",
    "https://example.com:abc/", "https://example.com:99999/",
])
def test_validate_url_rejects(raw):
    with pytest.raises(InvalidRequestError):
        validate_url(raw)


def test_validate_scan_request_depth_and_keywords():
    url, depth, keywords = validate_scan_request("example.com", None, [" seo ", "", "tools"])

    assert (url, depth, keywords) == ("https://example.com", "basic", ["seo", "tools"])
    with pytest.raises(InvalidRequestError, match="Depth must be one of"):
        validate_scan_request("example.com", "deep", [])


@pytest.mark.asyncio
async def test_basic_scan(scanner):
    result = await scanner.scan(MOCK_URL, 'basic')

    assert result['url'] == MOCK_URL
    assert result['depth'] == 'basic'
    assert result['scanId']
    assert 'advanced' not in result
    assert 'full' not in result

    basic = result['basic']
    assert basic['title'] == "Best SEO Tools for Small Business Websites"
    assert basic['headings']['h1'] == ["SEO Tools"]
    assert basic['images'] == {
        'total': 2, 'withAlt': 1, 'withoutAlt': 1,
        'items': [{'src': 'a.png', 'alt': 'A', 'title': None}, {'src': 'b.png', 'alt': None, 'title': None}]
    }
    assert basic['links']['internalCount'] == 1
    assert basic['links']['externalCount'] == 1
    assert basic['technicalIssues']['descriptionTooShort'] is True


@pytest.mark.asyncio
async def test_advanced_scan(scanner):
    result = await scanner.scan(MOCK_URL, 'advanced', ["seo"])
    advanced = result['advanced']

    assert 'full' not in result
    assert advanced['contentLength'] == 14
    assert advanced['keywordDensity']['seo']['count'] == 5
    assert advanced['keywordDensity']['seo']['percentage'] == "35.71"
    assert [p['wordIndex'] for p in advanced['keywordPositions']['seo']] == [0, 3, 7, 8, 9]
    assert 0 <= advanced['readabilityScore'] <= 100
    assert advanced['contentStructure']['hierarchyIssues'][0]['issue'].startswith("H4 follows H2")


@pytest.mark.asyncio
async def test_full_scan(scanner):
    result = await scanner.scan(MOCK_URL, 'full', ["seo"])
    full = result['full']

    assert 'advanced' in result
    assert full['scoreBreakdown'] == {
        'title': 20, 'metaDescription': 10, 'headings': 20, 'images': 10, 'technical': 20
    }
    assert full['optimizationScore'] == 80
    assert [r['category'] for r in full['recommendations']][:2] == ['meta', 'images']
    assert full['aiSuggestions']['available'] is False
    assert full['aiSuggestions']['fallbackSuggestions']
    assert full['crawlability']['robotsTxt']['exists'] is True
    assert 'content' not in full['crawlability']['robotsTxt']
    assert full['crawlability']['sitemap']['exists'] is False


@pytest.mark.asyncio
async def test_scan_history(scanner):
    first = await scanner.scan(MOCK_URL)
    second = await scanner.scan("example-test.com/other", 'advanced')

    summaries = scanner.list_scans()
    assert [s['id'] for s in summaries] == [second['scanId'], first['scanId']]
    assert summaries[1] == {'id': first['scanId'], 'url': MOCK_URL, 'depth': 'basic', 'timestamp': first['timestamp']}
    assert scanner.get_scan(first['scanId']) is first
    assert scanner.get_scan("unknown") is None


@pytest.mark.asyncio
async def test_invalid_input_is_rejected_before_fetching():
    def handler(request):
        raise AssertionError("page must not be fetched")

    scanner = SEOScanner(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    with pytest.raises(InvalidRequestError):
        await scanner.scan(MOCK_URL, 'everything')
    with pytest.raises(InvalidRequestError):
        await scanner.scan(None)
    assert scanner.list_scans() == []


@pytest.mark.asyncio
async def test_fetch_failure_propagates():
    scanner = SEOScanner(client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))))

    with pytest.raises(FetchError) as exc_info:
        await scanner.scan(MOCK_URL, 'full')

    assert exc_info.value.kind == 'http_status'
    assert scanner.list_scans() == []
