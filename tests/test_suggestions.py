"""
Tests for AI suggestions, their fallbacks and the keyword suggestion cache.
"""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from seo_scanner.cache import Cache
from seo_scanner.extractor import extract_page_document, load_document
from seo_scanner.suggestions import (
    KeywordSuggestionService, fallback_rank_suggestions, generate_content_suggestions,
    generate_meta_tag_suggestions, get_rank_suggestions, icon_for_suggestion
)

MOCK_HTML_CONTENT = """
<html><head><title>Short</title></head>
<body><img src="a.png"><img src="b.png" alt="B"><p>Content about seo tools.</p></body></html>
"""


def mock_openai_client(content=None, error=None):
    """An AsyncOpenAI stand-in whose chat completion returns `content` or raises `error`."""
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        completion = MagicMock()
        completion.choices = [MagicMock(message=MagicMock(content=content))]
        client.chat.completions.create = AsyncMock(return_value=completion)
    return client


@pytest.fixture
def document():
    return extract_page_document(load_document(MOCK_HTML_CONTENT, "https://example.com"))


@pytest.fixture
def no_openai():
    with patch('seo_scanner.suggestions.get_openai_client', return_value=None):
        yield


@pytest.mark.parametrize("position, third_title", [
    (None, "Keyword Optimization"),
    (45, "Keyword Optimization"),
    (15, "Related Keywords"),
    (3, "Internal Linking"),
])
def test_fallback_rank_suggestions_depend_on_position(position, third_title):
    suggestions = fallback_rank_suggestions("seo tools", position)

    assert len(suggestions) == 3
    assert suggestions[0].title == "Improve Content Quality"
    assert suggestions[2].title == third_title


@pytest.mark.asyncio
async def test_rank_suggestions_without_key_fall_back(no_openai):
    result = await get_rank_suggestions("seo tools", "example.com", 12)

    assert result.source == 'fallback'
    assert result.suggestions[2].title == "Related Keywords"


@pytest.mark.asyncio
async def test_rank_suggestions_from_openai():
    payload = {"suggestions": [
        {"title": "Improve Meta Description Copy", "description": "Rewrite it.", "priority": "High"},
        {"title": "Earn Relevant Backlinks", "description": "Outreach.", "priority": "medium"},
        {"title": "Speed Up Page Load", "description": "Compress images.", "priority": "low"},
    ]}
    client = mock_openai_client(json.dumps(payload))

    result = await get_rank_suggestions("seo tools", "example.com", 8, "https://example.com/x", client=client)

    assert result.source == 'openai'
    assert [s.icon for s in result.suggestions] == ['FiEdit3', 'FiLink', 'FiZap']
    assert result.suggestions[0].priority == 'high'
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs['response_format'] == {"type": "json_object"}


@pytest.mark.asyncio
@pytest.mark.parametrize("client", [
    mock_openai_client("not json at all"),
    mock_openai_client(json.dumps({"unexpected": []})),
    mock_openai_client(error=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))),
])
async def test_rank_suggestions_fall_back_on_failure(client):
    result = await get_rank_suggestions("seo tools", "example.com", None, client=client)

    assert result.source == 'fallback'
    assert len(result.suggestions) == 3


@pytest.mark.parametrize("title, icon", [
    ("Expand Article Content", "FiFileText"),
    ("Build Backlinks", "FiLink"),
    ("Target Long-Tail Keywords", "FiTag"),
    ("Optimize Mobile Layout", "FiSmartphone"),
    ("Compress Large Images", "FiImage"),
    ("Something Else Entirely", "FiTrendingUp"),
])
def test_icon_for_suggestion(title, icon):
    assert icon_for_suggestion(title) == icon


@pytest.mark.asyncio
async def test_content_suggestions_fallback(document, no_openai):
    result = await generate_content_suggestions(document, ["seo tools"])

    assert result.available is False
    assert "OpenAI API key" in result.message
    types = [s.type for s in result.fallback_suggestions]
    assert types == ['title', 'meta', 'headings', 'images', 'keywords']
    assert result.fallback_suggestions[0].priority == 'medium'
    assert "1 images" in result.fallback_suggestions[3].suggestion


@pytest.mark.asyncio
async def test_content_suggestions_from_openai(document):
    client = mock_openai_client("- **Title:** expand it (High)")

    result = await generate_content_suggestions(document, [], client=client)

    assert result.available is True
    assert result.suggestions.startswith("- **Title:**")
    assert result.timestamp is not None
    prompt = client.chat.completions.create.call_args.kwargs['messages'][1]['content']
    assert 'Title: "Short" (5 characters)' in prompt
    assert 'not specified' in prompt


@pytest.mark.asyncio
async def test_content_suggestions_error_keeps_fallback(document):
    client = mock_openai_client(error=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com")))

    result = await generate_content_suggestions(document, [], client=client)

    assert result.available is False
    assert result.error
    assert result.fallback_suggestions


@pytest.mark.asyncio
async def test_meta_tag_suggestions(no_openai):
    result = await generate_meta_tag_suggestions("Page content", ["seo tools"])

    assert result.title == "seo tools - Professional Services & Solutions"
    assert result.keywords == ["seo tools"]


@pytest.mark.asyncio
async def test_meta_tag_suggestions_from_openai():
    payload = {"title": "T", "description": "D", "h1": "H", "keywords": ["a", "b"]}
    client = mock_openai_client(json.dumps(payload))

    result = await generate_meta_tag_suggestions("Page content", [], client=client)

    assert result.h1 == "H"
    assert result.keywords == ["a", "b"]


@pytest.mark.asyncio
async def test_meta_tag_suggestions_incomplete_response_falls_back():
    client = mock_openai_client(json.dumps({"title": "Only a title"}))

    result = await generate_meta_tag_suggestions("Page content", [], client=client)

    assert result.h1 == "Professional Your Business Services"


def test_keyword_suggestions_are_cached(tmp_path):
    service = KeywordSuggestionService(Cache(tmp_path))

    with patch.object(service, 'generate_suggestions', wraps=service.generate_suggestions) as generate:
        first = service.get_suggestions("seo tools", "example.com")
        second = service.get_suggestions("seo tools")

    assert generate.call_count == 1
    assert first == second
    assert [s.keyword for s in first] == [
        "how to seo tools", "best seo tools", "seo tools for professionals",
        "seo tools near me", "affordable seo tools"
    ]
    assert all(s.volume is None for s in first)


def test_keyword_suggestions_fallback_on_bad_cache(tmp_path):
    cache = Cache(tmp_path)
    cache.set(KeywordSuggestionService.CACHE_NAMESPACE, "seo", [{"unexpected": True}])

    suggestions = KeywordSuggestionService(cache).get_suggestions("seo")

    assert [s.keyword for s in suggestions] == ["best seo", "seo reviews", "how to choose seo"]


def test_cache_expiry(tmp_path):
    cache = Cache(tmp_path, ttl=timedelta(hours=24))
    stored_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    cache.set("ns", "Key One", {"value": 1}, now=stored_at)

    assert cache.get("ns", "key one", now=stored_at + timedelta(hours=23)) == {"value": 1}
    assert cache.get("ns", "key one", now=stored_at + timedelta(hours=25)) is None
    assert cache.get("ns", "missing") is None


def test_cache_unreadable_file_is_a_miss(tmp_path):
    cache = Cache(tmp_path)
    (tmp_path / "ns_broken.json").write_text("{not json", encoding='utf-8')

    assert cache.get("ns", "broken") is None
