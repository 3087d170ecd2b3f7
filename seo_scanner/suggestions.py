"""
AI-assisted SEO suggestions with deterministic fallbacks.

Every entry point returns a usable result: when the OpenAI key is missing or
the call fails, the error is logged and a fixed suggestion set is returned.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from seo_scanner.cache import Cache
from seo_scanner.config import OPENAI_API_KEY, OPENAI_MODEL
from seo_scanner.models import (
    AiSuggestion, ContentSuggestions, FallbackSuggestion, KeywordSuggestion,
    MetaTagSuggestions, PageDocument, RankSuggestionsResponse
)

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None

# Failures that fall back to the fixed suggestion sets
AI_ERRORS = (openai.OpenAIError, json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError, ValidationError)

ICON_KEYWORDS = [
    (('content', 'article', 'text'), 'FiFileText'),
    (('link', 'backlink'), 'FiLink'),
    (('keyword', 'term'), 'FiTag'),
    (('meta', 'title', 'description'), 'FiEdit3'),
    (('speed', 'performance'), 'FiZap'),
    (('mobile', 'responsive'), 'FiSmartphone'),
    (('social', 'share'), 'FiShare2'),
    (('image', 'alt'), 'FiImage'),
]


def get_openai_client() -> Optional[AsyncOpenAI]:
    """Shared client, or None when no API key is configured."""
    global _client
    if not OPENAI_API_KEY:
        return None
    if _client is None:
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY)
    return _client


def icon_for_suggestion(title: str) -> str:
    title_lower = title.lower()
    for words, icon in ICON_KEYWORDS:
        if any(word in title_lower for word in words):
            return icon
    return 'FiTrendingUp'


async def _complete(client: AsyncOpenAI, system: str, prompt: str, max_tokens: int,
                    temperature: float, json_mode: bool = False) -> str:
    kwargs: Dict[str, Any] = {}
    if json_mode:
        kwargs['response_format'] = {"type": "json_object"}
    completion = await client.chat.completions.create(
        model=OPENAI_MODEL,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt}
        ],
        max_tokens=max_tokens,
        temperature=temperature,
        **kwargs
    )
    return completion.choices[0].message.content


# --- Page content suggestions (full scans) ---

def create_optimization_prompt(document: PageDocument, target_keywords: Sequence[str]) -> str:
    keyword_list = ', '.join(target_keywords) if target_keywords else 'not specified'
    issues = document.technical_issues.model_dump(by_alias=True)
    issue_lines = '\n'.join(f"- {name}: true" for name, flagged in issues.items() if flagged) or '- none'

    return f"""
Analyze this webpage and provide SEO optimization recommendations:

**Current SEO Status:**
- Title: "{document.title}" ({len(document.title)} characters)
- Meta Description: "{document.meta_description}" ({len(document.meta_description)} characters)
- H1 Tags: {len(document.headings.h1)} found
- H2 Tags: {len(document.headings.h2)} found
- Images: {document.images.total} total, {document.images.with_alt} with alt text
- Internal Links: {document.links.internal_count}
- External Links: {document.links.external_count}

**Target Keywords:** {keyword_list}

**Technical Issues Found:**
{issue_lines}

Please provide:
1. **Title Optimization:** Specific suggestions for improving the title tag
2. **Meta Description:** Recommendations for the meta description
3. **Content Structure:** Heading hierarchy and content organization advice
4. **Keyword Integration:** How to better integrate target keywords naturally
5. **Technical Fixes:** Priority technical issues to address
6. **Content Recommendations:** Specific content improvements

Format your response as actionable bullet points with clear priorities (High/Medium/Low).
"""


def fallback_content_suggestions(document: PageDocument, target_keywords: Sequence[str]) -> List[FallbackSuggestion]:
    suggestions = []

    if not document.title:
        suggestions.append(FallbackSuggestion(
            type='title', priority='high',
            suggestion='Add a compelling title tag that includes your primary keyword'))
    elif len(document.title) < 30:
        suggestions.append(FallbackSuggestion(
            type='title', priority='medium',
            suggestion='Expand your title tag to 30-60 characters for better visibility'))
    elif len(document.title) > 60:
        suggestions.append(FallbackSuggestion(
            type='title', priority='medium',
            suggestion='Shorten your title tag to under 60 characters to prevent truncation'))

    if not document.meta_description:
        suggestions.append(FallbackSuggestion(
            type='meta', priority='high',
            suggestion='Add a compelling meta description that summarizes your page content'))
    elif len(document.meta_description) < 120:
        suggestions.append(FallbackSuggestion(
            type='meta', priority='low',
            suggestion='Consider expanding your meta description to 120-160 characters'))

    if not document.headings.h1:
        suggestions.append(FallbackSuggestion(
            type='headings', priority='high',
            suggestion='Add an H1 tag that clearly describes your page topic'))
    elif len(document.headings.h1) > 1:
        suggestions.append(FallbackSuggestion(
            type='headings', priority='medium',
            suggestion='Use only one H1 tag per page for better SEO structure'))

    if document.images.without_alt > 0:
        suggestions.append(FallbackSuggestion(
            type='images', priority='medium',
            suggestion=f'Add alt text to {document.images.without_alt} images for better accessibility and SEO'))

    if target_keywords:
        suggestions.append(FallbackSuggestion(
            type='keywords', priority='medium',
            suggestion=f"Ensure your target keywords ({', '.join(target_keywords)}) appear naturally "
                       f"in your title, headings, and content"))

    return suggestions


async def generate_content_suggestions(
    document: PageDocument,
    target_keywords: Sequence[str] = (),
    client: Optional[AsyncOpenAI] = None
) -> ContentSuggestions:
    """LLM advice for a scanned page; falls back to rule-based suggestions."""
    client = client or get_openai_client()
    if client is None:
        logger.warning("OpenAI API key not configured, using fallback content suggestions")
        return ContentSuggestions(
            available=False,
            message='AI suggestions require OpenAI API key configuration',
            fallback_suggestions=fallback_content_suggestions(document, target_keywords)
        )

    try:
        logger.info("Generating AI content suggestions...")
        suggestions = await _complete(
            client,
            "You are an expert SEO consultant. Provide specific, actionable recommendations for "
            "improving website SEO based on the provided analysis.",
            create_optimization_prompt(document, target_keywords),
            max_tokens=1000, temperature=0.7
        )
    except AI_ERRORS as e:
        logger.error(f"AI suggestion generation failed: {e}")
        return ContentSuggestions(
            available=False,
            error=str(e),
            fallback_suggestions=fallback_content_suggestions(document, target_keywords)
        )

    return ContentSuggestions(
        available=True,
        suggestions=suggestions,
        model=OPENAI_MODEL,
        timestamp=datetime.now(timezone.utc)
    )


# --- Rank-based suggestions ---

def fallback_rank_suggestions(keyword: str, position: Optional[int]) -> List[AiSuggestion]:
    """Two generic suggestions plus one chosen by how far down the page ranks."""
    suggestions = [
        AiSuggestion(
            title="Improve Content Quality",
            description=f'Enhance your content about "{keyword}" with more detailed information, '
                        f'examples, and helpful resources.',
            icon="FiFileText",
            priority="high"
        ),
        AiSuggestion(
            title="Build Quality Backlinks",
            description="Increase your domain authority by acquiring relevant backlinks from reputable "
                        "websites in your industry.",
            icon="FiExternalLink",
            priority="medium"
        ),
    ]

    if position is None or position > 20:
        suggestions.append(AiSuggestion(
            title="Keyword Optimization",
            description=f'Make sure "{keyword}" appears in your title, meta description, headings, '
                        f'and naturally throughout your content.',
            icon="FiTag",
            priority="high"
        ))
    elif position > 10:
        suggestions.append(AiSuggestion(
            title="Related Keywords",
            description=f'Add related terms to "{keyword}" to improve topic coverage and semantic relevance.',
            icon="FiSearch",
            priority="medium"
        ))
    else:
        suggestions.append(AiSuggestion(
            title="Internal Linking",
            description="Create a strong internal linking structure to distribute page authority and help "
                        "search engines understand your site hierarchy.",
            icon="FiLink",
            priority="medium"
        ))
    return suggestions


async def get_rank_suggestions(
    keyword: str,
    domain: str,
    position: Optional[int],
    url: Optional[str] = None,
    client: Optional[AsyncOpenAI] = None
) -> RankSuggestionsResponse:
    """Three suggestions to improve a keyword's ranking."""
    client = client or get_openai_client()
    if client is None:
        return RankSuggestionsResponse(suggestions=fallback_rank_suggestions(keyword, position), source='fallback')

    prompt = f"""
    As an SEO expert, provide 3 specific, actionable suggestions to improve the ranking for this page:

    Keyword: "{keyword}"
    Current position: {position if position is not None else 'not ranking'}
    Domain: {domain}
    Page URL: {url or 'Not available'}

    For each suggestion:
    1. Provide a clear, concise title (5-7 words)
    2. Write a detailed explanation (30-50 words)
    3. Assign a priority (high, medium, or low)

    Format your response as a JSON object with a "suggestions" array of objects containing
    "title", "description", and "priority" fields.
    """
    try:
        content = await _complete(
            client,
            "You are an expert SEO consultant providing actionable recommendations to improve search rankings.",
            prompt, max_tokens=1000, temperature=0.7, json_mode=True
        )
        raw_suggestions = json.loads(content)['suggestions']
        suggestions = [
            AiSuggestion(
                title=item['title'],
                description=item['description'],
                priority=str(item.get('priority', 'medium')).lower(),
                icon=icon_for_suggestion(item['title'])
            )
            for item in raw_suggestions
        ]
    except AI_ERRORS as e:
        logger.error(f"AI rank suggestions failed for '{keyword}' on {domain}: {e}")
        return RankSuggestionsResponse(suggestions=fallback_rank_suggestions(keyword, position), source='fallback')

    return RankSuggestionsResponse(suggestions=suggestions, source='openai')


# --- Meta tag suggestions ---

def fallback_meta_tags(target_keywords: Sequence[str]) -> MetaTagSuggestions:
    first_keyword = target_keywords[0] if target_keywords else 'Your Business'
    return MetaTagSuggestions(
        title=f"{first_keyword} - Professional Services & Solutions",
        description=f"Discover {first_keyword} services and solutions. Get expert advice and professional "
                    f"results for your business needs.",
        h1=f"Professional {first_keyword} Services",
        keywords=list(target_keywords) or ['business', 'services', 'professional', 'solutions', 'expert']
    )


async def generate_meta_tag_suggestions(
    content: str,
    target_keywords: Sequence[str] = (),
    client: Optional[AsyncOpenAI] = None
) -> MetaTagSuggestions:
    client = client or get_openai_client()
    if client is None:
        return fallback_meta_tags(target_keywords)

    prompt = f"""
Based on this webpage content, generate optimized meta tags:

Content: "{content[:1000]}..."
Target Keywords: {', '.join(target_keywords)}

Please provide:
1. An optimized title tag (50-60 characters)
2. An optimized meta description (120-160 characters)
3. Suggested H1 tag
4. 3-5 relevant keywords

Format as JSON with keys: title, description, h1, keywords
"""
    try:
        response = await _complete(
            client, "You are an SEO expert. Generate optimized meta tags in JSON format.",
            prompt, max_tokens=300, temperature=0.5, json_mode=True
        )
        return MetaTagSuggestions.model_validate(json.loads(response))
    except AI_ERRORS as e:
        logger.error(f"Meta tag generation failed: {e}")
        return fallback_meta_tags(target_keywords)


# --- Keyword variations ---

class KeywordSuggestionService:
    """Keyword variations by search intent, cached per keyword."""

    CACHE_NAMESPACE = 'keyword_suggestions'

    def __init__(self, cache: Optional[Cache] = None):
        self.cache = cache or Cache()

    def generate_suggestions(self, keyword: str) -> List[KeywordSuggestion]:
        return [
            KeywordSuggestion(keyword=f"how to {keyword}", intent='Informational intent'),
            KeywordSuggestion(keyword=f"best {keyword}", intent='Commercial intent'),
            KeywordSuggestion(keyword=f"{keyword} for professionals", intent='High-value commercial intent'),
            KeywordSuggestion(keyword=f"{keyword} near me", intent='Local intent'),
            KeywordSuggestion(keyword=f"affordable {keyword}", intent='Price-sensitive commercial intent'),
        ]

    @staticmethod
    def get_fallback_suggestions(keyword: str) -> List[KeywordSuggestion]:
        return [
            KeywordSuggestion(keyword=f"best {keyword}", intent='Commercial intent'),
            KeywordSuggestion(keyword=f"{keyword} reviews", intent='Research intent'),
            KeywordSuggestion(keyword=f"how to choose {keyword}", intent='Educational intent'),
        ]

    def get_suggestions(self, keyword: str, domain: Optional[str] = None) -> List[KeywordSuggestion]:
        keyword = keyword.strip()
        try:
            cached = self.cache.get(self.CACHE_NAMESPACE, keyword)
            if cached:
                return [KeywordSuggestion.model_validate(item) for item in cached]

            suggestions = self.generate_suggestions(keyword)
            self.cache.set(self.CACHE_NAMESPACE, keyword, [s.model_dump() for s in suggestions])
            logger.info(f"Generated {len(suggestions)} keyword suggestions for '{keyword}' ({domain or 'any domain'})")
            return suggestions
        except (ValidationError, TypeError) as e:
            logger.error(f"Error getting keyword suggestions for '{keyword}': {e}")
            return self.get_fallback_suggestions(keyword)
