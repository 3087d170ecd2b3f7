"""
HTML extraction for the SEO Scanner.
Turns fetched markup into a PageDocument using parsel selectors.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Union
from urllib.parse import urljoin, urlparse

from parsel import Selector

from seo_scanner.models import (
    Headings, ImageDetail, ImagesSummary, LinkDetail, LinksSummary,
    OpenGraph, PageDocument, PerformanceHints, SchemaMarkup,
    TechnicalIssues, TwitterCard
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 60
DESCRIPTION_MIN_LENGTH = 120
DESCRIPTION_MAX_LENGTH = 160

BODY_TEXT_XPATH = (
    '//body//text()[not(ancestor::script) and not(ancestor::style) and not(ancestor::noscript)]'
)


@dataclass
class ParsedPage:
    """A fetched page ready for querying."""
    source_url: str
    html: str
    selector: Selector
    body_text: str


def load_document(html: str, source_url: str) -> ParsedPage:
    """Parse raw markup into a queryable tree and collect the body text."""
    selector = Selector(text=html or "<html></html>")
    body_text = ''.join(selector.xpath(BODY_TEXT_XPATH).getall())
    return ParsedPage(source_url=source_url, html=html or "", selector=selector, body_text=body_text)


def _first(selector: Selector, query: str) -> str:
    """First match of a CSS query, trimmed, or an empty string."""
    value = selector.css(query).get()
    return value.strip() if value else ""


def _element_text(element: Selector) -> str:
    return (element.xpath('string()').get() or '').strip()


def _extract_headings(selector: Selector) -> Headings:
    levels = {}
    for level in range(1, 7):
        levels[f'h{level}'] = [_element_text(h) for h in selector.css(f'h{level}')]
    return Headings(**levels)


def _extract_images(selector: Selector) -> ImagesSummary:
    items = []
    with_alt = 0
    for img in selector.css('img'):
        alt = img.attrib.get('alt')
        if alt is not None and alt.strip():
            with_alt += 1
        items.append(ImageDetail(
            src=img.attrib.get('src'),
            alt=alt or None,
            title=img.attrib.get('title') or None
        ))
    return ImagesSummary(
        total=len(items),
        with_alt=with_alt,
        without_alt=len(items) - with_alt,
        items=items
    )


def _page_host(url: str) -> Optional[str]:
    parsed = urlparse(url if '://' in url else 'http://' + url)
    return parsed.hostname


def is_external_link(href: str, base_url: str) -> bool:
    """True when href resolves to an absolute http(s) URL on another host."""
    try:
        resolved = urlparse(urljoin(base_url, href.strip()))
    except ValueError:
        logger.warning(f"Could not parse link URL: {href}")
        return False
    if resolved.scheme not in ('http', 'https') or not resolved.hostname:
        return False
    return resolved.hostname != _page_host(base_url)


def _extract_links(selector: Selector, base_url: str) -> LinksSummary:
    items = []
    internal = external = nofollow = 0
    for link in selector.css('a[href]'):
        href = link.attrib.get('href', '')
        rel = link.attrib.get('rel', '')
        is_external = is_external_link(href, base_url)
        is_nofollow = 'nofollow' in rel.lower().split()

        if is_external:
            external += 1
        else:
            internal += 1
        if is_nofollow:
            nofollow += 1

        items.append(LinkDetail(
            href=href,
            text=_element_text(link),
            rel=rel,
            is_external=is_external,
            is_nofollow=is_nofollow
        ))
    return LinksSummary(
        internal_count=internal,
        external_count=external,
        nofollow_count=nofollow,
        items=items
    )


def _extract_nested_types(data: Union[Dict, List]) -> Set[str]:
    """Recursively collects @type values from JSON-LD data."""
    types: Set[str] = set()

    if isinstance(data, dict):
        schema_type = data.get('@type')
        if isinstance(schema_type, str):
            types.add(schema_type)
        elif isinstance(schema_type, list):
            types.update(t for t in schema_type if isinstance(t, str))
        for value in data.values():
            if isinstance(value, (dict, list)):
                types.update(_extract_nested_types(value))

    elif isinstance(data, list):
        for item in data:
            if isinstance(item, (dict, list)):
                types.update(_extract_nested_types(item))

    return types


def _reject_constant(name: str):
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def _extract_schema(selector: Selector, url: str) -> SchemaMarkup:
    """
    Detects structured data and parses every JSON-LD block on its own.

    A block that fails to parse is left out; the others are still returned.
    """
    scripts = selector.css('script[type="application/ld+json"]')
    parsed_blocks: List[Any] = []
    types: Set[str] = set()

    for script in scripts:
        script_content = ''.join(script.css('::text').getall())
        # Clean potential HTML comments
        script_content = re.sub(r'<!--.*?-->', '', script_content, flags=re.DOTALL).strip()
        if not script_content:
            continue
        try:
            data = json.loads(script_content, parse_constant=_reject_constant)
        except ValueError as e:
            logger.warning(f"Could not parse JSON-LD block in {url}: {e}. Script start: {script_content[:100]}...")
            continue
        if data is None:
            continue
        parsed_blocks.append(data)
        if isinstance(data, (dict, list)):
            types.update(_extract_nested_types(data))

    return SchemaMarkup(
        has_json_ld=len(scripts) > 0,
        has_microdata=len(selector.css('[itemscope]')) > 0,
        has_rdfa=len(selector.css('[typeof]')) > 0,
        parsed_blocks=parsed_blocks,
        types=sorted(types)
    )


def _extract_performance_hints(page: ParsedPage) -> PerformanceHints:
    selector = page.selector
    inline_scripts = ' '.join(selector.css('script::text').getall())
    return PerformanceHints(
        has_viewport=len(selector.css('meta[name="viewport"]')) > 0,
        has_charset=len(selector.css('meta[charset]')) > 0,
        has_preload=len(selector.css('link[rel="preload"]')) > 0,
        has_prefetch=len(selector.css('link[rel="prefetch"]')) > 0,
        has_service_worker='serviceWorker' in inline_scripts or 'sw.js' in inline_scripts,
        html_size=len(page.html.encode('utf-8'))
    )


def detect_technical_issues(
    title: str,
    meta_description: str,
    headings: Headings,
    canonical: str,
    open_graph: OpenGraph
) -> TechnicalIssues:
    """Derives each issue flag from already extracted fields."""
    return TechnicalIssues(
        missing_title=not title,
        missing_meta_description=not meta_description,
        missing_h1=len(headings.h1) == 0,
        duplicate_h1=len(headings.h1) > 1,
        missing_canonical=not canonical,
        missing_og_tags=not open_graph.title or not open_graph.description,
        title_too_long=len(title) > TITLE_MAX_LENGTH,
        description_too_long=len(meta_description) > DESCRIPTION_MAX_LENGTH,
        description_too_short=0 < len(meta_description) < DESCRIPTION_MIN_LENGTH
    )


def extract_page_document(page: ParsedPage) -> PageDocument:
    """
    Build the PageDocument for a parsed page.

    Missing tags yield empty strings rather than None so downstream length
    checks never need a null guard. Malformed markup never raises here.

    Args:
        page: ParsedPage returned by load_document

    Returns:
        PageDocument with metadata, headings, images, links, issues and schema markup
    """
    selector = page.selector
    logger.debug(f"Extracting page document for {page.source_url}")

    title = _element_text(selector.css('title')[0]) if selector.css('title') else ""
    meta_description = _first(selector, 'meta[name="description"]::attr(content)')
    canonical = _first(selector, 'link[rel="canonical"]::attr(href)')

    open_graph = OpenGraph(
        title=_first(selector, 'meta[property="og:title"]::attr(content)'),
        description=_first(selector, 'meta[property="og:description"]::attr(content)'),
        image=_first(selector, 'meta[property="og:image"]::attr(content)'),
        url=_first(selector, 'meta[property="og:url"]::attr(content)')
    )
    twitter_card = TwitterCard(
        card=_first(selector, 'meta[name="twitter:card"]::attr(content)'),
        title=_first(selector, 'meta[name="twitter:title"]::attr(content)'),
        description=_first(selector, 'meta[name="twitter:description"]::attr(content)'),
        image=_first(selector, 'meta[name="twitter:image"]::attr(content)')
    )
    headings = _extract_headings(selector)

    return PageDocument(
        url=page.source_url,
        title=title,
        meta_description=meta_description,
        meta_keywords=_first(selector, 'meta[name="keywords"]::attr(content)'),
        canonical=canonical,
        open_graph=open_graph,
        twitter_card=twitter_card,
        headings=headings,
        images=_extract_images(selector),
        links=_extract_links(selector, page.source_url),
        technical_issues=detect_technical_issues(title, meta_description, headings, canonical, open_graph),
        schema_markup=_extract_schema(selector, page.source_url),
        performance_hints=_extract_performance_hints(page)
    )


def analyze_speed_hints(page: ParsedPage) -> Dict[str, Any]:
    """Counts render-blocking and unoptimised resources."""
    selector = page.selector
    scripts = selector.css('script')
    return {
        'totalImages': len(selector.css('img')),
        'imagesWithoutLazyLoading': len(selector.css('img:not([loading="lazy"])')),
        'inlineStyles': len(selector.css('style')),
        'inlineScripts': len([s for s in scripts if 'src' not in s.attrib]),
        'externalScripts': len(selector.css('script[src]')),
        'externalStylesheets': len(selector.css('link[rel="stylesheet"]')),
        'hasMinifiedAssets': len(selector.css('script[src*=".min."], link[href*=".min."]')) > 0,
    }


def analyze_mobile_friendliness(page: ParsedPage) -> Dict[str, Any]:
    selector = page.selector
    viewport = _first(selector, 'meta[name="viewport"]::attr(content)')
    styles = ' '.join(selector.css('style::text').getall())
    return {
        'hasViewport': len(viewport) > 0,
        'hasResponsiveViewport': 'width=device-width' in viewport,
        'viewportContent': viewport,
        'hasMediaQueries': '@media' in styles,
        'hasTouchIcons': len(selector.css('link[rel*="icon"]')) > 0,
    }
