"""
Test suite for HTML extraction.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from seo_scanner.extractor import (
    analyze_mobile_friendliness, analyze_speed_hints, extract_page_document,
    is_external_link, load_document
)

MOCK_URL = "https://example-test.com/test-page"

# Mock HTML content for testing extraction
MOCK_HTML_CONTENT = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>  Test Page Title with Test Keyword  </title>
    <meta name="description" content="  Meta description about test keyword  ">
    <meta name="keywords" content="test, keyword">
    <link rel="canonical" href="https://example-test.com/test-page">
    <meta property="og:title" content="OG Title">
    <meta property="og:description" content="OG Description">
    <meta name="twitter:card" content="summary">
    <script type="application/ld+json">
        {
            "@context": "https://schema.org",
            "@type": "Article",
            "headline": "Test Article",
            "author": {"@type": "Person", "name": "Test Author"}
        }
    </script>
    <script type="application/ld+json">{ "@type": "Broken", </script>
    <style>.hidden { display: none; }</style>
</head>
<body>
    <h1>Main H1 <span>Heading</span></h1>
    <div itemscope itemtype="https://schema.org/Product">
        <h2>First H2</h2>
        <p>This is paragraph one. It contains the test keyword.</p>
        <p>Paragraph two. <a href="/internal-link">Internal Link</a></p>
        <img src="image1.jpg" alt="Image alt text">
        <img src="image2.png" alt="  ">
        <img src="image3.png">
        <a href="https://external.com/page" rel="nofollow noopener">External Link</a>
        <a href="https://example-test.com/other">Same Host</a>
        <a href="mailto:hello@example-test.com">Mail</a>
        <h2>Second H2</h2>
        <h3>Third H3</h3>
    </div>
    <script>console.log('Some javascript');</script>
    <noscript>Enable javascript</noscript>
</body>
</html>
"""


@pytest.fixture
def page():
    return load_document(MOCK_HTML_CONTENT, MOCK_URL)


@pytest.fixture
def document(page):
    return extract_page_document(page)


def test_metadata_fields_are_trimmed(document):
    assert document.title == "Test Page Title with Test Keyword"
    assert document.meta_description == "Meta description about test keyword"
    assert document.meta_keywords == "test, keyword"
    assert document.canonical == "https://example-test.com/test-page"
    assert document.open_graph.title == "OG Title"
    assert document.twitter_card.card == "summary"


def test_missing_tags_are_empty_strings():
    document = extract_page_document(load_document("<html><body><p>Hi</p></body></html>", MOCK_URL))

    assert document.title == ""
    assert document.meta_description == ""
    assert document.canonical == ""
    assert document.open_graph.image == ""
    assert document.twitter_card.title == ""


def test_headings_in_document_order(document):
    assert document.headings.h1 == ["Main H1 Heading"]
    assert document.headings.h2 == ["First H2", "Second H2"]
    assert document.headings.h3 == ["Third H3"]
    assert document.headings.h4 == []


def test_images_with_blank_alt_count_as_missing(document):
    images = document.images

    assert images.total == 3
    assert images.with_alt == 1
    assert images.without_alt == 2
    assert images.total == images.with_alt + images.without_alt
    assert images.items[0].src == "image1.jpg"


def test_link_classification(document):
    links = document.links
    by_href = {item.href: item for item in links.items}

    assert links.external_count == 1
    assert links.internal_count == 3
    assert links.nofollow_count == 1
    assert links.internal_count + links.external_count == len(links.items)

    external = by_href["https://external.com/page"]
    assert external.is_external and external.is_nofollow
    assert not by_href["/internal-link"].is_external
    assert not by_href["https://example-test.com/other"].is_external
    assert not by_href["mailto:hello@example-test.com"].is_external


@pytest.mark.parametrize("href, expected", [
    ("/about", False),
    ("about.html", False),
    ("#top", False),
    ("https://example-test.com/x", False),
    ("//cdn.other.com/lib.js", True),
    ("http://another.org", True),
    ("tel:+123456", False),
])
def test_is_external_link(href, expected):
    assert is_external_link(href, MOCK_URL) is expected


def test_nofollow_requires_whole_token():
    html = '<html><body><a href="/a" rel="nofollowme">x</a><a href="/b" rel="NOFOLLOW">y</a></body></html>'
    links = extract_page_document(load_document(html, MOCK_URL)).links

    assert [item.is_nofollow for item in links.items] == [False, True]


def test_technical_issues_for_complete_page(document):
    issues = document.technical_issues

    assert not issues.missing_title
    assert not issues.missing_h1
    assert not issues.duplicate_h1
    assert not issues.missing_canonical
    assert not issues.missing_og_tags
    assert issues.description_too_short
    assert not issues.description_too_long


def test_technical_issues_follow_headings():
    html = "<html><head><title>" + "x" * 61 + "</title></head><body><h1>A</h1><h1>B</h1></body></html>"
    document = extract_page_document(load_document(html, MOCK_URL))

    assert document.technical_issues.duplicate_h1 == (len(document.headings.h1) > 1)
    assert document.technical_issues.missing_h1 == (len(document.headings.h1) == 0)
    assert document.technical_issues.title_too_long
    assert document.technical_issues.missing_meta_description
    assert document.technical_issues.missing_og_tags


def test_schema_markup_skips_broken_json_ld(document):
    schema = document.schema_markup

    assert schema.has_json_ld
    assert schema.has_microdata
    assert not schema.has_rdfa
    assert len(schema.parsed_blocks) == 1
    assert schema.parsed_blocks[0]["headline"] == "Test Article"
    assert schema.types == ["Article", "Person"]


def test_body_text_excludes_scripts_and_styles(page):
    assert "This is paragraph one." in page.body_text
    assert "console.log" not in page.body_text
    assert "display: none" not in page.body_text
    assert "Enable javascript" not in page.body_text


def test_malformed_markup_does_not_raise():
    html = "<html><body><h1>Unclosed <div><img src=x><a href='/y'>link <p>more</div></span>"
    document = extract_page_document(load_document(html, MOCK_URL))

    assert document.images.total == 1
    assert len(document.links.items) == 1


def test_empty_markup():
    document = extract_page_document(load_document("", MOCK_URL))

    assert document.title == ""
    assert document.technical_issues.missing_title
    assert document.images.total == 0
    assert document.links.items == []


def test_performance_and_mobile_hints(page, document):
    assert document.performance_hints.has_viewport
    assert document.performance_hints.has_charset
    assert document.performance_hints.html_size == len(MOCK_HTML_CONTENT.encode('utf-8'))

    mobile = analyze_mobile_friendliness(page)
    assert mobile['hasResponsiveViewport']

    speed = analyze_speed_hints(page)
    assert speed['totalImages'] == 3
    assert speed['imagesWithoutLazyLoading'] == 3


def test_document_serializes_camel_case(document):
    data = document.model_dump(by_alias=True)

    assert "metaDescription" in data
    assert "technicalIssues" in data
    assert "withAlt" in data["images"]
    assert "internalCount" in data["links"]


def test_inline_markup_does_not_split_words():
    page = load_document("<html><body><p>opti<b>mization</b> guide</p></body></html>", MOCK_URL)

    assert page.body_text == "optimization guide"


def test_json_ld_with_non_json_constants_is_skipped():
    html = """
    <html><head>
    <script type="application/ld+json">{"@type": "Thing", "rating": NaN}</script>
    <script type="application/ld+json">{"@type": "Organization"}</script>
    </head><body></body></html>
    """
    schema = extract_page_document(load_document(html, MOCK_URL)).schema_markup

    assert schema.parsed_blocks == [{"@type": "Organization"}]
    assert schema.types == ["Organization"]
