"""
Tests for the optimization score and recommendations.
"""
import pytest

from seo_scanner.extractor import detect_technical_issues, extract_page_document, load_document
from seo_scanner.keywords import analyze_keywords
from seo_scanner.models import Headings, ImagesSummary, OpenGraph, PageDocument
from seo_scanner.scoring import (
    build_optimization_score, calculate_optimization_score,
    generate_recommendations, score_components
)

GOOD_TITLE = "Best SEO Tools for Small Business Websites"
GOOD_DESCRIPTION = (
    "Compare the best SEO tools for small business websites, with pricing, features and "
    "honest reviews to help you pick the right one."
)


def make_document(title=GOOD_TITLE, description=GOOD_DESCRIPTION, h1=("Heading",), h2=("Section",),
                  images_total=0, images_with_alt=0):
    headings = Headings(h1=list(h1), h2=list(h2))
    open_graph = OpenGraph(title="OG", description="OG")
    return PageDocument(
        url="https://example.com",
        title=title,
        meta_description=description,
        canonical="https://example.com",
        open_graph=open_graph,
        headings=headings,
        images=ImagesSummary(total=images_total, with_alt=images_with_alt,
                             without_alt=images_total - images_with_alt),
        technical_issues=detect_technical_issues(title, description, headings, "https://example.com", open_graph)
    )


def test_perfect_page_scores_100():
    document = make_document()

    assert 120 <= len(GOOD_DESCRIPTION) <= 160
    assert calculate_optimization_score(document) == 100
    assert generate_recommendations(document) == []


def test_empty_title_scenario():
    document = make_document(title="")
    result = build_optimization_score(document)

    assert document.technical_issues.missing_title
    assert result.components.title == 0
    assert result.components.technical == 15
    critical_titles = [r for r in result.recommendations if r.category == 'title' and r.type == 'critical']
    assert len(critical_titles) == 1
    assert critical_titles[0].priority == 'high'


def test_title_within_range_scenario():
    document = make_document(title=GOOD_TITLE)

    assert 30 <= len(GOOD_TITLE) <= 60
    assert score_components(document).title == 20
    assert not [r for r in generate_recommendations(document) if r.category == 'title']


@pytest.mark.parametrize("title, points, message_start", [
    ("Too short", 10, 'Title is too short'),
    ("x" * 61, 10, 'Title is too long'),
    ("x" * 30, 20, None),
    ("x" * 60, 20, None),
])
def test_title_banding(title, points, message_start):
    document = make_document(title=title)
    title_recs = [r for r in generate_recommendations(document) if r.category == 'title']

    assert score_components(document).title == points
    if message_start:
        assert title_recs[0].message.startswith(message_start)
        assert title_recs[0].type == 'warning'
    else:
        assert title_recs == []


def test_description_banding():
    short = make_document(description="Short description")
    missing = make_document(description="")
    too_long = make_document(description="d" * 161)

    assert score_components(short).meta_description == 10
    assert score_components(missing).meta_description == 0
    assert score_components(too_long).meta_description == 10

    short_rec = [r for r in generate_recommendations(short) if r.category == 'meta'][0]
    assert (short_rec.type, short_rec.priority) == ('info', 'low')
    missing_rec = [r for r in generate_recommendations(missing) if r.category == 'meta'][0]
    assert (missing_rec.type, missing_rec.priority) == ('critical', 'high')


@pytest.mark.parametrize("total, with_alt, points", [
    (10, 10, 20),
    (10, 5, 10),
    (3, 1, 7),
    (8, 1, 3),
    (4, 0, 0),
    (0, 0, 20),
])
def test_image_component(total, with_alt, points):
    assert score_components(make_document(images_total=total, images_with_alt=with_alt)).images == points


def test_heading_points_are_independent():
    assert score_components(make_document(h1=("One",), h2=())).headings == 10
    assert score_components(make_document(h1=(), h2=("Two",))).headings == 10
    assert score_components(make_document(h1=("A", "B"), h2=("Two",))).headings == 10
    assert score_components(make_document(h1=(), h2=())).headings == 0


def test_technical_penalty_floor():
    document = extract_page_document(load_document("<html><body></body></html>", "https://example.com"))
    components = score_components(document)

    # missing title, description and H1
    assert components.technical == 5
    assert components.total == 25
    assert calculate_optimization_score(document) == 25


def test_recommendation_order_is_fixed():
    document = make_document(title="", description="", h1=("A", "B"), images_total=4, images_with_alt=1)
    recommendations = generate_recommendations(document)

    assert [r.category for r in recommendations] == ['title', 'meta', 'headings', 'images']
    assert recommendations[2].message == 'Multiple H1 tags found. Use only one H1 per page'
    assert recommendations[3].message == '3 images missing alt text'


def test_keyword_recommendations_follow_page_recommendations():
    analysis = analyze_keywords("seo seo seo analysis website", ["seo", "missing"])
    recommendations = generate_recommendations(make_document(title=""), analysis)

    assert recommendations[0].category == 'title'
    keyword_recs = [r for r in recommendations if r.category == 'keywords']
    assert len(keyword_recs) == 2
    assert 'density is high' in keyword_recs[0].message
    assert 'was not found' in keyword_recs[1].message


@pytest.mark.parametrize("document", [
    make_document(),
    make_document(title="", description="", h1=(), h2=(), images_total=5, images_with_alt=0),
    make_document(title="x" * 100, description="y" * 300, h1=("a", "b", "c")),
])
def test_score_always_in_range(document):
    assert 0 <= calculate_optimization_score(document) <= 100
