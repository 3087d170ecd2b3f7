"""
Optimization score and recommendations for a scanned page.

Five components worth 20 points each (title, meta description, headings,
image alt coverage, technical issues) add up to a 0-100 score.
"""
import logging
from typing import List, Optional

from seo_scanner.models import (
    KeywordAnalysis, OptimizationScore, PageDocument,
    Recommendation, ScoreComponents
)

logger = logging.getLogger(__name__)

COMPONENT_POINTS = 20
TITLE_RANGE = (30, 60)
DESCRIPTION_RANGE = (120, 160)
TECHNICAL_PENALTY = 5
GOOD_DENSITY_RANGE = (0.5, 2.5)


def _length_points(text: str, bounds) -> int:
    low, high = bounds
    if not text:
        return 0
    if low <= len(text) <= high:
        return COMPONENT_POINTS
    return COMPONENT_POINTS // 2


def score_components(document: PageDocument) -> ScoreComponents:
    """Points earned by each weighted component."""
    headings = 0
    if len(document.headings.h1) == 1:
        headings += 10
    if len(document.headings.h2) > 0:
        headings += 10

    images = document.images
    if images.total > 0:
        # round half up, matching the dashboard figures
        image_points = int(images.with_alt / images.total * COMPONENT_POINTS + 0.5)
    else:
        image_points = COMPONENT_POINTS  # No images is also fine

    issues = document.technical_issues
    technical = COMPONENT_POINTS
    for flagged in (issues.missing_title, issues.missing_meta_description, issues.missing_h1, issues.duplicate_h1):
        if flagged:
            technical -= TECHNICAL_PENALTY

    return ScoreComponents(
        title=_length_points(document.title, TITLE_RANGE),
        meta_description=_length_points(document.meta_description, DESCRIPTION_RANGE),
        headings=headings,
        images=image_points,
        technical=max(0, technical)
    )


def calculate_optimization_score(document: PageDocument) -> int:
    """Overall score in [0, 100]."""
    return max(0, min(100, score_components(document).total))


def _keyword_recommendations(keyword_analysis: KeywordAnalysis) -> List[Recommendation]:
    recommendations = []
    if keyword_analysis.content_length == 0:
        return recommendations

    low, high = GOOD_DENSITY_RANGE
    for keyword, entry in keyword_analysis.density.items():
        percentage = float(entry.percentage)
        if entry.count == 0:
            recommendations.append(Recommendation(
                type='warning', category='keywords', priority='medium',
                message=f'Keyword "{keyword}" was not found in the page content'
            ))
        elif percentage < low:
            recommendations.append(Recommendation(
                type='info', category='keywords', priority='low',
                message=f'Keyword "{keyword}" density is low ({entry.percentage}%). Use it a little more often'
            ))
        elif percentage > high:
            recommendations.append(Recommendation(
                type='warning', category='keywords', priority='medium',
                message=f'Keyword "{keyword}" density is high ({entry.percentage}%). Reduce usage to avoid keyword stuffing'
            ))
    return recommendations


def generate_recommendations(
    document: PageDocument,
    keyword_analysis: Optional[KeywordAnalysis] = None
) -> List[Recommendation]:
    """
    Recommendations in a fixed order: title, meta, headings, images, then keywords
    when a keyword analysis is supplied. Not sorted by priority.
    """
    recommendations: List[Recommendation] = []

    # Title
    title_length = len(document.title)
    if not document.title:
        recommendations.append(Recommendation(
            type='critical', category='title', priority='high',
            message='Add a title tag to your page'
        ))
    elif title_length < TITLE_RANGE[0]:
        recommendations.append(Recommendation(
            type='warning', category='title', priority='medium',
            message='Title is too short. Consider expanding it to 30-60 characters'
        ))
    elif title_length > TITLE_RANGE[1]:
        recommendations.append(Recommendation(
            type='warning', category='title', priority='medium',
            message='Title is too long. Consider shortening it to under 60 characters'
        ))

    # Meta description
    if not document.meta_description:
        recommendations.append(Recommendation(
            type='critical', category='meta', priority='high',
            message='Add a meta description to your page'
        ))
    elif len(document.meta_description) < DESCRIPTION_RANGE[0]:
        recommendations.append(Recommendation(
            type='info', category='meta', priority='low',
            message='Meta description could be longer (120-160 characters recommended)'
        ))

    # Headings
    h1_count = len(document.headings.h1)
    if h1_count == 0:
        recommendations.append(Recommendation(
            type='critical', category='headings', priority='high',
            message='Add an H1 heading to your page'
        ))
    elif h1_count > 1:
        recommendations.append(Recommendation(
            type='warning', category='headings', priority='medium',
            message='Multiple H1 tags found. Use only one H1 per page'
        ))

    # Images
    if document.images.without_alt > 0:
        recommendations.append(Recommendation(
            type='warning', category='images', priority='medium',
            message=f'{document.images.without_alt} images missing alt text'
        ))

    if keyword_analysis is not None:
        recommendations.extend(_keyword_recommendations(keyword_analysis))

    logger.info(f"Generated {len(recommendations)} recommendations")
    return recommendations


def build_optimization_score(
    document: PageDocument,
    keyword_analysis: Optional[KeywordAnalysis] = None
) -> OptimizationScore:
    components = score_components(document)
    return OptimizationScore(
        score=max(0, min(100, components.total)),
        components=components,
        recommendations=generate_recommendations(document, keyword_analysis)
    )
