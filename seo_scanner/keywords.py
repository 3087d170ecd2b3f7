"""
Keyword density, keyword positions and readability for page body text.
"""
import logging
import math
import re
from typing import Dict, Iterable, List, Optional

import textstat

from seo_scanner.config import KEYWORD_MATCH_MODE
from seo_scanner.extractor import ParsedPage
from seo_scanner.models import (
    ContentStructure, HeadingEntry, HierarchyIssue,
    KeywordAnalysis, KeywordDensity, KeywordPosition
)

logger = logging.getLogger(__name__)

MATCH_MODES = ('substring', 'word')

# Upper bounds (inclusive) of the density bands, in percent
LOW_DENSITY_THRESHOLD = 0.5
GOOD_DENSITY_THRESHOLD = 2.5
HIGH_DENSITY_THRESHOLD = 4.0

MIN_WORDS_FOR_GRADE_METRICS = 100


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def tokenize(text: str) -> List[str]:
    """Lower-cased whitespace tokens with empty entries dropped."""
    return [token for token in (text or '').lower().split() if token]


def _strip_punctuation(token: str) -> str:
    return re.sub(r'^\W+|\W+$', '', token)


def find_keyword_matches(words: List[str], keyword: str, match_mode: str = 'substring') -> List[int]:
    """
    Indexes of the tokens matching a keyword.

    In 'substring' mode a token matches when it contains the keyword, so
    "seo" also matches "seoanalytics". In 'word' mode the punctuation-stripped
    token has to equal the keyword; a multi-word keyword matches at the index
    of its first word when the following tokens complete it.
    """
    keyword_lower = keyword.lower().strip()
    if not keyword_lower:
        return []

    if match_mode == 'substring':
        return [index for index, word in enumerate(words) if keyword_lower in word]

    parts = keyword_lower.split()
    stripped = [_strip_punctuation(word) for word in words]
    matches = []
    for index in range(len(stripped) - len(parts) + 1):
        if stripped[index:index + len(parts)] == parts:
            matches.append(index)
    return matches


def get_keyword_recommendation(count: int, total_words: int) -> str:
    if total_words == 0:
        return 'No content to analyze'

    percentage = (count / total_words) * 100

    if percentage == 0:
        return 'Keyword not found. Consider adding it to your content.'
    elif percentage < LOW_DENSITY_THRESHOLD:
        return 'Low keyword density. Consider using the keyword more frequently.'
    elif percentage <= GOOD_DENSITY_THRESHOLD:
        return 'Good keyword density. Well optimized.'
    elif percentage <= HIGH_DENSITY_THRESHOLD:
        return 'High keyword density. Consider reducing usage to avoid keyword stuffing.'
    else:
        return 'Very high keyword density. This may be considered keyword stuffing.'


def count_syllables(text: str) -> int:
    """Approximate syllable count: vowel groups per word, silent e removed, at least one per word."""
    syllable_count = 0
    for word in (text or '').lower().split():
        word = re.sub(r'[^a-z]', '', word)
        if not word:
            continue
        syllables = len(re.findall(r'[aeiouy]+', word)) or 1
        if word.endswith('e'):
            syllables -= 1
        syllable_count += max(1, syllables)
    return syllable_count


def calculate_readability_score(text: str) -> int:
    """
    Flesch Reading Ease approximation, clamped to [0, 100].

    Returns 0 when the text has no sentences or no words.
    """
    if not text:
        return 0

    sentences = len([s for s in re.split(r'[.!?]+', text) if s.strip()])
    words = len(text.split())
    if sentences == 0 or words == 0:
        return 0

    syllables = count_syllables(text)
    score = 206.835 - (1.015 * (words / sentences)) - (84.6 * (syllables / words))
    return max(0, min(100, _round_half_up(score)))


def readability_metrics(text: str) -> Dict[str, float]:
    """Grade-level metrics from textstat; empty when the text is too short to be meaningful."""
    if len((text or '').split()) < MIN_WORDS_FOR_GRADE_METRICS:
        return {}
    try:
        return {
            'flesch_kincaid_grade': textstat.flesch_kincaid_grade(text),
            'gunning_fog': textstat.gunning_fog(text),
            'smog_index': textstat.smog_index(text),
            'automated_readability_index': textstat.automated_readability_index(text),
            'coleman_liau_index': textstat.coleman_liau_index(text),
        }
    except Exception as e:
        logger.warning(f"Could not calculate readability metrics: {e}")
        return {}


def analyze_keywords(
    body_text: str,
    target_keywords: Iterable[str] = (),
    match_mode: Optional[str] = None
) -> KeywordAnalysis:
    """
    Compute keyword density, keyword positions and readability for body text.

    Args:
        body_text: Visible text of the page body
        target_keywords: Keywords to measure (may be empty)
        match_mode: 'substring' or 'word'; defaults to KEYWORD_MATCH_MODE

    Returns:
        KeywordAnalysis keyed by the keywords as supplied
    """
    match_mode = match_mode or KEYWORD_MATCH_MODE
    if match_mode not in MATCH_MODES:
        raise ValueError(f"Unknown keyword match mode '{match_mode}'")

    words = tokenize(body_text)
    total_words = len(words)
    logger.info(f"Analyzing {total_words} words for keyword density")

    density: Dict[str, KeywordDensity] = {}
    positions: Dict[str, List[KeywordPosition]] = {}

    for keyword in target_keywords:
        matches = find_keyword_matches(words, keyword, match_mode)
        count = len(matches)
        percentage = (count / total_words) * 100 if total_words > 0 else 0.0

        density[keyword] = KeywordDensity(
            count=count,
            percentage=f"{percentage:.2f}",
            recommendation=get_keyword_recommendation(count, total_words)
        )
        positions[keyword] = [
            KeywordPosition(
                word_index=index,
                percentage_through_document=round(index / total_words * 100, 2)
            )
            for index in matches
        ]

    return KeywordAnalysis(
        density=density,
        positions=positions,
        content_length=total_words,
        readability_score=calculate_readability_score(body_text),
        character_count=len(body_text or '')
    )


def analyze_content_structure(page: ParsedPage) -> ContentStructure:
    """Heading outline in document order, flagging levels that skip (e.g. H2 followed by H4)."""
    heading_structure = []
    for element in page.selector.css('h1, h2, h3, h4, h5, h6'):
        tag = element.xpath('name()').get('').lower()
        text = (element.xpath('string()').get() or '').strip()
        heading_structure.append(HeadingEntry(level=int(tag[1]), text=text, length=len(text)))

    hierarchy_issues = []
    for index in range(1, len(heading_structure)):
        current = heading_structure[index]
        previous = heading_structure[index - 1]
        if current.level > previous.level + 1:
            hierarchy_issues.append(HierarchyIssue(
                position=index,
                issue=f"H{current.level} follows H{previous.level} - skipped heading level"
            ))

    return ContentStructure(
        heading_structure=heading_structure,
        hierarchy_issues=hierarchy_issues,
        total_headings=len(heading_structure)
    )
