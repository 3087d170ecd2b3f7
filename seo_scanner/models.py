"""
Pydantic models for the SEO Scanner.
Defines the parsed page document, keyword analysis, scoring, rank history and
API request/response structures. Attributes are snake_case in Python and
camelCase on the wire.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# --- Page document (HTML extractor output) ---

class OpenGraph(CamelModel):
    title: str = ""
    description: str = ""
    image: str = ""
    url: str = ""


class TwitterCard(CamelModel):
    card: str = ""
    title: str = ""
    description: str = ""
    image: str = ""


class Headings(CamelModel):
    """Heading texts per level, in document order."""
    h1: List[str] = []
    h2: List[str] = []
    h3: List[str] = []
    h4: List[str] = []
    h5: List[str] = []
    h6: List[str] = []


class ImageDetail(CamelModel):
    src: Optional[str] = None
    alt: Optional[str] = None
    title: Optional[str] = None


class ImagesSummary(CamelModel):
    total: int = 0
    with_alt: int = 0
    without_alt: int = 0
    items: List[ImageDetail] = []

    @model_validator(mode='after')
    def check_counts(self):
        if self.total != self.with_alt + self.without_alt:
            raise ValueError("images.total must equal withAlt + withoutAlt")
        return self


class LinkDetail(CamelModel):
    href: str
    text: str = ""
    rel: str = ""
    is_external: bool = False
    is_nofollow: bool = False


class LinksSummary(CamelModel):
    internal_count: int = 0
    external_count: int = 0
    nofollow_count: int = 0
    items: List[LinkDetail] = []

    @model_validator(mode='after')
    def check_counts(self):
        if self.internal_count + self.external_count != len(self.items):
            raise ValueError("links.internalCount + links.externalCount must equal the number of links")
        return self


class TechnicalIssues(CamelModel):
    """On-page SEO defects, each derived from the extracted fields."""
    missing_title: bool = False
    missing_meta_description: bool = False
    missing_h1: bool = False
    duplicate_h1: bool = False
    missing_canonical: bool = False
    missing_og_tags: bool = False
    title_too_long: bool = False
    description_too_long: bool = False
    description_too_short: bool = False


class SchemaMarkup(CamelModel):
    has_json_ld: bool = False
    has_microdata: bool = False
    has_rdfa: bool = False
    parsed_blocks: List[Any] = []
    types: List[str] = []


class PerformanceHints(CamelModel):
    has_viewport: bool = False
    has_charset: bool = False
    has_preload: bool = False
    has_prefetch: bool = False
    has_service_worker: bool = False
    html_size: Optional[int] = None  # Bytes


class PageDocument(CamelModel):
    """
    Parsed representation of one fetched page.

    Built once per scan from the raw markup and never modified afterwards.
    """
    url: str
    title: str = ""
    meta_description: str = ""
    meta_keywords: str = ""
    canonical: str = ""
    open_graph: OpenGraph = Field(default_factory=OpenGraph)
    twitter_card: TwitterCard = Field(default_factory=TwitterCard)
    headings: Headings = Field(default_factory=Headings)
    images: ImagesSummary = Field(default_factory=ImagesSummary)
    links: LinksSummary = Field(default_factory=LinksSummary)
    technical_issues: TechnicalIssues = Field(default_factory=TechnicalIssues)
    schema_markup: SchemaMarkup = Field(default_factory=SchemaMarkup)
    performance_hints: PerformanceHints = Field(default_factory=PerformanceHints)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
                "title": "Best SEO Tools for Small Business Websites",
                "metaDescription": "Compare the best SEO tools for small business websites.",
                "headings": {"h1": ["SEO Tools"], "h2": ["Why SEO matters"], "h3": [], "h4": [], "h5": [], "h6": []},
                "images": {"total": 2, "withAlt": 1, "withoutAlt": 1, "items": []},
                "links": {"internalCount": 3, "externalCount": 1, "nofollowCount": 0, "items": []},
            }
        }


# --- Keyword analysis ---

class KeywordDensity(CamelModel):
    count: int = 0
    percentage: str = "0.00"
    recommendation: str = ""


class KeywordPosition(CamelModel):
    word_index: int
    percentage_through_document: float


class HeadingEntry(CamelModel):
    level: int
    text: str
    length: int


class HierarchyIssue(CamelModel):
    position: int
    issue: str


class ContentStructure(CamelModel):
    """Heading outline of a page with skipped-level findings."""
    heading_structure: List[HeadingEntry] = []
    hierarchy_issues: List[HierarchyIssue] = []
    total_headings: int = 0


class KeywordAnalysis(CamelModel):
    density: Dict[str, KeywordDensity] = {}
    positions: Dict[str, List[KeywordPosition]] = {}
    content_length: int = 0
    readability_score: int = Field(0, ge=0, le=100)
    character_count: int = 0

    class Config:
        frozen = True


# --- Scoring ---

class Recommendation(CamelModel):
    type: Literal['critical', 'warning', 'info']
    category: str
    message: str
    priority: Literal['high', 'medium', 'low']


class ScoreComponents(CamelModel):
    """Points per weighted component; each is worth at most 20."""
    title: int = 0
    meta_description: int = 0
    headings: int = 0
    images: int = 0
    technical: int = 0

    @property
    def total(self) -> int:
        return self.title + self.meta_description + self.headings + self.images + self.technical


class OptimizationScore(CamelModel):
    score: int = Field(0, ge=0, le=100)
    components: ScoreComponents = Field(default_factory=ScoreComponents)
    recommendations: List[Recommendation] = []


# --- Rank history ---

class RankRecord(CamelModel):
    """One observed search ranking for a keyword/domain pair."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    keyword: str
    domain: str
    position: Optional[int] = Field(None, ge=1)
    url: Optional[str] = None
    found: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    search_engine: str = "google"

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "5f2b0c0e8a1d4f6c9b3e7a1d2c4b6e8f",
                "keyword": "seo tools",
                "domain": "example.com",
                "position": 7,
                "url": "https://example.com/seo-tools",
                "found": True,
                "timestamp": "2024-05-01T09:00:00+00:00",
                "searchEngine": "google"
            }
        }

    @model_validator(mode='before')
    @classmethod
    def default_found(cls, data: Any) -> Any:
        # Older exports may omit 'found'; derive it from the position
        if isinstance(data, dict) and 'found' not in data:
            data = dict(data)
            data['found'] = data.get('position') is not None
        return data

    @field_validator('timestamp')
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode='after')
    def check_found(self):
        if self.found != (self.position is not None):
            raise ValueError("'found' must be true exactly when a position is present")
        return self


class RankTrend(CamelModel):
    keyword: str
    domain: str
    current: RankRecord
    previous: RankRecord
    delta: int
    direction: Literal['improved', 'declined', 'unchanged']


# --- Suggestions ---

class AiSuggestion(CamelModel):
    title: str
    description: str
    priority: str = "medium"
    icon: str = "FiTrendingUp"


class RankSuggestionsResponse(CamelModel):
    suggestions: List[AiSuggestion] = []
    source: Literal['openai', 'fallback'] = 'fallback'


class FallbackSuggestion(CamelModel):
    type: str
    priority: str
    suggestion: str


class ContentSuggestions(CamelModel):
    """AI advice for a scanned page, or the deterministic fallback."""
    available: bool = False
    suggestions: Optional[str] = None
    model: Optional[str] = None
    timestamp: Optional[datetime] = None
    message: Optional[str] = None
    error: Optional[str] = None
    fallback_suggestions: List[FallbackSuggestion] = []


class MetaTagSuggestions(CamelModel):
    title: str
    description: str
    h1: str
    keywords: List[str] = []


class KeywordSuggestion(CamelModel):
    keyword: str
    intent: str
    volume: Optional[int] = None


# --- Report settings ---

class WhiteLabelSettings(CamelModel):
    client_name: Optional[str] = None
    prepared_by: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: str = "#2980b9"


class ReportSchedule(CamelModel):
    enabled: bool = False
    recipients: str = ""
    day: Literal['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday'] = 'Monday'
    time: str = "09:00"
    include_seo_report: bool = True
    include_rank_tracker: bool = True

    @field_validator('time')
    @classmethod
    def check_time(cls, value: str) -> str:
        try:
            datetime.strptime(value, "%H:%M")
        except ValueError:
            raise ValueError("time must use the HH:MM format")
        return value

    @property
    def recipient_list(self) -> List[str]:
        return [email.strip() for email in self.recipients.split(',') if email.strip()]


# --- API Request Models ---

class ScanRequest(CamelModel):
    """Request model for a page scan. Validated by the scanner so bad input maps to 400."""
    url: Optional[str] = None
    depth: str = "basic"
    target_keywords: List[str] = []

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com",
                "depth": "full",
                "targetKeywords": ["seo tools", "seo"]
            }
        }


class RankCheckRequest(CamelModel):
    keyword: Optional[str] = None
    domain: Optional[str] = None
    search_engine: str = "google"


class AiSuggestionRequest(CamelModel):
    keyword: Optional[str] = None
    domain: Optional[str] = None
    position: Optional[int] = None
    url: Optional[str] = None


class MetaSuggestionRequest(CamelModel):
    content: str = ""
    target_keywords: List[str] = []


class InvalidRequestError(ValueError):
    """Request input rejected before any work starts (surfaced as HTTP 400)."""
    pass
