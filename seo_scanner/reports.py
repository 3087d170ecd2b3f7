"""
PDF reports and report settings.

Scan reports and rank-history tables are rendered with reportlab platypus
and returned as bytes. White-label and schedule settings live together in
one JSON file under DATA_DIR.
"""
import io
import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from xml.sax.saxutils import escape

from pydantic import ValidationError
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from seo_scanner.config import DATA_DIR
from seo_scanner.models import RankRecord, ReportSchedule, WhiteLabelSettings

logger = logging.getLogger(__name__)

DEFAULT_PREPARED_BY = 'SEO Scanner'


def _filename_slug(url: str) -> str:
    url = re.sub(r'^(https?://)?(www\.)?', '', url)
    return re.sub(r'[^a-zA-Z0-9]', '-', url)[:30]


def scan_report_filename(url: str, now: Optional[datetime] = None) -> str:
    """'https://www.example.com/a' -> 'seo-analysis-example-com-a-2024-05-01.pdf'"""
    date = (now or datetime.now(timezone.utc)).strftime('%Y-%m-%d')
    return f"seo-analysis-{_filename_slug(url)}-{date}.pdf"


def rank_history_filename(now: Optional[datetime] = None) -> str:
    date = (now or datetime.now(timezone.utc)).strftime('%Y-%m-%d')
    return f"rank-history-table-{date}.pdf"


def _score_colour(score: int):
    if score >= 80:
        return colors.HexColor("#22c55e")
    if score >= 60:
        return colors.HexColor("#f59e0b")
    return colors.HexColor("#ef4444")


def _styles(primary: str) -> Dict[str, ParagraphStyle]:
    styles = getSampleStyleSheet()
    accent = colors.HexColor(primary)
    return {
        'title': ParagraphStyle("T", parent=styles["Title"], fontSize=20, textColor=accent, spaceAfter=6),
        'subtitle': ParagraphStyle("S", parent=styles["Normal"], fontSize=9, textColor=colors.grey, spaceAfter=14),
        'heading': ParagraphStyle("H", parent=styles["Heading2"], fontSize=12, textColor=accent,
                                  spaceBefore=16, spaceAfter=8),
        'body': ParagraphStyle("B", parent=styles["Normal"], fontSize=9, leading=12),
        'cell': ParagraphStyle("C", parent=styles["Normal"], fontSize=7, leading=9),
        'footer': ParagraphStyle("F", parent=styles["Normal"], fontSize=8, textColor=colors.grey, spaceBefore=20),
    }


def _table_style(primary: str) -> TableStyle:
    return TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(primary)),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f7fa")]),
        ("BOX", (0, 0), (-1, -1), .5, colors.HexColor("#cbd5e1")),
        ("INNERGRID", (0, 0), (-1, -1), .25, colors.HexColor("#e2e8f0")),
        ("PADDING", (0, 0), (-1, -1), 4),
    ])


def _build(story: List[Any]) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4,
                            leftMargin=1.5 * cm, rightMargin=1.5 * cm,
                            topMargin=2 * cm, bottomMargin=2 * cm)
    doc.build(story)
    return buf.getvalue()


def build_scan_report_pdf(scan: Dict[str, Any], white_label: Optional[WhiteLabelSettings] = None) -> bytes:
    """
    Render a stored scan result as a PDF.

    Args:
        scan: Scan result as returned by SEOScanner.scan
        white_label: Optional branding (client name, prepared by, colour)

    Returns:
        PDF document bytes
    """
    white_label = white_label or WhiteLabelSettings()
    styles = _styles(white_label.primary_color)
    basic = scan.get('basic', {})
    story: List[Any] = []

    title = (f"SEO Analysis for {white_label.client_name}" if white_label.client_name
             else f"SEO Analysis - {scan.get('url', '')}")
    story.append(Paragraph(escape(title), styles['title']))
    story.append(Paragraph(
        f"URL: <b>{escape(scan.get('url', ''))}</b>  |  Depth: {escape(scan.get('depth', ''))}  |  "
        f"Scanned: {escape(scan.get('timestamp', ''))}", styles['subtitle']))
    story.append(HRFlowable(width="100%", color=colors.HexColor("#e2e8f0")))

    story.append(Paragraph("Page Overview", styles['heading']))
    images = basic.get('images', {})
    links = basic.get('links', {})
    headings = basic.get('headings', {})
    overview = [
        ["Field", "Value"],
        ["Title", Paragraph(escape(basic.get('title') or '(missing)'), styles['cell'])],
        ["Meta description", Paragraph(escape(basic.get('metaDescription') or '(missing)'), styles['cell'])],
        ["H1 / H2 headings", f"{len(headings.get('h1', []))} / {len(headings.get('h2', []))}"],
        ["Images (with alt / total)", f"{images.get('withAlt', 0)} / {images.get('total', 0)}"],
        ["Links (internal / external)", f"{links.get('internalCount', 0)} / {links.get('externalCount', 0)}"],
    ]
    story.append(Table(overview, colWidths=[5 * cm, 13 * cm], style=_table_style(white_label.primary_color)))

    issues = [name for name, flagged in basic.get('technicalIssues', {}).items() if flagged]
    story.append(Paragraph("Technical Issues", styles['heading']))
    story.append(Paragraph(escape(', '.join(issues)) if issues else "No technical issues found", styles['body']))

    advanced = scan.get('advanced')
    if advanced:
        story.append(Paragraph("Keyword Analysis", styles['heading']))
        story.append(Paragraph(
            f"Content length: {advanced.get('contentLength', 0)} words  |  "
            f"Readability score: {advanced.get('readabilityScore', 0)}", styles['body']))
        density_rows = [["Keyword", "Count", "Density", "Recommendation"]]
        for keyword, density in advanced.get('keywordDensity', {}).items():
            density_rows.append([
                Paragraph(escape(keyword), styles['cell']),
                density.get('count', 0),
                f"{density.get('percentage', '0.00')}%",
                Paragraph(escape(density.get('recommendation', '')), styles['cell'])
            ])
        if len(density_rows) > 1:
            story.append(Spacer(1, .3 * cm))
            story.append(Table(density_rows, colWidths=[4.5 * cm, 1.5 * cm, 2 * cm, 10 * cm], repeatRows=1,
                               style=_table_style(white_label.primary_color)))

    full = scan.get('full')
    if full:
        score = full.get('optimizationScore', 0)
        story.append(Paragraph("Optimization Score", styles['heading']))
        score_style = ParagraphStyle("Score", parent=styles['title'], textColor=_score_colour(score))
        story.append(Paragraph(f"{score} / 100", score_style))

        recommendation_rows = [["Priority", "Category", "Recommendation"]]
        for recommendation in full.get('recommendations', []):
            recommendation_rows.append([
                recommendation.get('priority', ''),
                recommendation.get('category', ''),
                Paragraph(escape(recommendation.get('message', '')), styles['cell'])
            ])
        if len(recommendation_rows) > 1:
            story.append(Paragraph("Recommendations", styles['heading']))
            story.append(Table(recommendation_rows, colWidths=[2.5 * cm, 3 * cm, 12.5 * cm], repeatRows=1,
                               style=_table_style(white_label.primary_color)))

    story.append(Paragraph(f"Prepared by: {escape(white_label.prepared_by or DEFAULT_PREPARED_BY)}",
                           styles['footer']))
    return _build(story)


def build_rank_history_pdf(records: Sequence[RankRecord], white_label: Optional[WhiteLabelSettings] = None) -> bytes:
    """Rank history as a Date / Keyword / Domain / Position / URL table."""
    white_label = white_label or WhiteLabelSettings()
    styles = _styles(white_label.primary_color)
    title = (f"Rank History Report for {white_label.client_name}" if white_label.client_name
             else "Rank History Report")

    rows = [["Date", "Keyword", "Domain", "Position", "URL"]]
    for record in records:
        rows.append([
            record.timestamp.strftime('%Y-%m-%d %H:%M'),
            Paragraph(escape(record.keyword), styles['cell']),
            Paragraph(escape(record.domain), styles['cell']),
            record.position if record.found else 'Not found',
            Paragraph(escape(record.url or '-'), styles['cell'])
        ])

    story: List[Any] = [
        Paragraph(escape(title), styles['title']),
        Paragraph(f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')} UTC  |  "
                  f"{len(records)} entries", styles['subtitle']),
        Table(rows, colWidths=[3 * cm, 3.5 * cm, 3.5 * cm, 2 * cm, 6 * cm], repeatRows=1,
              style=_table_style(white_label.primary_color)),
        Paragraph(f"Prepared by: {escape(white_label.prepared_by or DEFAULT_PREPARED_BY)}", styles['footer']),
    ]
    return _build(story)


class ReportSettingsStore:
    """White-label settings, report schedule and the last scheduled run, in one JSON file."""

    def __init__(self, path: Union[str, Path] = DATA_DIR / "report_settings.json"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading report settings from {self.path}: {e}", exc_info=True)
            return {}
        return data if isinstance(data, dict) else {}

    def _update(self, key: str, value: Any):
        with self._lock:
            data = self._load()
            data[key] = value
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

    def get_white_label(self) -> WhiteLabelSettings:
        try:
            return WhiteLabelSettings.model_validate(self._load().get('whiteLabel') or {})
        except ValidationError as e:
            logger.warning(f"Ignoring invalid white-label settings: {e}")
            return WhiteLabelSettings()

    def save_white_label(self, settings: WhiteLabelSettings) -> WhiteLabelSettings:
        self._update('whiteLabel', settings.model_dump(by_alias=True))
        return settings

    def get_schedule(self) -> ReportSchedule:
        try:
            return ReportSchedule.model_validate(self._load().get('reportSchedule') or {})
        except ValidationError as e:
            logger.warning(f"Ignoring invalid report schedule: {e}")
            return ReportSchedule()

    def save_schedule(self, schedule: ReportSchedule) -> ReportSchedule:
        self._update('reportSchedule', schedule.model_dump(by_alias=True))
        return schedule

    def get_last_run(self) -> Optional[datetime]:
        value = self._load().get('lastReportRun')
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid last report run {value!r}")
            return None

    def set_last_run(self, when: datetime):
        self._update('lastReportRun', when.isoformat())
