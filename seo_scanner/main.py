"""
FastAPI application for the SEO Scanner.
Provides endpoints for page scans, rank tracking, AI suggestions and reports.
"""
import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import Response

from seo_scanner import __version__
from seo_scanner.config import (
    ALLOWED_ORIGINS, ENABLE_REPORT_SCHEDULER, LOG_LEVEL, OPENAI_API_KEY,
    RESULTS_DIR, SERP_API_KEY, SMTP_PASSWORD, SMTP_USER
)
from seo_scanner.email_service import EmailDeliveryError
from seo_scanner.fetcher import FetchError
from seo_scanner.models import (
    AiSuggestionRequest, InvalidRequestError, MetaSuggestionRequest, RankCheckRequest,
    ReportSchedule, ScanRequest, WhiteLabelSettings
)
from seo_scanner.rank_checker import RankChecker, SerpApiError
from seo_scanner.rank_history import RankHistoryStore
from seo_scanner.reports import (
    ReportSettingsStore, build_rank_history_pdf, build_scan_report_pdf,
    rank_history_filename, scan_report_filename
)
from seo_scanner.scanner import SEOScanner
from seo_scanner.scheduler import ReportGenerationError, ReportScheduler
from seo_scanner.suggestions import (
    KeywordSuggestionService, generate_meta_tag_suggestions, get_rank_suggestions
)

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="SEO Scanner",
    description="""
    An API for scanning web pages for on-page SEO issues and tracking search rankings.

    ## Features
    * Page scans at basic, advanced and full depth
    * Keyword density, positions and readability
    * Optimization score and recommendations
    * Rank tracking with history, trends, import and export
    * AI suggestions and scheduled PDF reports
    """,
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600                       # Cache preflight requests for 1 hour
)

RESULTS_DIR.mkdir(parents=True, exist_ok=True)

scanner = SEOScanner()
rank_history = RankHistoryStore()
rank_checker = RankChecker(rank_history)
keyword_suggestions = KeywordSuggestionService()
report_settings = ReportSettingsStore()
report_scheduler = ReportScheduler(report_settings, scanner, rank_history)


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode='json')


def _today() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%d')


scheduler_task: Optional[asyncio.Task] = None


@app.on_event("startup")
async def start_report_scheduler():
    global scheduler_task
    if ENABLE_REPORT_SCHEDULER:
        scheduler_task = asyncio.create_task(report_scheduler.start())
    else:
        logger.info("Report scheduler disabled (set ENABLE_REPORT_SCHEDULER=true to enable)")


@app.on_event("shutdown")
async def stop_report_scheduler():
    global scheduler_task
    report_scheduler.stop()
    if scheduler_task is not None:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass
        scheduler_task = None


# --- Scans ---

@app.post("/api/scan")
async def scan_website(
    request: ScanRequest,
    background_tasks: BackgroundTasks,
    request_id: str = Header(None)
):
    """
    Scan a web page for SEO issues.

    The depth selects the sections computed: 'basic' (metadata, headings,
    images, links, technical issues), 'advanced' (adds keyword analysis) and
    'full' (adds the optimization score, recommendations and AI suggestions).

    Raises:
        HTTPException: 400 for invalid input, 502/504 when the page cannot be fetched
    """
    request_id = request_id or str(uuid.uuid4())
    logger.info(f"[{request_id}] Received scan request for URL: {request.url}, Depth: {request.depth}, "
                f"Keywords: {request.target_keywords}")

    try:
        result = await scanner.scan(request.url, request.depth, request.target_keywords, request_id=request_id)
    except InvalidRequestError as e:
        logger.error(f"[{request_id}] Invalid input: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except FetchError as e:
        logger.error(f"[{request_id}] Fetch failed ({e.kind}): {e.message}")
        status_code = {'timeout': 504, 'invalid_url': 400}.get(e.kind, 502)
        raise HTTPException(status_code=status_code, detail=e.message)
    except Exception as e:
        logger.error(f"[{request_id}] Unexpected error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred. Please try again later.")

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    result_file = RESULTS_DIR / f"scan_{result['scanId'][:8]}_{timestamp}.json"
    background_tasks.add_task(save_scan_results, result_file, result)
    return result


@app.get("/api/scans")
async def get_scan_history():
    scans = scanner.list_scans()
    return {"total": len(scans), "scans": scans}


@app.get("/api/scan/{scan_id}")
async def get_scan_details(scan_id: str):
    scan = scanner.get_scan(scan_id)
    if scan is None:
        raise HTTPException(status_code=404, detail="The requested scan ID does not exist")
    return scan


@app.get("/api/scan/{scan_id}/pdf")
async def export_scan_pdf(scan_id: str):
    scan = scanner.get_scan(scan_id)
    if scan is None:
        raise HTTPException(status_code=404, detail="The requested scan ID does not exist")
    pdf = await asyncio.to_thread(build_scan_report_pdf, scan, report_settings.get_white_label())
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{scan_report_filename(scan["url"])}"'}
    )


# --- Rank tracking ---

@app.post("/api/rank-check")
async def check_rank_position(request: RankCheckRequest, request_id: str = Header(None)):
    """
    Look up the organic position of a domain for a keyword and record it.

    Raises:
        HTTPException: 400 for missing keyword/domain, 429/500/503 for SERP API failures
    """
    request_id = request_id or str(uuid.uuid4())
    try:
        record = await rank_checker.check_rank(
            request.keyword, request.domain, request.search_engine, request_id=request_id
        )
    except InvalidRequestError as e:
        logger.error(f"[{request_id}] Invalid input: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except SerpApiError as e:
        error_msg = str(e)
        if "not configured" in error_msg.lower():
            logger.error(f"[{request_id}] {error_msg}")
            raise HTTPException(status_code=500, detail="SERP API key is not configured")
        if "rate limit" in error_msg.lower():
            logger.error(f"[{request_id}] SERP API rate limit exceeded: {error_msg}")
            raise HTTPException(status_code=429, detail="SERP API rate limit exceeded. Please try again later.")
        logger.error(f"[{request_id}] SERP API error: {error_msg}")
        raise HTTPException(status_code=503, detail="Error accessing SERP API. Please try again later.")
    except Exception as e:
        logger.error(f"[{request_id}] Unexpected error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred. Please try again later.")
    return _dump(record)


@app.get("/api/rank-history")
async def get_rank_history(
    keyword: str = Query(..., min_length=1),
    domain: str = Query(..., min_length=1),
    days: int = Query(30, ge=1, description="Window in days")
):
    history = rank_history.query(keyword, domain, window_days=days)
    trend = rank_history.trend(keyword, domain, window_days=days)
    return {
        "keyword": keyword,
        "domain": domain,
        "days": days,
        "history": [_dump(entry) for entry in history],
        "trend": _dump(trend) if trend else None
    }


@app.get("/api/rank-history/latest")
async def get_latest_rankings():
    latest = rank_history.latest_per_keyword_domain()
    return {"total": len(latest), "rankings": [_dump(entry) for entry in latest]}


@app.delete("/api/rank-history")
async def delete_rank_history(
    keyword: str = Query(..., min_length=1),
    domain: str = Query(..., min_length=1)
):
    return {"removed": rank_history.purge(keyword, domain)}


@app.get("/api/rank-history/export")
async def export_rank_history():
    return Response(
        content=rank_history.export_all(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="rank-history-{_today()}.json"'}
    )


@app.post("/api/rank-history/import")
async def import_rank_history(request: Request):
    body = await request.body()
    try:
        added = rank_history.import_merge(body)
    except ValueError as e:
        logger.error(f"Rank history import rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return {"imported": added, "total": len(rank_history.all())}


@app.get("/api/rank-history/pdf")
async def export_rank_history_pdf(
    keyword: Optional[str] = Query(None),
    domain: Optional[str] = Query(None),
    days: int = Query(30, ge=1)
):
    if keyword and domain:
        records = rank_history.query(keyword, domain, window_days=days)
    else:
        records = rank_history.all()
    pdf = await asyncio.to_thread(build_rank_history_pdf, records, report_settings.get_white_label())
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{rank_history_filename()}"'}
    )


# --- Suggestions ---

@app.post("/api/ai-suggestions")
async def ai_suggestions(request: AiSuggestionRequest):
    """Three ranking suggestions; falls back to a fixed set when the AI service is unavailable."""
    if not request.keyword or not request.domain:
        raise HTTPException(status_code=400, detail="Keyword and domain are required")
    result = await get_rank_suggestions(request.keyword, request.domain, request.position, request.url)
    return _dump(result)


@app.post("/api/meta-suggestions")
async def meta_suggestions(request: MetaSuggestionRequest):
    if not request.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    result = await generate_meta_tag_suggestions(request.content, request.target_keywords)
    return _dump(result)


@app.get("/api/keyword-suggestions")
async def get_keyword_suggestions(keyword: Optional[str] = Query(None), domain: Optional[str] = Query(None)):
    if not keyword or not keyword.strip():
        raise HTTPException(status_code=400, detail="Keyword is required")
    suggestions = keyword_suggestions.get_suggestions(keyword, domain)
    return {"keyword": keyword.strip(), "suggestions": [_dump(s) for s in suggestions]}


# --- Report settings ---

@app.get("/api/settings/white-label")
async def get_white_label_settings():
    return _dump(report_settings.get_white_label())


@app.put("/api/settings/white-label")
async def update_white_label_settings(settings: WhiteLabelSettings):
    return _dump(report_settings.save_white_label(settings))


@app.get("/api/settings/report-schedule")
async def get_report_schedule():
    schedule = report_settings.get_schedule()
    return {**_dump(schedule), "lastRun": _last_run_iso()}


@app.put("/api/settings/report-schedule")
async def update_report_schedule(schedule: ReportSchedule):
    return {**_dump(report_settings.save_schedule(schedule)), "lastRun": _last_run_iso()}


def _last_run_iso() -> Optional[str]:
    last_run = report_settings.get_last_run()
    return last_run.isoformat() if last_run else None


@app.post("/api/reports/send-test")
async def send_test_report(schedule: Optional[ReportSchedule] = None):
    """Send the reports now to the schedule's recipients (the saved schedule when no body is given)."""
    schedule = schedule or report_settings.get_schedule()
    if not schedule.recipient_list:
        raise HTTPException(status_code=400, detail="No recipients specified")
    try:
        sent = await report_scheduler.generate_and_send_reports(schedule)
    except ReportGenerationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmailDeliveryError as e:
        logger.error(f"Test report delivery failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {"sent": sent, "recipients": schedule.recipient_list}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Dict containing status of the API and its dependencies
    """
    return {
        "status": "healthy",
        "version": __version__,
        "dependencies": {
            "serp_api": bool(SERP_API_KEY),
            "openai": bool(OPENAI_API_KEY),
            "smtp": bool(SMTP_USER and SMTP_PASSWORD)
        }
    }


def save_scan_results(file_path: Path, result: Dict[str, Any]):
    """Save scan results to a JSON file."""
    try:
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(result, f, indent=2, ensure_ascii=False)
        logger.info(f"Scan results saved to {file_path}")
    except (OSError, TypeError) as e:
        logger.error(f"Error saving scan results to {file_path}: {e}", exc_info=True)


# Custom OpenAPI schema
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title="SEO Scanner API",
        version=__version__,
        description="API for scanning web pages and tracking search rankings",
        routes=app.routes,
    )

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
