"""
Weekly report emails.

The scheduler wakes up every REPORT_CHECK_INTERVAL seconds, works out when
the configured weekly run is due and sends the reports once per week.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from seo_scanner.config import REPORT_CHECK_INTERVAL
from seo_scanner.email_service import Attachment, EmailService
from seo_scanner.models import ReportSchedule, WhiteLabelSettings
from seo_scanner.rank_history import RankHistoryStore
from seo_scanner.reports import (
    DEFAULT_PREPARED_BY, ReportSettingsStore, build_rank_history_pdf,
    build_scan_report_pdf, rank_history_filename, scan_report_filename
)
from seo_scanner.scanner import SEOScanner

logger = logging.getLogger(__name__)

WEEKDAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


class ReportGenerationError(Exception):
    """Raised when a scheduled run has nothing to send."""
    pass


def next_run_date(schedule: ReportSchedule, last_run: Optional[datetime], now: datetime) -> datetime:
    """
    The scheduled day and time in the week of `now` (weeks start on Monday),
    pushed one week later when it is not after the last run.
    """
    hours, minutes = (int(part) for part in schedule.time.split(':'))
    week_start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    next_run = week_start + timedelta(days=WEEKDAYS.index(schedule.day), hours=hours, minutes=minutes)
    if last_run is not None and not next_run > last_run:
        next_run += timedelta(days=7)
    return next_run


def render_email_template(client_name: str, prepared_by: str, include_seo: bool, include_rank: bool,
                          now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    included = ''
    if include_seo:
        included += '<li>SEO Analysis Report</li>'
    if include_rank:
        included += '<li>Rank Tracking Report</li>'
    return f"""<!DOCTYPE html>
<html>
  <head>
    <style>
      body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
      .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
      .header {{ text-align: center; margin-bottom: 30px; }}
      .content {{ margin-bottom: 30px; }}
      .footer {{ text-align: center; font-size: 12px; color: #666; }}
    </style>
  </head>
  <body>
    <div class="container">
      <div class="header">
        <h1>Weekly SEO Report</h1>
        <p>For {client_name}</p>
      </div>
      <div class="content">
        <p>Your weekly SEO performance report is attached to this email.</p>
        <h3>Included Reports:</h3>
        <ul>{included}</ul>
      </div>
      <div class="footer">
        <p>Generated by {prepared_by}</p>
        <p>Report generated on {now.strftime('%B %d, %Y')}</p>
      </div>
    </div>
  </body>
</html>
"""


class ReportScheduler:
    def __init__(
        self,
        settings: ReportSettingsStore,
        scanner: SEOScanner,
        history: RankHistoryStore,
        email_service: Optional[EmailService] = None,
        interval: int = REPORT_CHECK_INTERVAL
    ):
        self.settings = settings
        self.scanner = scanner
        self.history = history
        self.email_service = email_service or EmailService()
        self.interval = interval
        self._running = False

    def _build_attachments(self, schedule: ReportSchedule, white_label: WhiteLabelSettings) -> List[Attachment]:
        attachments = []
        if schedule.include_seo_report:
            scans = self.scanner.list_scans()
            latest = self.scanner.get_scan(scans[0]['id']) if scans else None
            if latest:
                attachments.append(Attachment(
                    filename=scan_report_filename(latest['url']),
                    content=build_scan_report_pdf(latest, white_label)
                ))
            else:
                logger.info("No stored scan to include in the report email")
        if schedule.include_rank_tracker:
            records = self.history.all()
            if records:
                attachments.append(Attachment(
                    filename=rank_history_filename(),
                    content=build_rank_history_pdf(records, white_label)
                ))
            else:
                logger.info("No rank history to include in the report email")
        return attachments

    async def generate_and_send_reports(self, schedule: ReportSchedule) -> int:
        """
        Build the enabled reports and email them to every recipient.

        Returns:
            Number of emails sent

        Raises:
            ReportGenerationError: If no report could be generated
            EmailDeliveryError: If sending to a recipient fails
        """
        recipients = schedule.recipient_list
        if not recipients:
            return 0

        white_label = self.settings.get_white_label()
        attachments = self._build_attachments(schedule, white_label)
        if not attachments:
            raise ReportGenerationError("No reports were generated")

        client_name = white_label.client_name or 'Your Website'
        html = render_email_template(
            client_name,
            white_label.prepared_by or DEFAULT_PREPARED_BY,
            schedule.include_seo_report,
            schedule.include_rank_tracker
        )
        for recipient in recipients:
            await asyncio.to_thread(
                self.email_service.send_email,
                recipient, f"Weekly SEO Report for {client_name}", html, attachments
            )
        logger.info(f"Sent {len(attachments)} report(s) to {len(recipients)} recipient(s)")
        return len(recipients)

    async def check_and_send(self, now: Optional[datetime] = None) -> bool:
        """Send the weekly reports if they are due. Returns True when a run happened."""
        schedule = self.settings.get_schedule()
        if not schedule.enabled:
            return False

        now = now or datetime.now(timezone.utc)
        due = next_run_date(schedule, self.settings.get_last_run(), now)
        if not now > due:
            return False

        await self.generate_and_send_reports(schedule)
        self.settings.set_last_run(now)
        return True

    async def start(self):
        self._running = True
        logger.info("Report scheduler started.")
        while self._running:
            try:
                await self.check_and_send()
            except Exception as e:
                logger.error(f"Failed to send scheduled reports: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    def stop(self):
        self._running = False
        logger.info("Report scheduler stopped.")
