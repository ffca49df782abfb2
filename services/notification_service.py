"""
Report notification.

Best-effort delivery of a run's report by email (HTML summary plus the
.xlsx export) and, when configured, a short Telegram summary.
"""

from html import escape
from typing import Optional

import structlog

from config.settings import Settings, settings as app_settings
from exceptions import NotifyError
from integrations.mailer import Mailer
from integrations.telegram import TelegramError, send_report_to_telegram
from models.reconciliation import DiscrepancyReport
from models.run_config import NotificationConfig
from services.export_service import ExportService, get_export_service, report_filename

logger = structlog.get_logger(__name__)

EMAIL_TABLE_ROWS = 20


def email_subject(report: DiscrepancyReport) -> str:
    return (
        f"Texon Inventory Comparison Report - {report.date.isoformat()} "
        f"({report.total_discrepancies} discrepancies)"
    )


def render_email_html(report: DiscrepancyReport) -> str:
    """
    HTML body: headline totals plus the top rows of the (truncated) list.

    Args:
        report: Report already truncated to the email limit

    Returns:
        HTML string
    """
    parts = [
        "<h2>Texon Inventory Comparison Report</h2>",
        f"<p><strong>Date:</strong> {report.date.isoformat()}</p>",
        f"<p><strong>Total Discrepancies:</strong> {report.total_discrepancies}</p>",
    ]

    if report.total_discrepancies > 0:
        rows = []
        for item in report.discrepancies[:EMAIL_TABLE_ROWS]:
            color = "red" if item.difference < 0 else "green"
            sign = "+" if item.difference > 0 else ""
            rows.append(
                "<tr>"
                f"<td><strong>{escape(item.sku)}</strong></td>"
                f"<td>{escape(item.product_name or 'N/A')}</td>"
                f'<td style="text-align: right;">{item.brightpearl_stock}</td>'
                f'<td style="text-align: right;">{item.infoplus_stock}</td>'
                f'<td style="text-align: right; color: {color};">{sign}{item.difference}</td>'
                "</tr>"
            )
        parts.extend([
            "<h3>Top Discrepancies:</h3>",
            '<table border="1" cellpadding="8" cellspacing="0" style="border-collapse: collapse;">',
            '<thead><tr style="background-color: #f0f0f0;">'
            "<th>SKU</th><th>Product Name</th><th>Brightpearl Stock</th>"
            "<th>Infoplus Stock</th><th>Difference</th></tr></thead>",
            "<tbody>",
            *rows,
            "</tbody></table>",
        ])
        if len(report.discrepancies) < report.total_discrepancies:
            parts.append(
                f"<p>Showing {len(report.discrepancies)} of "
                f"{report.total_discrepancies} discrepancies.</p>"
            )
    else:
        parts.append('<p style="color: green;"><strong>No discrepancies found!</strong></p>')

    parts.extend([
        "<p><strong>Complete report attached as Excel file</strong></p>",
        "<p><em>Automated report from Texon Inventory Comparison system.</em></p>",
    ])
    return "\n".join(parts)


class NotificationService:
    """
    Report delivery.

    notify() never raises; each channel's failure is logged.
    """

    def __init__(
        self,
        mailer: Optional[Mailer] = None,
        export_service: Optional[ExportService] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or app_settings
        self.mailer = mailer or Mailer(self.config)
        self.export_service = export_service or get_export_service()

    def notify(self, report: DiscrepancyReport, notification: NotificationConfig) -> bool:
        """
        Deliver a report to the configured channels.

        Args:
            report: Full ranked report
            notification: Recipients and limits for this run

        Returns:
            True if the email was sent
        """
        sent = False
        if notification.should_send(report.total_discrepancies):
            truncated = report.truncated(notification.max_discrepancies)
            try:
                self.send_email(truncated, list(notification.recipients))
                sent = True
                logger.info(
                    "report_email_sent",
                    recipients=len(notification.recipients),
                    included=len(truncated.discrepancies),
                    total=report.total_discrepancies
                )
            except NotifyError as e:
                logger.error("report_email_failed", error=e.message)
        else:
            logger.info(
                "report_email_skipped",
                enabled=notification.enabled,
                recipients=len(notification.recipients),
                total_discrepancies=report.total_discrepancies,
                send_on_zero=notification.send_on_zero_discrepancies
            )

        if self.config.telegram_configured:
            try:
                self.send_telegram(report.truncated(notification.max_discrepancies))
            except NotifyError as e:
                logger.error("report_telegram_failed", error=e.message)

        return sent

    def send_email(self, report: DiscrepancyReport, recipients: list[str]) -> None:
        """
        Raises:
            NotifyError: Export or delivery failed
        """
        try:
            attachment = self.export_service.generate_report_excel(report).getvalue()
        except Exception as e:
            raise NotifyError("email", f"Failed to build report attachment: {e}") from e

        self.mailer.send(
            recipients=recipients,
            subject=email_subject(report),
            html=render_email_html(report),
            attachment=attachment,
            attachment_name=report_filename(report.date),
        )

    def send_telegram(self, report: DiscrepancyReport) -> None:
        """
        Raises:
            NotifyError: Telegram rejected the message
        """
        try:
            send_report_to_telegram(report, config=self.config)
        except TelegramError as e:
            raise NotifyError("telegram", str(e)) from e


# Singleton instance
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get or create NotificationService instance."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
