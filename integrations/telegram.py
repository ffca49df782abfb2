"""
Telegram bot integration for sending report summaries.

Sends a short Markdown summary of a run's report to one chat.
"""

from typing import Optional
import requests
import structlog

from config.settings import Settings, settings as app_settings
from models.reconciliation import DiscrepancyReport

logger = structlog.get_logger(__name__)

TOP_ROWS = 5


class TelegramError(Exception):
    """Telegram API error."""
    pass


def get_telegram_config(config: Optional[Settings] = None) -> tuple[Optional[str], Optional[str]]:
    """
    Get Telegram configuration from settings.

    Returns:
        tuple: (bot_token, chat_id)
    """
    config = config or app_settings
    bot_token = config.telegram_bot_token
    chat_id = config.telegram_chat_id

    if not bot_token or not chat_id:
        logger.debug(
            "telegram_not_configured",
            has_token=bool(bot_token),
            has_chat_id=bool(chat_id)
        )

    return bot_token, chat_id


def format_report_message(report: DiscrepancyReport) -> str:
    """
    Format a report as a Telegram message.

    Args:
        report: Report (possibly truncated) to summarise

    Returns:
        Formatted message string
    """
    stats = report.match_stats
    counts = report.source_item_counts

    if report.total_discrepancies == 0:
        headline = "✅ *Inventory comparison: no discrepancies*"
    else:
        headline = f"⚠️ *Inventory comparison: {report.total_discrepancies} discrepancies*"

    lines = [
        headline,
        "",
        f"Date: {report.date.isoformat()}",
        f"Brightpearl items: {counts.brightpearl}",
        f"Infoplus items: {counts.infoplus}",
        f"Matches: {stats.strict_matches} strict + {stats.loose_matches} loose",
    ]

    if report.discrepancies:
        lines.append("")
        lines.append("Largest differences:")
        for item in report.discrepancies[:TOP_ROWS]:
            sign = "+" if item.difference > 0 else ""
            lines.append(
                f"`{item.sku}` BP {item.brightpearl_stock} / IP {item.infoplus_stock} ({sign}{item.difference})"
            )

    return "\n".join(lines)


def send_message(
    message: str,
    parse_mode: str = "Markdown",
    config: Optional[Settings] = None
) -> bool:
    """
    Send message to Telegram.

    Args:
        message: Message text to send
        parse_mode: Telegram parse mode (Markdown or HTML)

    Returns:
        True if sent, False if Telegram is not configured

    Raises:
        TelegramError: If send fails
    """
    bot_token, chat_id = get_telegram_config(config)

    if not bot_token or not chat_id:
        logger.warning("telegram_not_configured_skipping_send")
        return False

    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"

    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": parse_mode,
        "disable_web_page_preview": True,
    }

    try:
        logger.info("sending_telegram_message", chat_id=chat_id)

        response = requests.post(url, json=payload, timeout=10)
        response.raise_for_status()

        result = response.json()

        if not result.get("ok"):
            error_msg = result.get("description", "Unknown error")
            logger.error("telegram_api_error", error=error_msg)
            raise TelegramError(f"Telegram API error: {error_msg}")

        logger.info("telegram_message_sent", message_id=result.get("result", {}).get("message_id"))
        return True

    except requests.exceptions.RequestException as e:
        logger.error("telegram_request_failed", error=str(e))
        raise TelegramError(f"Failed to send Telegram message: {str(e)}")


def send_report_to_telegram(report: DiscrepancyReport, config: Optional[Settings] = None) -> bool:
    """
    Send report summary to Telegram.

    Raises:
        TelegramError: If send fails
    """
    return send_message(format_report_message(report), config=config)
