"""
Telegram bot integration for import notifications.

Sends human-readable run summaries to a Telegram chat. Purely
observational: the import pipeline never depends on delivery.
"""

from datetime import datetime, timezone
from typing import Optional
import requests
import structlog

from config.settings import settings
from exceptions import TelegramError

logger = structlog.get_logger(__name__)


LEVEL_EMOJIS = {
    "success": "✅",
    "info": "ℹ️",
    "warning": "⚠️",
    "error": "🚨",
}


def get_telegram_config() -> tuple[Optional[str], Optional[str]]:
    """
    Get Telegram configuration from settings.

    Returns:
        tuple: (bot_token, chat_id)
    """
    if not settings.telegram_configured:
        logger.debug(
            "telegram_not_configured",
            has_token=bool(settings.telegram_bot_token),
            has_chat_id=bool(settings.telegram_chat_id)
        )
        return None, None

    return settings.telegram_bot_token, settings.telegram_chat_id


def format_import_summary(title: str, message: str, level: str = "info") -> str:
    """
    Format an import summary as a Telegram message.

    Args:
        title: Short headline ("Import Completed")
        message: Body text
        level: success, info, warning or error

    Returns:
        Formatted message string
    """
    emoji = LEVEL_EMOJIS.get(level, "•")
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    lines = [
        f"{emoji} *{title}*",
        "",
        message,
        "",
        f"🕐 {timestamp}",
    ]
    return "\n".join(lines)


def send_message(message: str, parse_mode: str = "Markdown") -> bool:
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
    bot_token, chat_id = get_telegram_config()

    if not bot_token or not chat_id:
        logger.debug("telegram_not_configured_skipping_send")
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


# ===================
# NOTIFIERS
# ===================

class LoggingNotifier:
    """Writes import summaries to the structured log only."""

    def notify(self, title: str, message: str, level: str = "info") -> None:
        log = logger.error if level == "error" else logger.info
        log("import_notification", title=title, message=message, level=level)


class TelegramNotifier(LoggingNotifier):
    """Logs import summaries and forwards them to Telegram when configured."""

    def notify(self, title: str, message: str, level: str = "info") -> None:
        super().notify(title, message, level)
        send_message(format_import_summary(title, message, level))
