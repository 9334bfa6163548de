import logging
from typing import Optional

import requests

from config import Config


class NotificationService:
    """Service for sending notifications."""

    def __init__(self, config: Config) -> None:
        """Initialize notification service.

        Args:
            config: Configuration containing webhook URL
        """
        self.config = config

    def notify(self, title: str, body: str) -> None:
        """Deliver a notification.

        Args:
            title: Short summary, e.g. the status transition
            body: Notification text
        """
        logging.info(f"Notification: {title} - {body}")
        self.send_discord_notification(f"**{title}**\n{body}")

    def send_discord_notification(self, message: str, timeout: Optional[float] = None) -> None:
        """Send notification to Discord webhook.

        Args:
            message: Message to send
            timeout: Request timeout, defaults to the configured request timeout
        """
        if not self.config.discord_webhook_url:
            logging.warning("Discord webhook URL not configured, skipping notification")
            return

        data = {
            "content": message,
            "username": "Wallbox Monitor",
        }

        try:
            response = requests.post(
                self.config.discord_webhook_url,
                json=data,
                timeout=timeout or self.config.request_timeout,
            )
            response.raise_for_status()
            logging.info("Discord notification sent successfully")
        except requests.RequestException as e:
            logging.error(f"Failed to send Discord notification: {e}")
