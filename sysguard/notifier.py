"""Ntfy.sh push notifications for fired alerts."""
import logging
import queue
import threading
from typing import Optional

import httpx

from .config import NtfyConfig
from .models import Alert, Severity

logger = logging.getLogger(__name__)

PRIORITY_BY_SEVERITY = {
    Severity.CRITICAL: "high",
    Severity.WARNING: "default",
    Severity.INFO: "low",
}


class Notifier:
    """Send notifications via ntfy.sh."""

    def __init__(self, config: NtfyConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.enabled = config.enabled
        self.url = f"{config.server_url.rstrip('/')}/{config.topic}"
        self._client = client

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(timeout=10.0)
        return self._client

    def send_notification(
        self,
        title: str,
        message: str,
        priority: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> bool:
        """
        Send a notification via ntfy.sh.

        Args:
            title: Notification title
            message: Notification body
            priority: Priority level (min, low, default, high, max)
            tags: List of emoji tags

        Returns:
            True if successful, False otherwise
        """
        if not self.enabled:
            logger.debug("Notifications disabled, skipping")
            return True

        headers = {
            "Title": title,
            "Priority": priority or self.config.priority,
        }
        if tags:
            headers["Tags"] = ",".join(tags)

        try:
            response = self._get_client().post(
                self.url,
                content=message.encode("utf-8"),
                headers=headers,
            )
        except httpx.ConnectError as e:
            logger.error(f"Cannot connect to ntfy server: {e}")
            return False
        except httpx.TimeoutException:
            logger.error("Timeout sending notification")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Error sending notification: {e}")
            return False

        if response.status_code == 200:
            logger.info(f"Notification sent: {title}")
            return True
        logger.error(f"Failed to send notification: {response.status_code} - {response.text}")
        return False

    def send_alert(self, alert: Alert) -> bool:
        """Send an alert notification, priority derived from its severity."""
        return self.send_notification(
            title=f"{alert.severity.value}: {alert.source}",
            message=f"{alert.message}\n\nSuggested fix: {alert.suggested_fix}",
            priority=PRIORITY_BY_SEVERITY.get(alert.severity),
            tags=["warning" if alert.severity != Severity.INFO else "information_source", "computer"],
        )

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            self._client.close()
            self._client = None


class QueuedNotifier:
    """
    Alert subscriber that hands delivery to a background worker.

    ``__call__`` only enqueues, so the alert engine's critical section never
    waits on the network.
    """

    _STOP = object()

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._queue: queue.Queue = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def __call__(self, alert: Alert) -> None:
        self._queue.put(alert)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="sysguard-notifier", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Deliver what is queued, then stop the worker."""
        if self._thread is None:
            return
        self._queue.put(self._STOP)
        self._thread.join(timeout)
        self._thread = None
        self.notifier.close()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is self._STOP:
                break
            try:
                self.notifier.send_alert(item)
            except Exception as e:
                logger.exception(f"Error delivering alert notification: {e}")
