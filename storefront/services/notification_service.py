"""
Owner Notification Service

Sends operator alerts (new orders) to the shop owner's webhook.
Delivery is best-effort: callers decide whether a failure matters.
When OWNER_NOTIFY_URL is not configured the alert is only logged.
"""
import logging
from typing import Optional

import httpx

from storefront.config import settings
from storefront.core.exceptions import NotificationError


logger = logging.getLogger(__name__)


class OwnerNotifier:
    """Posts ``{"title", "content"}`` JSON to the owner webhook."""

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url if url is not None else settings.OWNER_NOTIFY_URL
        self.token = token if token is not None else settings.OWNER_NOTIFY_TOKEN
        self.timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT_SECONDS
        self.transport = transport

    async def notify(self, title: str, content: str) -> None:
        """
        Deliver one notification.

        Raises:
            NotificationError: timeout, connection failure or non-2xx reply.
        """
        if not self.url:
            logger.info(f"[OWNER NOTIFICATION] {title}\n{content}")
            return

        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    json={"title": title, "content": content},
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            raise NotificationError(f"Owner notification timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise NotificationError(f"Owner notification failed: {e}") from e

        if response.status_code >= 400:
            raise NotificationError(
                f"Owner notification rejected: HTTP {response.status_code}"
            )

        logger.debug(f"Owner notified: {title}")
