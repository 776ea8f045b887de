"""
Outbound push-notification client (OneSignal REST API).

Delivery is best effort: the request that triggered a notification never
waits for the push, and a failed push is only logged and counted.
When no app id is configured the client stays disabled.
"""
import asyncio
import logging
from typing import Optional

import httpx

from app.config import Settings
from app.telemetry import PUSH_ERRORS_TOTAL

logger = logging.getLogger(__name__)


class PushClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._settings = settings
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._http is not None

    async def start(self) -> None:
        if not self._settings.onesignal_app_id:
            logger.info("Push notifications disabled (no ONESIGNAL_APP_ID)")
            return
        self._http = httpx.AsyncClient(
            timeout=self._settings.push_timeout_seconds,
            transport=self._transport,
            headers={"Authorization": f"Basic {self._settings.onesignal_api_key}"},
        )

    async def stop(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._http:
            await self._http.aclose()
            self._http = None

    async def send(self, title: str, message: str, external_id: Optional[str] = None) -> bool:
        """
        POST one notification. Without external_id it is broadcast to the
        "All" segment. Returns False on any failure.
        """
        if self._http is None:
            return False

        payload = {
            "app_id": self._settings.onesignal_app_id,
            "headings": {"en": title},
            "contents": {"en": message},
        }
        if external_id:
            payload["include_external_user_ids"] = [external_id]
        else:
            payload["included_segments"] = ["All"]

        try:
            resp = await self._http.post(self._settings.onesignal_url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Push notification failed: %s", exc)
            PUSH_ERRORS_TOTAL.inc()
            return False

        logger.debug("Push notification sent to %s", external_id or "All")
        return True

    def schedule(self, title: str, message: str, external_id: Optional[str] = None) -> None:
        """Fire-and-forget wrapper around send()."""
        if self._http is None:
            return
        task = asyncio.create_task(self.send(title, message, external_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
