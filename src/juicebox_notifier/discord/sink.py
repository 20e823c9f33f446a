"""Discord webhook sink - posts one embed per notification."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any

import httpx

from juicebox_notifier.models.records import DeliveryResult, Notification

log = logging.getLogger(__name__)

MAX_COLOR = 0xFFFFFF


def embed_payload(notification: Notification, color: int) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "title": notification.title,
        "url": notification.url,
        "color": color,
        "fields": [
            {"name": f.name, "value": f.value, "inline": f.inline}
            for f in notification.fields
        ],
    }
    if notification.thumbnail_url:
        embed["thumbnail"] = {"url": notification.thumbnail_url}
    return {"embeds": [embed]}


def _retry_after(resp: httpx.Response) -> float:
    """Seconds to wait after a 429, from the JSON body or Retry-After header."""
    try:
        body = resp.json()
        if isinstance(body, dict) and body.get("retry_after") is not None:
            return float(body["retry_after"])
    except ValueError:
        pass
    try:
        return float(resp.headers.get("retry-after", 1))
    except ValueError:
        return 1.0


class DiscordWebhookSink:
    """Delivers notifications to a Discord webhook.

    Rate limits (429), server errors and timeouts are retried up to
    `retries` attempts. The outcome is always returned as a DeliveryResult.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: int = 10,
        retries: int = 3,
        backoff: float = 1.0,
        max_retry_after: float = 30.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout
        self._retries = max(1, retries)
        self._backoff = backoff
        self._max_retry_after = max_retry_after

    async def deliver(self, notification: Notification) -> DeliveryResult:
        payload = embed_payload(notification, random.randint(0, MAX_COLOR))
        start = time.monotonic()
        error = "delivery not attempted"
        status_code: int | None = None

        for attempt in range(1, self._retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._webhook_url, json=payload)
            except httpx.TimeoutException as exc:
                error = f"webhook timeout: {exc!r}"
                status_code = None
                if attempt < self._retries:
                    log.warning(
                        "Webhook timeout for %r (attempt %d/%d)",
                        notification.title, attempt, self._retries,
                    )
                    await asyncio.sleep(self._backoff * attempt)
                    continue
                break
            except Exception as exc:
                error = f"webhook error: {exc!r}"
                status_code = None
                break

            status_code = resp.status_code
            if resp.is_success:
                duration = int((time.monotonic() - start) * 1000)
                log.info("Delivered %r in %dms", notification.title, duration)
                return DeliveryResult(
                    success=True,
                    status_code=status_code,
                    attempts=attempt,
                    duration_ms=duration,
                )

            error = f"webhook HTTP {status_code}: {resp.text[:200]}"
            if attempt < self._retries and (status_code == 429 or status_code >= 500):
                delay = (
                    min(_retry_after(resp), self._max_retry_after)
                    if status_code == 429
                    else self._backoff * attempt
                )
                log.warning(
                    "Webhook HTTP %d for %r (attempt %d/%d), retrying in %.1fs",
                    status_code, notification.title, attempt, self._retries, delay,
                )
                await asyncio.sleep(delay)
                continue
            break

        duration = int((time.monotonic() - start) * 1000)
        log.error("Delivery failed for %r: %s", notification.title, error)
        return DeliveryResult(
            success=False,
            status_code=status_code,
            error=error,
            attempts=attempt,
            duration_ms=duration,
        )
