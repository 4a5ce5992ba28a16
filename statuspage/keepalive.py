# ---
# File: statuspage/keepalive.py
# Purpose: Cold start prevention. Hosting platforms put idle free-tier apps
#          to sleep; when KEEPALIVE_URL is set the server pings it on an
#          interval from a background task.
# ---

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class KeepAlivePinger:
    """
    Pings `url` every `interval_seconds` until stopped. A failed ping is
    counted and logged; it never ends the loop.
    """

    def __init__(self, url: str, interval_seconds: float, timeout_seconds: float, transport=None):
        self.url = url
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.successful_pings = 0
        self.failed_pings = 0

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def ping_once(self, client: httpx.AsyncClient) -> bool:
        try:
            response = await client.get(self.url)
        except httpx.HTTPError as exc:
            self.failed_pings += 1
            logger.warning(
                "[KEEPALIVE] Ping failed | Error: %s | Total failures: %d/%d",
                str(exc)[:100],
                self.failed_pings,
                self.successful_pings + self.failed_pings,
            )
            return False

        if response.status_code >= 400:
            self.failed_pings += 1
            logger.warning("[KEEPALIVE] Unexpected status | Status: %s | Failures: %d", response.status_code, self.failed_pings)
            return False
        self.successful_pings += 1
        logger.info(
            "[KEEPALIVE] Ping successful | Status: %s | Total pings: %d | Failures: %d",
            response.status_code,
            self.successful_pings,
            self.failed_pings,
        )
        return True

    async def run(self) -> None:
        logger.info(
            "[KEEPALIVE] Service started | Target: %s | Interval: %ss | Timeout: %ss",
            self.url,
            self.interval_seconds,
            self.timeout_seconds,
        )
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            while not self._stop_event.is_set():
                await self.ping_once(client)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    continue
        logger.info(
            "[KEEPALIVE] Service stopped | Total pings: %d | Failures: %d",
            self.successful_pings,
            self.failed_pings,
        )

    def start(self) -> None:
        if not self.enabled:
            logger.info("[STARTUP] Keep-alive is DISABLED (KEEPALIVE_URL not set)")
            return
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run())
        logger.info("[STARTUP] Keep-alive task created")

    async def stop(self, grace_seconds: float = 5) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=grace_seconds)
            logger.info("[SHUTDOWN] Keep-alive stopped gracefully")
        except asyncio.TimeoutError:
            logger.warning("[SHUTDOWN] Keep-alive timeout, forcing cancellation")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("[SHUTDOWN] Keep-alive cancelled")
        finally:
            self._task = None

    def stats(self) -> dict:
        attempts = self.successful_pings + self.failed_pings
        return {
            "total_pings": attempts,
            "successful_pings": self.successful_pings,
            "failed_pings": self.failed_pings,
            "success_rate_percent": round(self.successful_pings / attempts * 100, 2) if attempts else 0.0,
        }
