"""
Probe executor: one bounded HTTP GET against a check's URL.

Probe failures are outcomes, not exceptions. Retries are left to the
job runtime, so the prober makes exactly one request per call.
"""
import asyncio
import logging
import time
from dataclasses import dataclass

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timeout"


@dataclass(frozen=True)
class ProbeResult:
    """Result of a single probe."""

    status_code: int  # 0 when no response was received
    latency_ms: int
    success: bool
    error_message: str = ""

    @property
    def last_status(self) -> str:
        return "up" if self.success else "down"


class HttpProber:
    """
    Runs GET requests with a deadline equal to the check timeout.

    The deadline covers the whole request, redirects included, and the
    request is abandoned once it passes. Only the response head is
    awaited; the body is never downloaded.
    """

    def __init__(self, user_agent: str | None = None, follow_redirects: bool = True):
        self.user_agent = user_agent or getattr(
            settings, "PROBE_USER_AGENT", "Pulse-Monitor/1.0"
        )
        self.follow_redirects = follow_redirects

    def probe(self, url: str, timeout: float, expected_status: int) -> ProbeResult:
        start_time = time.monotonic()

        try:
            # Worker threads have no running loop; each probe gets its own.
            status_code = asyncio.run(self._fetch_status(url, timeout))

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            latency_ms = _elapsed_ms(start_time)
            logger.warning(f"Probe timeout for {url} after {latency_ms}ms: {e!r}")
            return ProbeResult(
                status_code=0,
                latency_ms=latency_ms,
                success=False,
                error_message=TIMEOUT_MESSAGE,
            )

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            latency_ms = _elapsed_ms(start_time)
            error = str(e) or e.__class__.__name__
            logger.warning(f"Probe transport error for {url}: {error}")
            return ProbeResult(
                status_code=0,
                latency_ms=latency_ms,
                success=False,
                error_message=error,
            )

        latency_ms = _elapsed_ms(start_time)

        success = status_code == expected_status
        if success:
            logger.info(f"Probe passed for {url}: {status_code} in {latency_ms}ms")
            error = ""
        else:
            error = f"Expected {expected_status}, got {status_code}"
            logger.warning(f"Probe failed for {url}: {error}")

        return ProbeResult(
            status_code=status_code,
            latency_ms=latency_ms,
            success=success,
            error_message=error,
        )

    async def _fetch_status(self, url: str, timeout: float) -> int:
        # httpx only bounds each connect/read/write; wait_for bounds the total.
        return await asyncio.wait_for(self._request(url, timeout), timeout)

    async def _request(self, url: str, timeout: float) -> int:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=self.follow_redirects,
            headers={"User-Agent": self.user_agent},
        ) as client:
            async with client.stream("GET", url) as response:
                return response.status_code


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)
