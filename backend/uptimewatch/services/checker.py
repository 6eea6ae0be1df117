"""Checker service - performs one HTTP/HTTPS probe per check and classifies it."""
import asyncio
import logging
import re
from datetime import datetime
from typing import Optional
from dataclasses import dataclass

import httpx

from ..errors import ConfigError
from ..schemas.check import (
    CheckRecord,
    CheckState,
    HOSTNAME_PATTERN,
    MAX_TIMEOUT_SEC,
    METHODS,
    MIN_TIMEOUT_SEC,
    PATH_PATTERN,
    PROTOCOLS,
)

logger = logging.getLogger(__name__)

_hostname_re = re.compile(HOSTNAME_PATTERN)
_path_re = re.compile(PATH_PATTERN)


@dataclass
class ProbeOutcome:
    """Result of a single probe attempt."""
    state: str  # up, down
    elapsed_ms: Optional[int] = None
    status_code: Optional[int] = None
    details: Optional[str] = None


class CheckerService:
    """Service for probing checks.

    Exactly one request is made per ``probe`` call. There are no retries:
    the next scheduler tick is the retry.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def build_url(self, check: CheckRecord) -> str:
        """Validate the probe parameters of ``check`` and return its URL.

        Raises ConfigError when the check cannot be probed as configured.
        """
        if check.protocol not in PROTOCOLS:
            raise ConfigError(f"Unsupported protocol: {check.protocol}")
        if check.method not in METHODS:
            raise ConfigError(f"Unsupported method: {check.method}")
        if not check.hostname or not _hostname_re.match(check.hostname):
            raise ConfigError(f"Invalid hostname: {check.hostname!r}")
        if not _path_re.match(check.path or ""):
            raise ConfigError(f"Invalid path: {check.path!r}")
        if not MIN_TIMEOUT_SEC <= check.timeout_sec <= MAX_TIMEOUT_SEC:
            raise ConfigError(f"Timeout must be {MIN_TIMEOUT_SEC}-{MAX_TIMEOUT_SEC} seconds")
        if not check.success_codes:
            raise ConfigError("No success codes configured")

        try:
            url = httpx.URL(check.url)
        except httpx.InvalidURL as e:
            raise ConfigError(f"Invalid URL {check.url!r}: {e}") from e
        return str(url)

    async def probe(self, check: CheckRecord) -> ProbeOutcome:
        """Probe ``check`` once and classify the result.

        Network-level failures (timeout, refused connection, DNS or TLS
        errors) are ``down`` outcomes. Only bad configuration raises.
        """
        url = self.build_url(check)
        timeout = check.timeout_sec

        start = datetime.now()
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=False,
                transport=self.transport,
            ) as client:
                request = client.build_request(check.method, url)
                # Only the status line matters; the body is never read or decoded
                response = await asyncio.wait_for(client.send(request, stream=True), timeout=timeout)
                await response.aclose()
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return ProbeOutcome(
                state=CheckState.DOWN.value,
                elapsed_ms=self._elapsed_ms(start),
                details=f"No response within {timeout}s",
            )
        except httpx.ConnectError as e:
            return ProbeOutcome(
                state=CheckState.DOWN.value,
                elapsed_ms=self._elapsed_ms(start),
                details=f"Connection error: {e}",
            )
        except httpx.RequestError as e:
            return ProbeOutcome(
                state=CheckState.DOWN.value,
                elapsed_ms=self._elapsed_ms(start),
                details=f"{type(e).__name__}: {e}",
            )

        elapsed_ms = self._elapsed_ms(start)
        if response.status_code in check.success_codes:
            return ProbeOutcome(
                state=CheckState.UP.value,
                elapsed_ms=elapsed_ms,
                status_code=response.status_code,
            )
        return ProbeOutcome(
            state=CheckState.DOWN.value,
            elapsed_ms=elapsed_ms,
            status_code=response.status_code,
            details=f"HTTP {response.status_code}",
        )

    @staticmethod
    def _elapsed_ms(start: datetime) -> int:
        return int((datetime.now() - start).total_seconds() * 1000)

