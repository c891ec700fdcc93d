"""HTTP(S) reachability probes.

A domain counts as reachable when a HEAD request returns any status below 500:
a 404 still proves the request reached a web server answering for the domain.
Certificates are not validated here; certificate state is tracked separately.
"""

from __future__ import annotations

import httpx
import structlog

logger = structlog.get_logger()


class ReachabilityChecker:
    """Checks whether a domain answers over HTTP or HTTPS."""

    def __init__(
        self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    async def is_reachable(self, domain: str, https: bool = True) -> bool:
        """Send a HEAD request to the domain root.

        Args:
            domain: Normalized domain name.
            https: Probe https:// when True, http:// otherwise.

        Returns:
            True if the server answered with a status in [200, 500).
        """
        scheme = "https" if https else "http"
        url = f"{scheme}://{domain}"
        try:
            async with httpx.AsyncClient(
                verify=False,
                follow_redirects=True,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.head(url)
        except httpx.HTTPError as e:
            logger.debug("reachability_failed", url=url, error=str(e))
            return False

        logger.debug("reachability_checked", url=url, status=response.status_code)
        return 200 <= response.status_code < 500
