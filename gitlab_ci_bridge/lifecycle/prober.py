"""One-shot reachability check of the advertised callback URL."""

from typing import Optional

import httpx
import structlog

from gitlab_ci_bridge.common.config import LISTENING_SENTINEL
from gitlab_ci_bridge.lifecycle.metrics import BridgeMetrics

logger = structlog.get_logger()


class LivenessProber:
    """Checks that GitLab will be able to reach the events endpoint.

    The probe is a diagnostic for operators: it never retries and never
    affects process health.
    """

    def __init__(
        self,
        url: str,
        sentinel: str = LISTENING_SENTINEL,
        timeout: float = 10.0,
        metrics: Optional[BridgeMetrics] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self.sentinel = sentinel
        self.timeout = timeout
        self.metrics = metrics
        self._transport = transport

    def probe(self) -> bool:
        """GET the callback URL and compare the body with the sentinel.

        Returns:
            True if the endpoint answered 200 with the sentinel body.
        """
        warning = (
            f"Error while accessing the '{self.url}' endpoint. "
            "Note that this endpoint must be accessible by GitLab."
        )
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.url)
        except Exception as e:
            logger.warning(warning, url=self.url, error=str(e), error_type=type(e).__name__)
            self._record("unreachable")
            return False

        if response.status_code != 200:
            logger.warning(warning, url=self.url, status_code=response.status_code)
            self._record("bad_status")
            return False

        if response.text != self.sentinel:
            logger.warning(warning, url=self.url, body=response.text[:200])
            self._record("bad_body")
            return False

        logger.info(f"Success while accessing the '{self.url}' endpoint.", url=self.url)
        self._record("ok")
        return True

    def _record(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.record_probe(result)
