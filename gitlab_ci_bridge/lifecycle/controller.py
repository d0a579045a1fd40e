"""Process lifecycle: owns the GitLab client and drives reconciliation.

``start()`` opens the client and installs webhooks; ``stop()`` removes
them and closes the client. Neither ever raises: GitLab being down must
not keep the process from starting or stopping.
"""

from typing import Any, Callable, Optional

import structlog

from gitlab_ci_bridge.common.config import BridgeSettings
from gitlab_ci_bridge.common.errors import ConfigurationError
from gitlab_ci_bridge.common.logging import redact_secret
from gitlab_ci_bridge.gitlab.catalog import ProjectCatalog
from gitlab_ci_bridge.gitlab.client import GitLabClient
from gitlab_ci_bridge.hooks.reconciler import WebhookReconciler
from gitlab_ci_bridge.lifecycle.metrics import BridgeMetrics
from gitlab_ci_bridge.pipelines.topology import TopologyBuilder

logger = structlog.get_logger()


def build_client(settings: BridgeSettings) -> GitLabClient:
    return GitLabClient(
        base_url=settings.gitlab_url,
        token=settings.gitlab_token,
        max_retries=settings.max_retries,
        timeout=settings.request_timeout_seconds,
        per_page=settings.per_page,
    )


class LifecycleController:
    """Single owner of the GitLab client handle.

    Components built here (catalog, reconciler, topology builder) borrow
    the handle; only the controller opens and closes it.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        metrics: Optional[BridgeMetrics] = None,
        client_factory: Callable[[BridgeSettings], GitLabClient] = build_client,
    ):
        self.settings = settings
        self.metrics = metrics
        self._client_factory = client_factory
        self.client: Optional[GitLabClient] = None
        self.callback_url: Optional[str] = None
        self.catalog: Optional[ProjectCatalog] = None
        self.reconciler: Optional[WebhookReconciler] = None
        self.topology: Optional[TopologyBuilder] = None

    @property
    def started(self) -> bool:
        return self.client is not None

    def start(self) -> None:
        """Acquire the client and install webhooks on every project in scope."""
        logger.info(
            "Starting GitLab bridge",
            gitlab_url=self.settings.gitlab_url,
            gitlab_token=redact_secret(self.settings.gitlab_token),
            server_base_url=self.settings.server_base_url,
        )
        try:
            self.client = self._client_factory(self.settings)
            self.catalog = ProjectCatalog(self.client)
            self.topology = TopologyBuilder(self.catalog)
            self.callback_url = self.settings.callback_url
            self.reconciler = WebhookReconciler(
                self.catalog,
                self.callback_url,
                metrics=self.metrics,
            )
            self.reconciler.install()
        except ConfigurationError as e:
            logger.error("Cannot compute webhook callback URL, skipping reconciliation", error=str(e))
        except Exception as e:
            logger.warning("Failed to create GitLab web hooks", error=str(e), exc_info=True)

    def stop(self) -> None:
        """Remove installed webhooks and release the client."""
        try:
            if self.reconciler is not None:
                self.reconciler.uninstall()
        except Exception as e:
            logger.warning("Failed to destroy GitLab webhooks", error=str(e), exc_info=True)
        finally:
            if self.client is not None:
                self.client.close()
            self.client = None
            self.catalog = None
            self.reconciler = None
            self.topology = None
            logger.info("GitLab bridge stopped")

    def __enter__(self) -> "LifecycleController":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
