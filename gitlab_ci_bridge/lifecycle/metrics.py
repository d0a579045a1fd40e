"""Prometheus metrics for webhook reconciliation and liveness probing."""

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter


class BridgeMetrics:
    """Prometheus metrics for the bridge.

    Pass a fresh ``CollectorRegistry`` in tests; metric names may only be
    registered once per registry.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.passes_total = Counter(
            "gitlab_bridge_reconcile_passes_total",
            "Reconciliation passes run",
            labelnames=["phase", "status"],
            registry=self.registry,
        )
        self.hooks_created_total = Counter(
            "gitlab_bridge_hooks_created_total",
            "Webhooks created on GitLab projects",
            registry=self.registry,
        )
        self.hooks_deleted_total = Counter(
            "gitlab_bridge_hooks_deleted_total",
            "Webhooks deleted from GitLab projects",
            registry=self.registry,
        )
        self.errors_total = Counter(
            "gitlab_bridge_errors_total",
            "Non-fatal errors during reconciliation",
            labelnames=["operation"],
            registry=self.registry,
        )
        self.probes_total = Counter(
            "gitlab_bridge_liveness_probes_total",
            "Liveness probes of the callback URL",
            labelnames=["result"],
            registry=self.registry,
        )

    def record_pass(self, phase: str, status: str) -> None:
        self.passes_total.labels(phase=phase, status=status).inc()

    def record_hook_created(self) -> None:
        self.hooks_created_total.inc()

    def record_hook_deleted(self) -> None:
        self.hooks_deleted_total.inc()

    def record_error(self, operation: str) -> None:
        self.errors_total.labels(operation=operation).inc()

    def record_probe(self, result: str) -> None:
        self.probes_total.labels(result=result).inc()
