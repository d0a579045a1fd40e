"""FastAPI service for the GitLab CI bridge.

Startup installs webhooks and then probes the callback URL once the
server is accepting connections; shutdown removes the webhooks. The
job-list and structure queries are recomputed from GitLab on every call.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Callable, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from gitlab_ci_bridge import __version__
from gitlab_ci_bridge.common.config import LISTENING_SENTINEL, BridgeSettings, get_settings
from gitlab_ci_bridge.common.logging import configure_logging
from gitlab_ci_bridge.gitlab.client import GitLabClient
from gitlab_ci_bridge.lifecycle.controller import LifecycleController, build_client
from gitlab_ci_bridge.lifecycle.metrics import BridgeMetrics
from gitlab_ci_bridge.lifecycle.prober import LivenessProber
from gitlab_ci_bridge.pipelines.models import JobList, PipelineNode

logger = structlog.get_logger()

metrics = BridgeMetrics()


async def _probe_when_ready(prober: LivenessProber, delay: float) -> None:
    # The server only accepts connections once the lifespan has yielded
    await asyncio.sleep(delay)
    await asyncio.to_thread(prober.probe)


def create_app(
    settings: Optional[BridgeSettings] = None,
    client_factory: Callable[[BridgeSettings], GitLabClient] = build_client,
    bridge_metrics: Optional[BridgeMetrics] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use; read from the environment at startup if None.
        client_factory: Builds the GitLab client owned by the lifecycle controller.
        bridge_metrics: Metrics container; the module-level one if None.
    """
    bridge_metrics = bridge_metrics or metrics

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or get_settings()
        configure_logging(cfg.log_level)

        controller = LifecycleController(
            cfg,
            metrics=bridge_metrics,
            client_factory=client_factory,
        )
        app.state.controller = controller
        await asyncio.to_thread(controller.start)

        probe_task = None
        if controller.callback_url is not None:
            prober = LivenessProber(controller.callback_url, metrics=bridge_metrics)
            probe_task = asyncio.create_task(_probe_when_ready(prober, cfg.probe_delay_seconds))

        logger.info("GitLab bridge ready")
        yield

        if probe_task is not None and not probe_task.done():
            probe_task.cancel()
        await asyncio.to_thread(controller.stop)

    app = FastAPI(
        title="GitLab CI Bridge",
        description="Webhook reconciliation and pipeline topology for GitLab",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.controller = None

    @app.get("/events", response_class=PlainTextResponse)
    def events_sentinel():
        """Answer GET on the webhook endpoint so reachability can be checked."""
        return LISTENING_SENTINEL

    @app.get("/jobs", response_model=JobList)
    def jobs(request: Request):
        controller = request.app.state.controller
        if controller is None or controller.topology is None:
            return JobList(jobs=[])
        return controller.topology.job_list()

    @app.get("/jobs/structure", response_model=Optional[PipelineNode])
    def job_structure(job_id: str, request: Request):
        controller = request.app.state.controller
        if controller is None or controller.topology is None:
            return None
        return controller.topology.build_node(job_id)

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    @app.get("/ready")
    def ready(request: Request):
        controller = request.app.state.controller
        if controller is None or not controller.started:
            return JSONResponse({"status": "not ready"}, status_code=503)
        return {"status": "ready"}

    @app.get("/metrics")
    def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return Response(generate_latest(bridge_metrics.registry), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()


def main() -> None:
    import uvicorn

    cfg = get_settings()
    uvicorn.run(create_app(settings=cfg), host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()
