"""Webhook reconciliation against the GitLab project catalog.

For every project in scope the reconciler removes each hook pointing at
the callback URL and then registers exactly one fresh hook subscribed to
job and pipeline events. Running it again converges on the same state,
so no bookkeeping survives between runs.

Projects are handled one at a time, in the order GitLab lists them, and a
failure in one project never stops the others.
"""

from typing import Callable, List, Optional

import structlog

from gitlab_ci_bridge.common.errors import BridgeError, NotFoundError, ReconciliationError
from gitlab_ci_bridge.common.isolation import PassReport, run_isolated
from gitlab_ci_bridge.gitlab.catalog import ProjectCatalog, Scope
from gitlab_ci_bridge.gitlab.models import HookEvents, Project
from gitlab_ci_bridge.lifecycle.metrics import BridgeMetrics

logger = structlog.get_logger()


class WebhookReconciler:
    """Keeps one callback webhook per owned (or, for admins, every) project."""

    def __init__(
        self,
        catalog: ProjectCatalog,
        callback_url: str,
        events: Optional[HookEvents] = None,
        metrics: Optional[BridgeMetrics] = None,
    ):
        self.catalog = catalog
        self.callback_url = callback_url
        self.events = events or HookEvents()
        self.metrics = metrics

    def install(self) -> PassReport:
        """Delete stale callback hooks and create one new hook per project.

        Raises:
            ReconciliationError: If the project set cannot be enumerated.
        """
        projects = self._projects("install")
        logger.info("Installing GitLab webhooks", url=self.callback_url, project_count=len(projects))

        report = self._run(projects, self._reconcile_project)

        self._finish("install", report)
        return report

    def uninstall(self) -> PassReport:
        """Delete callback hooks from every project without recreating them.

        Raises:
            ReconciliationError: If the project set cannot be enumerated.
        """
        projects = self._projects("uninstall")
        logger.info("Destroying GitLab webhooks", url=self.callback_url, project_count=len(projects))

        report = self._run(projects, self._delete_project_hooks)

        self._finish("uninstall", report)
        return report

    def _run(
        self,
        projects: List[Project],
        operation: Callable[[Project, PassReport], None],
    ) -> PassReport:
        report = PassReport()
        return run_isolated(
            projects,
            lambda project: operation(project, report),
            key=_project_key,
            operation_name=operation.__name__.lstrip("_"),
            report=report,
        )

    def _projects(self, phase: str) -> List[Project]:
        try:
            is_admin = self.catalog.is_current_user_admin()
            return self.catalog.list_visible_projects(is_admin, Scope.OWNED)
        except BridgeError as e:
            if self.metrics is not None:
                self.metrics.record_pass(phase, "aborted")
            raise ReconciliationError(f"Failed to list GitLab projects for {phase}") from e

    def _reconcile_project(self, project: Project, report: PassReport) -> None:
        failed = self._delete_matching_hooks(project, report)
        if failed:
            # At most one callback hook per project
            raise ReconciliationError(
                f"{failed} stale hook(s) left on {project.path_with_namespace}, not adding a new one"
            )

        hook = self.catalog.add_hook(project.id, self.callback_url, self.events)
        if self.metrics is not None:
            self.metrics.record_hook_created()
        logger.debug("Created GitLab webhook", project=project.path_with_namespace, hook_id=hook.id)

    def _delete_project_hooks(self, project: Project, report: PassReport) -> None:
        self._delete_matching_hooks(project, report)

    def _delete_matching_hooks(self, project: Project, report: PassReport) -> int:
        """Delete every hook on ``project`` whose URL is the callback URL.

        Individual delete failures are recorded in ``report`` and do not
        stop the remaining deletes. A hook that is already gone (404) counts
        as deleted. Listing failures propagate.

        Returns:
            Number of matching hooks that could not be deleted.
        """
        failed = 0
        for hook in self.catalog.list_hooks(project.id):
            if hook.url != self.callback_url:
                continue
            try:
                self.catalog.delete_hook(project.id, hook.id)
            except NotFoundError:
                logger.debug(
                    "GitLab webhook already deleted",
                    project=project.path_with_namespace,
                    hook_id=hook.id,
                )
                continue
            except BridgeError as e:
                report.record_error(f"{project.path_with_namespace}#{hook.id}", "delete_hook", e)
                failed += 1
                continue
            if self.metrics is not None:
                self.metrics.record_hook_deleted()
            logger.debug("Deleted GitLab webhook", project=project.path_with_namespace, hook_id=hook.id)
        return failed

    def _finish(self, phase: str, report: PassReport) -> None:
        if self.metrics is not None:
            for error in report.errors:
                self.metrics.record_error(error.operation)
            self.metrics.record_pass(phase, "ok" if report.ok else "partial")

        log = logger.info if report.ok else logger.warning
        log(
            "GitLab webhook pass finished",
            phase=phase,
            processed=len(report.processed),
            errors=len(report.errors),
        )


def _project_key(project: Project) -> str:
    return project.path_with_namespace
