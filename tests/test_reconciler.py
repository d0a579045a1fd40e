"""Unit tests for webhook install and uninstall passes."""

import httpx
import pytest

from gitlab_ci_bridge.common.errors import ReconciliationError
from gitlab_ci_bridge.gitlab.catalog import ProjectCatalog
from gitlab_ci_bridge.hooks.reconciler import WebhookReconciler

from fakes import CALLBACK_URL, FakeGitLab

OTHER_URL = "https://ci.example.test/hook"


@pytest.fixture
def reconciler(catalog, metrics):
    return WebhookReconciler(catalog, CALLBACK_URL, metrics=metrics)


class TestInstall:

    def test_replaces_matching_hooks_and_keeps_others(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")
        other = gitlab.add_hook(1, OTHER_URL, job_events=True)
        gitlab.add_hook(1, CALLBACK_URL)
        gitlab.add_hook(1, CALLBACK_URL, pipeline_events=True)

        report = reconciler.install()

        assert report.ok
        assert report.processed == ["teamA/app"]
        callback_hooks = gitlab.hooks_for(1)
        assert len(callback_hooks) == 1
        assert callback_hooks[0]["job_events"] is True
        assert callback_hooks[0]["pipeline_events"] is True
        assert other in [hook["id"] for hook in gitlab.hooks[1]]

    def test_install_twice_keeps_one_hook(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")

        reconciler.install()
        reconciler.install()

        assert len(gitlab.hooks_for(1)) == 1

    def test_only_owned_projects_for_non_admin(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")
        gitlab.add_project(2, "teamB/lib", owned=False)

        reconciler.install()

        assert len(gitlab.hooks_for(1)) == 1
        assert gitlab.hooks_for(2) == []

    def test_admin_reconciles_every_project(self, metrics):
        gitlab = FakeGitLab(admin=True)
        gitlab.add_project(1, "teamA/app", owned=False, member=False)
        gitlab.add_project(2, "teamB/lib")

        with gitlab.client() as client:
            WebhookReconciler(ProjectCatalog(client), CALLBACK_URL, metrics=metrics).install()

        assert len(gitlab.hooks_for(1)) == 1
        assert len(gitlab.hooks_for(2)) == 1

    def test_failing_project_does_not_stop_others(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")
        gitlab.add_project(2, "teamB/broken")
        gitlab.add_project(3, "teamC/lib")
        gitlab.fail("GET", "/projects/2/hooks", 500)

        report = reconciler.install()

        assert not report.ok
        assert report.processed == ["teamA/app", "teamC/lib"]
        assert [error.item for error in report.errors] == ["teamB/broken"]
        assert len(gitlab.hooks_for(1)) == 1
        assert len(gitlab.hooks_for(3)) == 1

    def test_create_failure_is_isolated(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")
        gitlab.add_project(2, "teamB/lib")
        gitlab.fail("POST", "/projects/1/hooks", 403)

        report = reconciler.install()

        assert [error.item for error in report.errors] == ["teamA/app"]
        assert gitlab.hooks_for(1) == []
        assert len(gitlab.hooks_for(2)) == 1

    def test_failed_delete_blocks_new_hook(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")
        stuck = gitlab.add_hook(1, CALLBACK_URL)
        gitlab.fail("DELETE", f"/projects/1/hooks/{stuck}", 500)

        report = reconciler.install()

        assert [hook["id"] for hook in gitlab.hooks_for(1)] == [stuck]
        items = [error.item for error in report.errors]
        assert f"teamA/app#{stuck}" in items
        assert "teamA/app" in items

    def test_listing_failure_aborts_pass(self, gitlab, reconciler, metrics):
        gitlab.fail("GET", "/projects", 503)

        with pytest.raises(ReconciliationError):
            reconciler.install()

        assert metrics.registry.get_sample_value(
            "gitlab_bridge_reconcile_passes_total", {"phase": "install", "status": "aborted"}
        ) == 1.0

    def test_metrics(self, gitlab, reconciler, metrics):
        gitlab.add_project(1, "teamA/app")
        gitlab.add_project(2, "teamB/lib")
        gitlab.add_hook(1, CALLBACK_URL)

        reconciler.install()

        registry = metrics.registry
        assert registry.get_sample_value("gitlab_bridge_hooks_created_total") == 2.0
        assert registry.get_sample_value("gitlab_bridge_hooks_deleted_total") == 1.0
        assert registry.get_sample_value(
            "gitlab_bridge_reconcile_passes_total", {"phase": "install", "status": "ok"}
        ) == 1.0


class TestUninstall:

    def test_removes_callback_hooks_without_recreating(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")
        gitlab.add_project(2, "teamB/lib")
        other = gitlab.add_hook(1, OTHER_URL)
        reconciler.install()

        report = reconciler.uninstall()

        assert report.ok
        assert gitlab.hooks_for(1) == []
        assert gitlab.hooks_for(2) == []
        assert [hook["id"] for hook in gitlab.hooks[1]] == [other]

    def test_uninstall_never_creates(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")

        reconciler.uninstall()

        assert not any(request.method == "POST" for request in gitlab.requests)

    def test_partial_failure_is_reported(self, gitlab, reconciler, metrics):
        gitlab.add_project(1, "teamA/app")
        gitlab.add_project(2, "teamB/lib")
        stuck = gitlab.add_hook(1, CALLBACK_URL)
        gitlab.add_hook(2, CALLBACK_URL)
        gitlab.fail("DELETE", f"/projects/1/hooks/{stuck}", 500)

        report = reconciler.uninstall()

        assert [error.operation for error in report.errors] == ["delete_hook"]
        assert gitlab.hooks_for(2) == []
        assert metrics.registry.get_sample_value(
            "gitlab_bridge_errors_total", {"operation": "delete_hook"}
        ) == 1.0
        assert metrics.registry.get_sample_value(
            "gitlab_bridge_reconcile_passes_total", {"phase": "uninstall", "status": "partial"}
        ) == 1.0


class TestRemoteFailures:
    """Install under partial and ambiguous GitLab failures."""

    def test_delete_failure_in_one_of_three_projects(self, gitlab, reconciler):
        for project_id, path in [(1, "teamA/app"), (2, "teamB/stuck"), (3, "teamC/lib")]:
            gitlab.add_project(project_id, path)
        stuck = gitlab.add_hook(2, CALLBACK_URL)
        gitlab.add_hook(1, CALLBACK_URL)
        gitlab.fail("DELETE", f"/projects/2/hooks/{stuck}", 500)

        report = reconciler.install()

        assert report.processed == ["teamA/app", "teamC/lib"]
        assert len(gitlab.hooks_for(1)) == 1
        assert len(gitlab.hooks_for(3)) == 1
        assert [hook["id"] for hook in gitlab.hooks_for(2)] == [stuck]

    def test_hook_already_gone_counts_as_deleted(self, gitlab, reconciler):
        gitlab.add_project(1, "teamA/app")
        vanished = gitlab.add_hook(1, CALLBACK_URL)
        path = f"/projects/1/hooks/{vanished}"

        def removed_meanwhile(request):
            del gitlab.overrides[("DELETE", path)]
            gitlab.hooks[1] = [hook for hook in gitlab.hooks[1] if hook["id"] != vanished]
            return gitlab.handle(request)

        gitlab.override("DELETE", path, removed_meanwhile)

        report = reconciler.install()

        assert report.ok
        callback_hooks = gitlab.hooks_for(1)
        assert len(callback_hooks) == 1
        assert callback_hooks[0]["id"] != vanished

    def test_timed_out_create_is_not_duplicated(self, gitlab, metrics):
        gitlab.add_project(1, "teamA/app")

        def applied_then_timed_out(request):
            del gitlab.overrides[("POST", "/projects/1/hooks")]
            gitlab.handle(request)
            raise httpx.ReadTimeout("timed out", request=request)

        gitlab.override("POST", "/projects/1/hooks", applied_then_timed_out)

        with gitlab.client(max_retries=3) as client:
            reconciler = WebhookReconciler(ProjectCatalog(client), CALLBACK_URL, metrics=metrics)
            report = reconciler.install()
            assert len(gitlab.hooks_for(1)) == 1
            assert [error.item for error in report.errors] == ["teamA/app"]

            assert reconciler.install().ok
            assert len(gitlab.hooks_for(1)) == 1
