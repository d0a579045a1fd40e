"""Translation of GitLab projects and branches into pipeline nodes.

A project with several branches is a multi-branch parent: its identifier
stays at the aggregate level and the consumer recurses into branches.
A project with exactly one branch collapses onto that branch, so its
identifier gains a ``/<branch>`` suffix. Anything else (no branches, or
branch data unavailable) produces no node at all.

Nothing here raises to the caller. Remote failures degrade into a
missing node or a shorter job list and are logged as warnings.
"""

from typing import List, Optional

import structlog

from gitlab_ci_bridge.common.errors import BridgeError
from gitlab_ci_bridge.common.isolation import run_isolated
from gitlab_ci_bridge.gitlab.catalog import ProjectCatalog, Scope
from gitlab_ci_bridge.gitlab.models import Project
from gitlab_ci_bridge.pipelines import naming
from gitlab_ci_bridge.pipelines.models import (
    JobList,
    MultiBranchType,
    PipelineNode,
    StructureOutcome,
    StructureResult,
)

logger = structlog.get_logger()


class TopologyBuilder:
    """Builds pipeline nodes and the job list from the project catalog."""

    def __init__(self, catalog: ProjectCatalog):
        self.catalog = catalog

    def resolve(self, identifier: str) -> StructureResult:
        """Resolve a job identifier into a node, keeping the failure reason.

        Args:
            identifier: ``pipeline:<project-path>`` or a bare project path.
        """
        project_path = naming.cut_pipeline_prefix(identifier)
        try:
            branches = self.catalog.list_branches(project_path)
        except BridgeError as e:
            logger.warning("Failed to get branches", project=project_path, error=str(e))
            return StructureResult(outcome=StructureOutcome.UNAVAILABLE, error=str(e))

        if len(branches) > 1:
            node = PipelineNode(
                job_ci_id=identifier,
                multi_branch_type=MultiBranchType.MULTI_BRANCH_PARENT,
            )
            return StructureResult(outcome=StructureOutcome.RESOLVED, node=node)

        if len(branches) == 1:
            node = PipelineNode(
                job_ci_id=naming.branch_job_id(identifier, branches[0]),
                name=naming.pipeline_display_name(identifier),
            )
            return StructureResult(outcome=StructureOutcome.RESOLVED, node=node)

        logger.warning("Project has no branches", project=project_path)
        return StructureResult(outcome=StructureOutcome.NO_BRANCHES)

    def build_node(self, identifier: str) -> Optional[PipelineNode]:
        """Return the pipeline node for ``identifier``, or None if undeterminable."""
        return self.resolve(identifier).node

    def job_list(self) -> JobList:
        """List one aggregate node per project the account is a member of.

        Administrators see every project. Recomputed on every call.
        """
        try:
            is_admin = self.catalog.is_current_user_admin()
            projects = self.catalog.list_visible_projects(is_admin, Scope.MEMBER)
        except BridgeError as e:
            logger.warning("Failed to add some jobs to the job list", error=str(e))
            return JobList(jobs=[])

        nodes: List[PipelineNode] = []
        report = run_isolated(
            projects,
            lambda project: nodes.append(self._project_node(project)),
            key=lambda project: project.path_with_namespace,
            operation_name="job_list_entry",
        )
        if not report.ok:
            logger.warning(
                "Job list is missing projects",
                skipped=[error.item for error in report.errors],
            )
        return JobList(jobs=nodes)

    def _project_node(self, project: Project) -> PipelineNode:
        path = project.path_with_namespace
        branch_type = MultiBranchType.NONE
        if len(self.catalog.list_branches(project.id)) > 1:
            branch_type = MultiBranchType.MULTI_BRANCH_PARENT
        return PipelineNode(
            job_ci_id=naming.pipeline_id(path),
            name=path,
            multi_branch_type=branch_type,
        )
