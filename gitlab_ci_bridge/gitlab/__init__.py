"""GitLab API access: transport client, project catalog and data model."""

from gitlab_ci_bridge.gitlab.catalog import ProjectCatalog, Scope
from gitlab_ci_bridge.gitlab.client import GitLabClient
from gitlab_ci_bridge.gitlab.models import HookEvents, Project, Webhook

__all__ = [
    "GitLabClient",
    "HookEvents",
    "Project",
    "ProjectCatalog",
    "Scope",
    "Webhook",
]
