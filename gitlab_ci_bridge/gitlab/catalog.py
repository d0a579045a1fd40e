"""Read and write access to the GitLab project catalog.

The catalog hides pagination and visibility scoping behind a handful of
calls. Administrators see every project on the instance. Everybody else
sees a scoped subset, and the scope depends on who is asking:

- ``Scope.OWNED``: projects the account owns. Used when installing or
  removing webhooks, since only owners may manage hooks.
- ``Scope.MEMBER``: projects the account is a member of. Used when
  listing jobs for the CI consumer.
"""

from enum import Enum
from typing import List, Union

import structlog

from gitlab_ci_bridge.gitlab.client import GitLabClient, encode_project_id
from gitlab_ci_bridge.gitlab.models import HookEvents, Project, Webhook

logger = structlog.get_logger()


class Scope(str, Enum):
    """Visibility scope applied to non-administrator project listings."""
    OWNED = "owned"
    MEMBER = "membership"


class ProjectCatalog:
    """Accessor for projects, branches and hooks on a GitLab instance.

    The catalog borrows the client; it never opens or closes it.
    """

    def __init__(self, client: GitLabClient):
        self.client = client

    def is_current_user_admin(self) -> bool:
        """Return True if the token belongs to an instance administrator."""
        user = self.client.get("/user")
        return bool(user.get("is_admin"))

    def list_visible_projects(self, acting_user_is_admin: bool, scope: Scope) -> List[Project]:
        """List the projects in scope for the acting user.

        Args:
            acting_user_is_admin: Whether the account is an administrator.
            scope: Scope applied when the account is not an administrator.

        Returns:
            Projects in the order GitLab returned them.

        Raises:
            RemoteApiError: On non-2xx responses.
            TransportError: On network failures.
        """
        params = {"simple": "true"}
        if not acting_user_is_admin:
            params[scope.value] = "true"

        projects = [Project.from_api(item) for item in self.client.iter_pages("/projects", params)]
        logger.debug(
            "Listed projects",
            admin=acting_user_is_admin,
            scope=None if acting_user_is_admin else scope.value,
            count=len(projects),
        )
        return projects

    def list_branches(self, project: Union[int, str]) -> List[str]:
        """List branch names of a project given by id or ``namespace/path``.

        Raises:
            NotFoundError: If the project does not resolve.
        """
        path = f"/projects/{encode_project_id(project)}/repository/branches"
        return [item["name"] for item in self.client.iter_pages(path)]

    def list_hooks(self, project_id: int) -> List[Webhook]:
        path = f"/projects/{project_id}/hooks"
        return [Webhook.from_api(item, project_id) for item in self.client.iter_pages(path)]

    def add_hook(self, project_id: int, url: str, events: HookEvents) -> Webhook:
        """Register a hook on a project and return it as created by GitLab."""
        data = self.client.post(f"/projects/{project_id}/hooks", json_data=events.to_payload(url))
        return Webhook.from_api(data, project_id)

    def delete_hook(self, project_id: int, hook_id: int) -> None:
        self.client.delete(f"/projects/{project_id}/hooks/{hook_id}")
