"""Data structures for GitLab projects and webhooks."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Project:
    """A GitLab project visible to the acting user."""
    id: int
    path_with_namespace: str

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Project":
        return cls(id=int(data["id"]), path_with_namespace=data["path_with_namespace"])


@dataclass(frozen=True)
class Webhook:
    """A project hook registered on GitLab."""
    id: int
    project_id: int
    url: str
    job_events: bool = False
    pipeline_events: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any], project_id: int) -> "Webhook":
        return cls(
            id=int(data["id"]),
            project_id=int(data.get("project_id", project_id)),
            url=data.get("url", ""),
            job_events=bool(data.get("job_events", False)),
            pipeline_events=bool(data.get("pipeline_events", False)),
        )


@dataclass(frozen=True)
class HookEvents:
    """Event classes a new hook subscribes to.

    Only job and pipeline events are enabled by default; GitLab enables
    push events unless told otherwise, so every flag is sent explicitly.
    """
    job_events: bool = True
    pipeline_events: bool = True
    push_events: bool = False
    merge_requests_events: bool = False
    tag_push_events: bool = False
    issues_events: bool = False
    note_events: bool = False
    wiki_page_events: bool = False
    enable_ssl_verification: bool = False
    token: str = ""

    def to_payload(self, url: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "url": url,
            "job_events": self.job_events,
            "pipeline_events": self.pipeline_events,
            "push_events": self.push_events,
            "merge_requests_events": self.merge_requests_events,
            "tag_push_events": self.tag_push_events,
            "issues_events": self.issues_events,
            "note_events": self.note_events,
            "wiki_page_events": self.wiki_page_events,
            "enable_ssl_verification": self.enable_ssl_verification,
        }
        if self.token:
            payload["token"] = self.token
        return payload
