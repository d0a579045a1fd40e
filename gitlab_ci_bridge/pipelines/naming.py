"""Pure string transforms between job identifiers and project paths.

A project-level aggregate is identified as ``pipeline:<project-path>``;
a single branch of it as ``pipeline:<project-path>/<branch>``.
"""

PIPELINE_PREFIX = "pipeline:"


def pipeline_id(project_path: str) -> str:
    """Aggregate job identifier for a project path."""
    return f"{PIPELINE_PREFIX}{project_path}"


def cut_pipeline_prefix(identifier: str) -> str:
    """Strip the aggregate prefix, leaving the bare project path.

    Identifiers without the prefix are returned unchanged.
    """
    if identifier.startswith(PIPELINE_PREFIX):
        return identifier[len(PIPELINE_PREFIX):]
    return identifier


def branch_job_id(identifier: str, branch: str) -> str:
    """Identifier of one branch under an aggregate identifier."""
    return f"{identifier}/{branch}"


def pipeline_display_name(identifier: str) -> str:
    """Human-facing name for a job identifier: the bare project path."""
    return cut_pipeline_prefix(identifier)
