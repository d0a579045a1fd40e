"""Pydantic models for the job catalog exposed to the CI consumer."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class MultiBranchType(str, Enum):
    NONE = "NONE"
    MULTI_BRANCH_PARENT = "MULTI_BRANCH_PARENT"


class PipelineNode(BaseModel):
    job_ci_id: str
    name: Optional[str] = None
    multi_branch_type: MultiBranchType = MultiBranchType.NONE


class JobList(BaseModel):
    jobs: List[PipelineNode] = []


class StructureOutcome(str, Enum):
    RESOLVED = "resolved"
    NO_BRANCHES = "no_branches"
    UNAVAILABLE = "unavailable"


class StructureResult(BaseModel):
    """Result of resolving a job identifier, keeping the reason for a missing node."""
    outcome: StructureOutcome
    node: Optional[PipelineNode] = None
    error: Optional[str] = None
