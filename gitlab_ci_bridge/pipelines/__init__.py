"""Pipeline topology: job identifiers, nodes and the job list."""

from gitlab_ci_bridge.pipelines.models import (
    JobList,
    MultiBranchType,
    PipelineNode,
    StructureOutcome,
    StructureResult,
)
from gitlab_ci_bridge.pipelines.topology import TopologyBuilder

__all__ = [
    "JobList",
    "MultiBranchType",
    "PipelineNode",
    "StructureOutcome",
    "StructureResult",
    "TopologyBuilder",
]
