"""Best-effort iteration that isolates failures per item.

A pass over many projects must not stop because one project misbehaves.
``run_isolated`` applies an operation to every item, collects what
succeeded, and records each failure in a ``PassReport`` instead of
raising.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class ItemError:
    """A non-fatal failure recorded for one item of a pass."""
    item: str
    operation: str
    error: Exception


@dataclass
class PassReport:
    """Outcome of a best-effort pass."""
    processed: List[str] = field(default_factory=list)
    errors: List[ItemError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def record_error(self, item: str, operation: str, error: Exception) -> None:
        """Record a failure and log it as a warning."""
        self.errors.append(ItemError(item=item, operation=operation, error=error))
        logger.warning(
            "Operation failed, continuing",
            item=item,
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
        )


def run_isolated(
    items: Iterable[T],
    operation: Callable[[T], None],
    key: Callable[[T], str],
    operation_name: str,
    report: Optional[PassReport] = None,
) -> PassReport:
    """Apply ``operation`` to each item, never letting one failure abort the rest.

    Args:
        items: Items to process, in order.
        operation: Callable applied to each item.
        key: Produces the identifier recorded for an item.
        operation_name: Label used in the report and logs.
        report: Existing report to append to; a new one is created if None.

    Returns:
        The report with processed item keys and collected errors.
    """
    report = report if report is not None else PassReport()
    for item in items:
        item_key = key(item)
        try:
            operation(item)
        except Exception as e:
            report.record_error(item_key, operation_name, e)
            continue
        report.processed.append(item_key)
    return report
