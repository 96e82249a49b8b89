"""Exceptions raised by the feedback analysis job."""

from typing import Optional


class AggregationError(Exception):
    """An aggregation run started and failed."""


class StoreError(AggregationError):
    """The feedback store could not be queried or written."""


class DuplicateReportError(StoreError):
    """A report run already exists for the report date."""


class TaskCreationError(AggregationError):
    """The external task could not be created."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CountOutOfRangeError(AggregationError):
    """A feedback count does not fit a 32-bit signed integer."""


class JobCancelled(Exception):
    """The run was cancelled or ran past its deadline before finishing.

    Deliberately not an AggregationError so callers can tell a run that
    never completed its steps apart from one that failed.
    """
