"""Ballotbox — administrator-driven single-organization elections."""

from ballotbox.election import Election
from ballotbox.models.ballot import TallyResult, WorkflowStatus

__all__ = ["Election", "TallyResult", "WorkflowStatus"]

__version__ = "0.1.0"
