"""Ballot engine — workflow controller, ballot store and tally."""

from ballotbox.engine.registry import BallotStore
from ballotbox.engine.tally import tally_proposals
from ballotbox.engine.workflow import WorkflowController

__all__ = ["BallotStore", "WorkflowController", "tally_proposals"]
