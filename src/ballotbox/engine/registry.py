"""Ballot store — voter registry, proposal list and vote records.

The store validates and applies record changes. It knows nothing about
phases or callers' roles: the Election gates every call before it
reaches here. Each mutating method validates everything first and only
then writes, so a rejected call leaves the store unchanged.
"""

from __future__ import annotations

from typing import Optional

from ballotbox.errors import (
    AlreadyVoted,
    DuplicateProposal,
    DuplicateVoter,
    InvalidDescription,
    InvalidIdentity,
    InvalidProposal,
    VoterNotRegistered,
)
from ballotbox.models.ballot import BLANK_PROPOSAL_ID, Proposal, Voter


class BallotStore:
    """Append-only voter and proposal records for one election."""

    def __init__(self, max_description_length: int = 1000) -> None:
        self._max_description_length = max_description_length
        self._voters: dict[str, Voter] = {}
        self._proposals: list[Proposal] = []
        self._votes_cast = 0

    # ------------------------------------------------------------------
    # Voters
    # ------------------------------------------------------------------

    def add_voter(self, identity: str) -> Voter:
        """Admit a voter.

        Raises:
            InvalidIdentity: If identity is empty.
            DuplicateVoter: If identity was already admitted.
        """
        if not isinstance(identity, str) or not identity.strip():
            raise InvalidIdentity()
        identity = identity.strip()
        if identity in self._voters:
            raise DuplicateVoter(identity)

        voter = Voter(identity=identity, is_registered=True)
        self._voters[identity] = voter
        return voter

    def is_registered(self, identity: str) -> bool:
        voter = self._voters.get(_normalize(identity))
        return voter is not None and voter.is_registered

    def require_registered(self, identity: str) -> Voter:
        """Return the voter record or raise VoterNotRegistered."""
        voter = self._voters.get(_normalize(identity))
        if voter is None or not voter.is_registered:
            raise VoterNotRegistered(identity)
        return voter

    def get_voter(self, identity: str) -> Voter:
        """Look up a voter. Unknown identities yield an unregistered record."""
        identity = _normalize(identity)
        voter = self._voters.get(identity)
        if voter is None:
            return Voter(identity=identity)
        return voter

    @property
    def voter_count(self) -> int:
        return len(self._voters)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def add_blank_proposal(self, label: str) -> Proposal:
        """Create the reserved abstention slot at index 0.

        Raises ValueError if any proposal already exists.
        """
        if self._proposals:
            raise ValueError("Blank proposal must be the first proposal")
        blank = Proposal(proposal_id=BLANK_PROPOSAL_ID, description=label)
        self._proposals.append(blank)
        return blank

    def add_proposal(self, identity: str, description: str) -> Proposal:
        """Append a voter's proposal with the next sequential id.

        Raises:
            VoterNotRegistered: If identity was never admitted.
            DuplicateProposal: If the voter already registered one.
            InvalidDescription: If description is empty or too long.
        """
        voter = self.require_registered(identity)
        if voter.has_proposed:
            raise DuplicateProposal(identity)
        text = self._validate_description(description)

        proposal = Proposal(
            proposal_id=len(self._proposals),
            description=text,
            proposer=voter.identity,
        )
        self._proposals.append(proposal)
        voter.has_proposed = True
        return proposal

    def get_proposal(self, proposal_id: int) -> Proposal:
        """Return a proposal by id or raise InvalidProposal."""
        if not self.is_valid_proposal_id(proposal_id):
            raise InvalidProposal(proposal_id)
        return self._proposals[proposal_id]

    def is_valid_proposal_id(self, proposal_id: object) -> bool:
        # bool is an int subclass; True must not select proposal 1.
        if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
            return False
        return 0 <= proposal_id < len(self._proposals)

    def proposals(self) -> list[Proposal]:
        """All proposals in ascending id order."""
        return list(self._proposals)

    @property
    def proposal_count(self) -> int:
        return len(self._proposals)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def record_vote(self, identity: str, proposal_id: int) -> Proposal:
        """Record a voter's single vote.

        Raises:
            VoterNotRegistered: If identity was never admitted.
            AlreadyVoted: If the voter already voted.
            InvalidProposal: If proposal_id is not an existing proposal.
        """
        voter = self.require_registered(identity)
        if voter.has_voted:
            raise AlreadyVoted(identity)
        proposal = self.get_proposal(proposal_id)

        proposal.vote_count += 1
        voter.has_voted = True
        voter.voted_proposal_id = proposal.proposal_id
        self._votes_cast += 1
        return proposal

    @property
    def votes_cast(self) -> int:
        return self._votes_cast

    def _validate_description(self, description: Optional[str]) -> str:
        if not isinstance(description, str) or not description.strip():
            raise InvalidDescription("Proposal description must not be empty")
        text = description.strip()
        if len(text) > self._max_description_length:
            raise InvalidDescription(
                f"Proposal description exceeds {self._max_description_length} "
                f"characters (got {len(text)})"
            )
        return text


def _normalize(identity: object) -> object:
    # Identities are stored stripped; lookups must match that form.
    return identity.strip() if isinstance(identity, str) else identity
