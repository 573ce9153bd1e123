"""Ballotbox CLI — drive an election from the command line.

State lives in an append-only event log inside the data directory and
is rebuilt by replay on every invocation.

Usage:
    python -m ballotbox.cli create --admin admin
    python -m ballotbox.cli admit --caller admin --voter alice
    python -m ballotbox.cli start-proposals --caller admin
    python -m ballotbox.cli propose --caller alice --description "Plant trees"
    python -m ballotbox.cli end-proposals --caller admin
    python -m ballotbox.cli start-voting --caller admin
    python -m ballotbox.cli vote --caller alice --proposal 1
    python -m ballotbox.cli end-voting --caller admin
    python -m ballotbox.cli tally --caller admin
    python -m ballotbox.cli winner
    python -m ballotbox.cli status
    python -m ballotbox.cli verify-log
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from ballotbox.config import BallotSettings
from ballotbox.persistence.event_log import EventLog
from ballotbox.service import BallotService, ServiceResult


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"

logger = logging.getLogger(__name__)


def _event_log(args: argparse.Namespace) -> EventLog:
    args.data.mkdir(parents=True, exist_ok=True)
    return EventLog(storage_path=args.data / args.settings.event_log_name)


def _load_service(args: argparse.Namespace) -> Optional[BallotService]:
    """Rebuild the election from the data directory, or report why not."""
    try:
        event_log = _event_log(args)
        if event_log.count == 0:
            print("No election found: run 'create' first", file=sys.stderr)
            return None
        return BallotService.from_event_log(event_log, args.settings)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return None


def _report(result: ServiceResult, message: str) -> int:
    if result.success:
        print(message.format(**result.data))
        if "warning" in result.data:
            print(f"Warning: {result.data['warning']}", file=sys.stderr)
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_create(args: argparse.Namespace) -> int:
    try:
        event_log = _event_log(args)
        service = BallotService.create(args.admin, args.settings, event_log)
    except (ValueError, RuntimeError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(f"Created election (administrator: {service.election.administrator})")
    return 0


def cmd_admit(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    return _report(service.admit_voter(args.caller, args.voter), "Registered voter: {voter}")


def _transition(name: str) -> Callable[[argparse.Namespace], int]:
    def handler(args: argparse.Namespace) -> int:
        service = _load_service(args)
        if service is None:
            return 1
        result = getattr(service, name)(args.caller)
        return _report(result, "Workflow status: {previous} → {phase}")
    handler.__name__ = f"cmd_{name}"
    return handler


def cmd_propose(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    return _report(
        service.register_proposal(args.caller, args.description),
        "Registered proposal {proposal_id}: {description}",
    )


def cmd_vote(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    return _report(
        service.cast_vote(args.caller, args.proposal),
        "{voter} voted for proposal {proposal_id}",
    )


def cmd_tally(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    return _report(
        service.tally_votes(args.caller),
        "Winner: proposal {winning_proposal_id} ({winning_description}) "
        "with {winning_vote_count} of {total_votes} votes",
    )


def cmd_winner(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    result = service.get_winner()
    if result.success:
        print(json.dumps(result.data, indent=2, ensure_ascii=False))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    print(json.dumps(service.status(), indent=2, ensure_ascii=False))
    return 0


def cmd_verify_log(args: argparse.Namespace) -> int:
    """Check event hashes and replay the whole log."""
    service = _load_service(args)
    if service is None:
        return 1
    print(
        f"Log OK: {service.status()['events']} events, "
        f"phase {service.current_phase.value}"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ballotbox",
        description="Ballotbox — single-organization election CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Path to data directory holding the event log (default: data/)",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: from settings)",
    )
    sub = parser.add_subparsers(dest="command")

    # create
    p_create = sub.add_parser("create", help="Create a new election")
    p_create.add_argument("--admin", required=True, help="Administrator identity")

    # admit
    p_admit = sub.add_parser("admit", help="Admit a voter")
    p_admit.add_argument("--caller", required=True, help="Calling identity")
    p_admit.add_argument("--voter", required=True, help="Voter identity")

    # phase transitions
    for name, help_text in (
        ("start-proposals", "Open proposal registration"),
        ("end-proposals", "Close proposal registration"),
        ("start-voting", "Open the voting session"),
        ("end-voting", "Close the voting session"),
        ("tally", "Count the votes"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--caller", required=True, help="Calling identity")

    # propose
    p_prop = sub.add_parser("propose", help="Register a proposal")
    p_prop.add_argument("--caller", required=True, help="Calling voter")
    p_prop.add_argument("--description", required=True, help="Proposal text")

    # vote
    p_vote = sub.add_parser("vote", help="Cast a vote")
    p_vote.add_argument("--caller", required=True, help="Calling voter")
    p_vote.add_argument(
        "--proposal", type=int, required=True,
        help="Proposal id (0 = blank vote)",
    )

    # queries
    sub.add_parser("winner", help="Show the tally result")
    sub.add_parser("status", help="Show election status")
    sub.add_parser("verify-log", help="Verify and replay the event log")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        args.settings = BallotSettings.from_config_dir(args.config)
    except (ValueError, OSError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    level = (args.log_level or args.settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    commands = {
        "create": cmd_create,
        "admit": cmd_admit,
        "start-proposals": _transition("start_proposals_registration"),
        "propose": cmd_propose,
        "end-proposals": _transition("end_proposals_registration"),
        "start-voting": _transition("start_voting_session"),
        "vote": cmd_vote,
        "end-voting": _transition("end_voting_session"),
        "tally": cmd_tally,
        "winner": cmd_winner,
        "status": cmd_status,
        "verify-log": cmd_verify_log,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    logger.debug("Running %s", args.command)
    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
