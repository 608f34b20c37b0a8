"""
Glass CLI - Command-line interface for the engine.

Usage:
    glass simulate [--players N] [--teams K] [--rounds R] [--seed S]
                                   Play a headless game and print standings
    glass inspect <snapshot_file>  Restore a snapshot and report migrations
    glass serve [--host H] [--port P]
                                   Run the REST API with uvicorn
"""

import argparse
import json
import logging
import random
import sys

from .engine_core.action import Action
from .engine_core.errors import ErrorCode
from .engine_core.pool import starter_challenges
from .engine_core.state import ChallengeTopology, DurationMode, GameMode
from .session import SessionManager
from .snapshot import SnapshotError, deserialize

logger = logging.getLogger(__name__)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Glass - Party Game Engine",
        prog="glass",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play a headless seeded game")
    simulate_parser.add_argument("--players", type=int, default=4, help="Number of players")
    simulate_parser.add_argument("--teams", type=int, default=0, help="Number of teams (0 = free-for-all)")
    simulate_parser.add_argument("--rounds", type=int, default=10, help="Challenges to play")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    simulate_parser.add_argument("--snapshot-dir", default=None, help="Save snapshots here while playing")

    # Inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Restore a snapshot file")
    inspect_parser.add_argument("snapshot_file", help="Path to snapshot JSON")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the REST API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "simulate":
        return cmd_simulate(args)
    elif args.command == "inspect":
        return cmd_inspect(args)
    elif args.command == "serve":
        return cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def _fail(result):
    print(f"Error: {result.error}")
    sys.exit(1)


def cmd_simulate(args):
    """Play a full game with random outcomes."""
    manager = SessionManager(snapshot_dir=args.snapshot_dir, seed=args.seed)
    session = manager.create_session()
    outcomes = random.Random(args.seed)

    setup = [Action.add_player(f"Player {i + 1}") for i in range(args.players)]
    if args.teams:
        setup.append(Action.set_game_mode(GameMode.TEAMS))
        setup.append(Action.create_teams(args.teams))
    setup.append(Action.set_duration(DurationMode.BY_CHALLENGE_COUNT, args.rounds))
    setup.append(Action.load_challenges(starter_challenges()))
    setup.append(Action.start_game())

    for action in setup:
        result = session.dispatch(action)
        if not result.success:
            _fail(result)

    skipped = 0
    while not session.is_finished:
        result = session.draw_next_challenge()
        if result is None or session.is_finished:
            break
        if not result.success:
            # A shared challenge the roster cannot fill; draw again
            if result.error_code == ErrorCode.INSUFFICIENT_PARTICIPANTS and skipped < 100:
                skipped += 1
                logger.info("Skipping challenge: %s", result.error)
                continue
            _fail(result)

        challenge = session.state.current_challenge
        participants = [p.id for p in session.state.current_challenge_participants]
        if challenge.topology == ChallengeTopology.SOLO:
            completed = outcomes.random() < 0.7
            winner = participants[0] if completed else None
        else:
            completed = True
            winner = outcomes.choice(participants)

        names = ", ".join(_name(session.state, pid) for pid in participants)
        print(f"Round {session.state.current_round}: {challenge.title} [{challenge.topology.value}] - {names}")
        result = session.record_result(winner_id=winner, completed=completed)
        if not result.success:
            _fail(result)

    print("\nFinal standings:")
    for standing in session.standings():
        print(f"  {standing.rank}. {standing.name}: {standing.score:g}")

    winners = session.winners()
    if winners:
        print(f"\nWinner: {' & '.join(w.name for w in winners)}")


def _name(state, participant_id):
    entity = state.get_player(participant_id) or state.get_team(participant_id)
    return entity.name if entity else participant_id


def cmd_inspect(args):
    """Restore a snapshot file and report what changed."""
    try:
        with open(args.snapshot_file, "r", encoding="utf-8") as f:
            record = json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {args.snapshot_file}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Not valid JSON: {e}")
        sys.exit(1)

    try:
        state, warnings = deserialize(record)
    except SnapshotError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Phase: {state.phase.value}")
    print(f"Mode: {state.game_mode.value}")
    print(f"Players: {len(state.players)}  Teams: {len(state.teams)}")
    print(f"Challenges: {len(state.challenge_pool)} standard, {len(state.custom_challenges)} custom")
    print(f"Results: {len(state.results)}")

    if warnings:
        print("\nMigration warnings:")
        for w in warnings:
            print(f"  - [{w.code.value}] {w.message}")


def cmd_serve(args):
    """Run the REST API."""
    import uvicorn

    uvicorn.run("glass.api.app:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
