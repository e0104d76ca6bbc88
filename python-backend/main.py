"""CLI entry point: run a song round (and optional iterations) from the terminal."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from songmaster.agent.workflow import RoundOutcome
from songmaster.models.agent import DEFAULT_ORCHESTRATOR
from songmaster.services.agent_catalog import load_agents, select_agents
from songmaster.services.container import build_services
from songmaster.services.session_service import SongSession

log = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate competing songs with several LLM agents, pick a winner and iterate on it."
    )
    parser.add_argument(
        "--request", "-r",
        type=str,
        required=True,
        help="What the song should be about.",
    )
    parser.add_argument(
        "--style", "-s",
        type=str,
        default="",
        help="Desired musical style.",
    )
    parser.add_argument(
        "--agents", "-a",
        type=str,
        default=None,
        help="Comma-separated agent ids (default: every active agent).",
    )
    parser.add_argument(
        "--orchestrator-model",
        type=str,
        default=None,
        help=f"Model id for the evaluator (default: {DEFAULT_ORCHESTRATOR.model_name}).",
    )
    parser.add_argument(
        "--iterations", "-n",
        type=int,
        default=0,
        help="How many iteration rounds to run on the winner (default: 0).",
    )
    parser.add_argument(
        "--custom",
        type=str,
        default=None,
        help="Custom instructions passed to every iteration round.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log workflow steps to stderr.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log full prompts and raw completions.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Output directory (default: outputs/YYYY-MM-DD/HH-MM-SS).",
    )
    return parser.parse_args()


def setup_output_dir(custom_dir: str | None = None) -> Path:
    """Create output directory with timestamp."""
    if custom_dir:
        output_dir = Path(custom_dir)
    else:
        now = datetime.now()
        output_dir = Path("outputs") / now.strftime("%Y-%m-%d") / now.strftime("%H-%M-%S")

    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def setup_logging(output_dir: Path, verbose: bool = False, debug: bool = False) -> None:
    """Log to both stderr and ``execution.log`` in the output directory."""
    log_level = logging.DEBUG if (verbose or debug) else logging.INFO
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(output_dir / "execution.log")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)


def summarize_round(outcome: RoundOutcome) -> dict:
    round_ = outcome.round
    orchestration = outcome.orchestration
    return {
        "round_number": round_.round_number,
        "results": {k: v.model_dump() for k, v in round_.results.items()},
        "failed_agents": [f.model_dump() for f in round_.failed_agents],
        "evaluations": (
            {k: v.model_dump(mode="json") for k, v in orchestration.evaluations.items()}
            if orchestration
            else {}
        ),
        "winner": (
            orchestration.winner.model_dump()
            if orchestration and orchestration.winner
            else None
        ),
        "orchestration_error": orchestration.error if orchestration else None,
    }


async def main() -> None:
    args = parse_args()
    output_dir = setup_output_dir(args.output_dir)
    setup_logging(output_dir, args.verbose, args.debug)

    start_time = time.time()
    start_datetime = datetime.now().isoformat()

    log.info("=" * 80)
    log.info("Starting song generation")
    log.info("Execution Parameters:")
    log.info(f"  - Timestamp: {start_datetime}")
    log.info(f"  - Request: {args.request!r}")
    log.info(f"  - Style: {args.style or '<none>'}")
    log.info(f"  - Agents: {args.agents or 'all active'}")
    log.info(f"  - Orchestrator model: {args.orchestrator_model or DEFAULT_ORCHESTRATOR.model_name}")
    log.info(f"  - Iterations: {args.iterations}")
    log.info(f"  - Debug mode: {args.debug}")
    log.info(f"  - Output directory: {output_dir}")
    log.info("=" * 80)

    services = build_services(debug=args.debug)
    available = await load_agents(services.records)
    try:
        agents = (
            select_agents(available, [a.strip() for a in args.agents.split(",") if a.strip()])
            if args.agents
            else available
        )
    except KeyError as e:
        log.error(f"Error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    orchestrator_agent = DEFAULT_ORCHESTRATOR
    if args.orchestrator_model:
        orchestrator_agent = orchestrator_agent.model_copy(
            update={"model_name": args.orchestrator_model}
        )

    session = SongSession(services, agents, orchestrator_agent, args.request, args.style)
    outcome = await session.generate()
    if not outcome.succeeded or session.winner_song is None:
        log.error("Round produced no winner, stopping")
    else:
        for _ in range(args.iterations):
            outcome = await session.iterate(args.custom)
            if not outcome.evaluated:
                log.error(f"Iteration #{session.iteration_count + 1} failed, stopping")
                break

    elapsed_time = time.time() - start_time
    log.info("=" * 80)
    log.info(f"Execution completed in {elapsed_time:.2f}s")
    log.info("=" * 80)

    winner = session.winner_song
    result = {
        "song_id": session.song_id,
        "iteration_count": session.iteration_count,
        "winner_agent_id": session.winner_agent_id,
        "winner": winner.model_dump() if winner else None,
        "rounds": [summarize_round(o) for o in session.history],
    }
    output_file = output_dir / "result.json"
    output_file.write_text(json.dumps(result, indent=2))
    log.info(f"Result saved to {output_file}")

    params_file = output_dir / "params.json"
    params = {
        "timestamp": start_datetime,
        "request": args.request,
        "style": args.style,
        "agents": [agent.id for agent in agents],
        "orchestrator_model": orchestrator_agent.model_name,
        "iterations": args.iterations,
        "custom": args.custom,
        "verbose": args.verbose,
        "debug": args.debug,
        "runtime_seconds": elapsed_time,
    }
    params_file.write_text(json.dumps(params, indent=2))
    log.info(f"Parameters saved to {params_file}")

    if winner is None:
        sys.exit(1)
    print(winner.model_dump_json(indent=2))


if __name__ == "__main__":
    asyncio.run(main())
