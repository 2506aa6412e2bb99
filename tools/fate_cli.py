#!/usr/bin/env python3
"""
FATE'S ECHO — Analysis CLI

Usage:
    python -m tools.fate_cli simulate                 # 1,000,000 games (FATE_DEFAULT_GAMES)
    python -m tools.fate_cli simulate 200000 --workers 4 --multiplier 1.85
    python -m tools.fate_cli simulate 50000 --json
    python -m tools.fate_cli preview 0x1f...          # one game, round by round
    python -m tools.fate_cli card 12345 0             # one card draw
    python -m tools.fate_cli verify                   # known seed → card vectors
"""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from config.analysis_schema import AnalysisOptions, PayoutRule
from config.settings import LogConfig, PayoutConfig, SimulationConfig
from sim_engine.fate.cards import get_card
from sim_engine.fate.errors import FateEngineError
from sim_engine.fate.game import simulate_game
from sim_engine.fate.montecarlo import MonteCarloAggregator, house_profit_trajectory
from sim_engine.fate.seed import derive_card_id, parse_seed, verify_vectors
from sim_engine.fate.stats import analyze
from tools.fate_report import render_preview, render_report

logger = logging.getLogger("fateecho.cli")
console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fate's Echo reproduction & payout analysis")
    parser.add_argument("--log-level", default=LogConfig.LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Monte Carlo win-rate and house-edge analysis")
    sim.add_argument("num_games", type=int, nargs="?", default=SimulationConfig.DEFAULT_GAMES)
    sim.add_argument("--workers", type=int, default=SimulationConfig.WORKERS)
    sim.add_argument("--multiplier", type=float, default=PayoutConfig.WIN_MULTIPLIER,
                     help="Win payout multiplier")
    sim.add_argument("--draw-mult", type=float, default=PayoutConfig.DRAW_MULTIPLIER)
    sim.add_argument("--loss-mult", type=float, default=PayoutConfig.LOSS_MULTIPLIER)
    sim.add_argument("--bankroll", type=float, default=PayoutConfig.HOUSE_BANKROLL,
                     help="House bankroll for the ruin estimate")
    sim.add_argument("--no-trajectory", action="store_true",
                     help="Skip the house profit trajectory replay")
    sim.add_argument("--json", action="store_true", help="Print the report as JSON")

    prev = sub.add_parser("preview", help="Reproduce one game from its VRF seed")
    prev.add_argument("seed", help="Decimal or 0x-hex uint256")
    prev.add_argument("--json", action="store_true")

    card = sub.add_parser("card", help="Derive a single card id")
    card.add_argument("seed")
    card.add_argument("nonce")

    sub.add_parser("verify", help="Check known seed → card vectors")
    return parser


def cmd_simulate(args) -> int:
    try:
        options = AnalysisOptions(
            payout=PayoutRule(win_multiplier=args.multiplier,
                              draw_multiplier=args.draw_mult,
                              loss_multiplier=args.loss_mult),
            bankroll=args.bankroll,
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid payout options:[/red] {e}")
        return 2

    mc = MonteCarloAggregator(workers=args.workers)
    if args.json:
        counters = mc.run(args.num_games)
    else:
        console.print(f"[cyan]Simulating {args.num_games:,} games "
                      f"(keccak256 contract-matching, {mc.workers} worker(s))...[/cyan]")
        with Progress(TextColumn("  ⏳ {task.description}"), BarColumn(),
                      TextColumn("{task.completed:,}/{task.total:,}"), TimeElapsedColumn(),
                      console=console, transient=True) as progress:
            task = progress.add_task("Simulating", total=args.num_games)

            def _progress(done, total):
                progress.update(task, completed=done)

            counters = mc.run(args.num_games, progress_cb=_progress)

    trajectory = []
    if not args.no_trajectory and options.trajectory_bets:
        # Fresh seeds that follow the main sample
        trajectory = house_profit_trajectory(
            counters.end_index, options.trajectory_bets, options.trajectory_bet_size,
            options.payout, options.trajectory_checkpoints)

    report = analyze(counters, options, trajectory)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        render_report(report, console, elapsed=mc.last_duration)
    return 0


def cmd_preview(args) -> int:
    seed = parse_seed(args.seed)
    result = simulate_game(seed)
    if args.json:
        print(json.dumps({"seed": str(seed), **result.to_dict()}, indent=2))
    else:
        render_preview(seed, result, console)
    return 0


def cmd_card(args) -> int:
    seed = parse_seed(args.seed)
    nonce = parse_seed(args.nonce)
    card = get_card(derive_card_id(seed, nonce))
    print(json.dumps({"seed": str(seed), "nonce": nonce, **card.to_dict()}, indent=2))
    return 0


def cmd_verify(args) -> int:
    n = verify_vectors()
    console.print(f"[green]✅ {n} seed vectors match the contract arithmetic[/green]")
    return 0


COMMANDS = {
    "simulate": cmd_simulate,
    "preview": cmd_preview,
    "card": cmd_card,
    "verify": cmd_verify,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    LogConfig.setup(args.log_level)
    try:
        return COMMANDS[args.command](args)
    except FateEngineError as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]❌ {type(e).__name__}: {e}[/red]")
        return 2


if __name__ == "__main__":
    sys.exit(main())
