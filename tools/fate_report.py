"""
FATE'S ECHO — Report Rendering

Human-readable rendering of a StatisticsReport and of a single game
preview, using rich panels and tables.

Usage:
    from tools.fate_report import render_report, render_preview
    render_report(report, console)
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sim_engine.fate.cards import MAX_HP, card_name
from sim_engine.fate.stats import UNDEFINED, StatisticsReport

RULE = "━" * 70


def _fmt(value, spec: str, suffix: str = "") -> str:
    if value is None:
        return UNDEFINED
    return f"{value:{spec}}{suffix}"


def _section(console: Console, title: str):
    console.print(f"\n[bold cyan]{RULE}[/bold cyan]")
    console.print(f"[bold]  {title}[/bold]")
    console.print(f"[bold cyan]{RULE}[/bold cyan]")


def render_report(report: StatisticsReport, console: Console = None,
                  elapsed: float = None) -> None:
    console = console or Console()
    r = report

    _section(console, "📊 CORE OUTCOME STATISTICS")
    console.print(f"  Sample size:      {r.games:,} games")
    if elapsed is not None:
        console.print(f"  Elapsed:          {elapsed:.2f}s")
    console.print(f"  [green]Win rate:[/green]         {r.win_rate*100:.4f}%  ({r.wins:,})")
    console.print(f"  [red]Loss rate:[/red]        {r.lose_rate*100:.4f}%  ({r.losses:,})")
    console.print(f"  [yellow]Draw rate:[/yellow]        {r.draw_rate*100:.4f}%  ({r.draws:,})")
    console.print(f"  95% CI (Wilson):  [{r.ci_low*100:.4f}%, {r.ci_high*100:.4f}%]")
    console.print(f"  Standard error:   ±{r.std_error*100:.4f}%")
    console.print(f"  Longest win streak:  {r.max_win_streak}")
    console.print(f"  Longest loss streak: {r.max_lose_streak}")

    _section(console, "⚔️ COMBAT STATISTICS (per game avg)")
    console.print(f"  Player damage dealt:  {r.avg_damage_dealt:.2f}")
    console.print(f"  Enemy damage dealt:   {r.avg_damage_taken:.2f}")
    console.print(f"  Player heal:          {r.avg_player_heal:.2f} HP")
    console.print(f"  Enemy heal:           {r.avg_enemy_heal:.2f} HP")
    console.print(f"  Player final HP:      {r.avg_player_final_hp:.2f} / {MAX_HP}")
    console.print(f"  Enemy final HP:       {r.avg_enemy_final_hp:.2f} / {MAX_HP}")
    console.print(f"  HP difference:        {r.avg_hp_diff:.4f} (positive = player ahead)")
    console.print(f"  Major arcana:         {r.avg_major_cards:.2f} / 10 cards")
    console.print(f"  Early finish rate:    {r.early_finish_rate*100:.2f}%")
    console.print(f"  Close game rate:      {r.close_game_rate*100:.2f}% (|Δ| ≤ 3)")
    console.print(f"  Blowout rate:         {r.blowout_rate*100:.2f}% (|Δ| ≥ 15)")

    if r.major_impact:
        _section(console, "🃏 MAJOR ARCANA IMPACT")
        table = Table()
        table.add_column("Majors", justify="right", style="cyan")
        table.add_column("Win rate", justify="right")
        table.add_column("Games", justify="right")
        table.add_column("Share", justify="right")
        for row in r.major_impact:
            table.add_row(str(row["majors"]), f"{row['win_rate']*100:.2f}%",
                          f"{row['games']:,}", f"{row['share_pct']:.2f}%")
        console.print(table)

    _section(console, "📈 HP DIFFERENCE DISTRIBUTION")
    for row in r.hp_diff_ranges:
        bar = "█" * round(row["pct"])
        console.print(f"  {row['label']}: {row['pct']:.2f}% {bar}")

    _section(console, "💰 HOUSE EDGE / PAYOUT MULTIPLIER ANALYSIS")
    p = r.payout
    console.print(f"  Win multiplier: {p.win_multiplier}x | Draw: {p.draw_multiplier}x "
                  f"| Lose: {p.loss_multiplier}x")
    console.print(f"  EV per unit stake: {r.expected_value:.6f}")
    console.print(f"  House edge:        {r.house_edge_pct:.4f}%")
    console.print(f"  Fair multiplier (0% edge): {_fmt(r.fair_multiplier, '.6f', 'x')}")

    table = Table(title="Optimal multiplier by target house edge")
    table.add_column("House edge", justify="right", style="cyan")
    table.add_column("Win mult", justify="right")
    table.add_column("EV per 1", justify="right")
    table.add_column("House per 1000", justify="right")
    for row in r.multiplier_table:
        table.add_row(f"{row.edge_pct:g}%", _fmt(row.multiplier, ".4f", "x"),
                      _fmt(row.ev, ".6f"), _fmt(row.house_per_1000, ".2f"))
    console.print(table)

    _section(console, "🎲 VARIANCE & RISK ANALYSIS")
    console.print(f"  Single-bet variance: {r.variance:.6f}")
    console.print(f"  Single-bet std dev:  {r.std_dev:.6f} per unit stake")
    console.print(f"  Volatility:          {_fmt(r.volatility_pct, '.2f', '%')}")
    ruin = _fmt(r.ruin_probability * 100 if r.ruin_probability is not None else None, ".6f", "%")
    console.print(f"  House ruin P ({r.bankroll:g} bankroll, simplified): {ruin}")
    console.print(f"  Player Kelly fraction: "
                  f"{_fmt(r.kelly_fraction * 100 if r.kelly_fraction is not None else None, '.4f', '%')}")
    if r.kelly_fraction is not None:
        if r.kelly_fraction < 0:
            console.print("  [green]Negative Kelly: the payout rule favours the house[/green]")
        else:
            console.print("  [red]Positive Kelly: players have a long-run edge[/red]")

    if r.trajectory:
        _section(console, "📉 HOUSE PROFIT TRAJECTORY")
        for point in r.trajectory:
            console.print(f"  After {point.bets:>6,} bets: house profit = "
                          f"{point.house_profit:.4f} ({point.edge_pct:.2f}%)")

    lines = []
    for row in r.recommendations:
        if row.multiplier is None:
            lines.append(f"{row.edge_pct:g}% edge → {UNDEFINED}")
        else:
            lines.append(f"{row.edge_pct:g}% edge → win multiplier {row.multiplier:.4f}x "
                         f"(EV {row.ev:.6f}, house keeps {row.edge_pct * 10:.0f} per 1000 wagered)")
    verdict = (f"[green]Current {p.win_multiplier}x: house edge {r.house_edge_pct:.4f}%[/green]"
               if r.house_favoured else
               f"[red]Current {p.win_multiplier}x: house is at a {abs(r.house_edge_pct):.2f}% "
               f"disadvantage, lower the multiplier[/red]")
    console.print()
    console.print(Panel(
        f"Win {r.win_rate*100:.4f}% | Draw {r.draw_rate*100:.4f}% | Loss {r.lose_rate*100:.4f}%\n\n"
        + "\n".join(lines) + f"\n\n{verdict}",
        title="📋 Recommendation Summary", border_style="green" if r.house_favoured else "red",
    ))


def render_preview(seed: int, result, console: Console = None) -> None:
    """Round-by-round view of a single game, as the contract will settle it."""
    console = console or Console()
    table = Table(title=f"Seed {seed}")
    table.add_column("Round", justify="right", style="cyan")
    table.add_column("Player card")
    table.add_column("Enemy card")
    table.add_column("Kind")
    table.add_column("P dmg", justify="right")
    table.add_column("E dmg", justify="right")
    table.add_column("P heal", justify="right")
    table.add_column("E heal", justify="right")
    table.add_column("HP", justify="right")
    for rec in result.round_log:
        o = rec.outcome
        table.add_row(
            str(rec.index + 1),
            f"{rec.player_card} {card_name(rec.player_card)}",
            f"{rec.enemy_card} {card_name(rec.enemy_card)}",
            rec.kind,
            str(o.player_damage), str(o.enemy_damage),
            str(o.player_heal), str(o.enemy_heal),
            f"{rec.player_hp}/{rec.enemy_hp}",
        )
    console.print(table)

    style = {"win": "green", "draw": "yellow", "lose": "red"}[result.outcome]
    console.print(Panel(
        f"Outcome: [{style}]{result.outcome.upper()}[/{style}]\n"
        f"Final HP: player {result.player_final_hp} / enemy {result.enemy_final_hp}\n"
        f"Rounds played: {result.rounds}{' (early finish)' if result.early_finish else ''}",
        title="🔮 Game Preview", border_style=style,
    ))
