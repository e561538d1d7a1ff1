"""
Command line entry point: squad selection, transfer advice, differentials, chips,
what-if scenarios and accuracy scoring
"""
import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from data_pipeline.config import DATABASE_PATH
from data_pipeline.database import FPLDatabase
from data_pipeline.forecasts import FormFixtureForecaster, StaticForecastProvider, collect_forecasts
from data_pipeline.pool_loader import (
    forecasts_by_round, load_current_team, load_forecasts, load_hype, load_players, load_realized_points
)
from evaluation.accuracy_scorer import AccuracyScorer, Prediction
from optimization.captain_selector import CaptainSelector
from optimization.chip_strategist import ChipStrategist
from optimization.config import BUDGET, MAX_DIFFERENTIAL_ALERTS, MAX_SUGGESTIONS, OPTIMIZATION_METHOD
from optimization.constraint_handler import PoolEntry, Position, build_pool, format_cost
from optimization.differentials import DifferentialAnalyzer
from optimization.exceptions import InsufficientCandidatesError, OptimizationError
from optimization.team_optimizer import TeamOptimizer
from optimization.transfer_planner import Priority, ReportStatus, TransferPlanner

logger = logging.getLogger(__name__)

POSITION_COLORS = {
    Position.GKP: 'bright_blue',
    Position.DEF: 'green',
    Position.MID: 'yellow',
    Position.FWD: 'red'
}

PRIORITY_COLORS = {
    Priority.HIGH: 'red',
    Priority.MEDIUM: 'yellow',
    Priority.LOW: 'blue'
}


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)]
    )


def load_pool(players_file: str, forecasts_file: str, round_id: int,
              fill_missing: bool = False) -> List[PoolEntry]:
    """
    Load roster and forecasts and pair them for a round

    With fill_missing, players without a forecast for the round are given
    the form/fixture fallback forecast.
    """
    players = load_players(players_file)
    forecasts = load_forecasts(forecasts_file, round_id)
    if fill_missing:
        current = {f.player_id: f.predicted_points for f in forecasts
                   if f.round_id == round_id and f.predicted_points is not None}
        collected = collect_forecasts(
            StaticForecastProvider({round_id: current}), players, round_id,
            fallback=FormFixtureForecaster()
        )
        return build_pool(players, collected, round_id)
    return build_pool(players, forecasts, round_id)


def print_lineup(console: Console, title: str, squad, lineup):
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("Pos", width=4)
    table.add_column("Player", style="cyan")
    table.add_column("Team")
    table.add_column("Price", justify="right")
    table.add_column("Pred", justify="right")
    table.add_column("Role")

    for entry in list(lineup.starters) + list(lineup.bench):
        if entry.player_id == lineup.captain_id:
            role = "[bold]C[/bold]"
        elif entry.player_id == lineup.vice_captain_id:
            role = "VC"
        elif entry in lineup.bench:
            role = "[dim]bench[/dim]"
        else:
            role = ""
        predicted = f"{entry.points:.1f}" if entry.is_scored else f"[dim]{entry.forecast_status.value}[/dim]"
        table.add_row(
            f"[{POSITION_COLORS[entry.position]}]{entry.position.value}[/{POSITION_COLORS[entry.position]}]",
            entry.name,
            entry.player.team_name or str(entry.team_id),
            format_cost(entry.now_cost),
            predicted,
            role
        )
    console.print(table)

    summary = (f"Formation: {lineup.formation}   Predicted: {lineup.predicted_points:.1f} pts   "
               f"Rating: {lineup.team_rating}/100")
    if squad is not None:
        summary += f"\nCost: {format_cost(squad.total_cost)}   Bank: {format_cost(squad.bank)}"
    console.print(Panel(summary, box=box.ROUNDED))


def print_report(console: Console, report, bank: float, free_transfers: int):
    console.print(f"\n[bold cyan]TRANSFER SUGGESTIONS[/bold cyan]  [dim]bank £{bank:.1f}M, "
                  f"{free_transfers} free transfer{'s' if free_transfers != 1 else ''}[/dim]")

    if report.status is ReportStatus.NO_TRANSFERS_NEEDED:
        console.print(Panel("[green]No transfers needed: no legal swap improves the squad[/green]",
                            box=box.ROUNDED))
        return
    if report.status is ReportStatus.NO_LEGAL_SWAPS:
        console.print(Panel("[yellow]No legal swap available within bank and team limits[/yellow]",
                            box=box.ROUNDED))
        return

    table = Table(box=box.SIMPLE)
    table.add_column("#", width=3)
    table.add_column("Out", style="red")
    table.add_column("In", style="green")
    table.add_column("Impact", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Priority")
    for i, s in enumerate(report.suggestions, 1):
        color = PRIORITY_COLORS[s.priority]
        table.add_row(
            str(i), s.player_out.name, s.player_in.name,
            f"+{s.points_impact:.1f}", format_cost(s.cost_difference),
            f"[{color}]{s.priority.value}[/{color}]"
        )
    console.print(table)
    for caveat in report.caveats:
        console.print(f"[yellow]⚠ {caveat}[/yellow]")


def parse_swaps(values: Sequence[str]) -> List[Tuple[int, int]]:
    swaps = []
    for value in values or []:
        try:
            out_id, in_id = value.split(':')
            swaps.append((int(out_id), int(in_id)))
        except ValueError:
            raise argparse.ArgumentTypeError(f"Swap must look like OUT_ID:IN_ID, got {value!r}")
    return swaps


def cmd_select(args, console: Console) -> int:
    pool = load_pool(args.players, args.forecasts, args.round, args.fill_missing)
    optimizer = TeamOptimizer(method=args.method)
    result = optimizer.optimize(pool, args.budget)

    console.print(f"\n[bold cyan]OPTIMAL SQUAD - GW{args.round}[/bold cyan]  [dim]{result.method}[/dim]")
    print_lineup(console, "Squad", result.squad, result.lineup)

    if args.db:
        with FPLDatabase(args.db) as db:
            # Unscored players are stored without a value so scoring can list them
            db.save_predictions(
                Prediction(e.player_id, args.round, e.predicted_points) for e in pool
            )
            db.save_selected_squad(args.round, result.squad, result.lineup, result.method)
        console.print(f"[dim]Saved to {args.db}[/dim]")
    return 0


def cmd_suggest(args, console: Console) -> int:
    pool = load_pool(args.players, args.forecasts, args.round, args.fill_missing)
    team = load_current_team(args.team)
    pool_by_id = {e.player_id: e for e in pool}
    missing = [pid for pid in team.player_ids if pid not in pool_by_id]
    if missing:
        raise ValueError(f"Current team players not in roster: {missing}")
    current = [pool_by_id[pid] for pid in team.player_ids]

    planner = TransferPlanner()
    report = planner.suggest_transfers(current, pool, team.bank, team.free_transfers, args.max_suggestions)
    print_report(console, report, team.bank, team.free_transfers)

    optimal = TeamOptimizer(method=args.method).select_squad(pool, args.budget)
    comparison = planner.compare_to_optimal(current, optimal)
    console.print(Panel(
        f"Current lineup: {comparison.current_points:.1f} pts\n"
        f"Optimal lineup: {comparison.optimal_points:.1f} pts\n"
        f"Gap: {comparison.points_gap:.1f} pts   Performance: {comparison.performance_pct}%",
        title="Team comparison", box=box.ROUNDED
    ))

    if args.db:
        with FPLDatabase(args.db) as db:
            db.save_transfer_suggestions(team.user_id, args.round, report)
    return 0


def cmd_whatif(args, console: Console) -> int:
    players = load_players(args.players)
    team = load_current_team(args.team)
    grouped = forecasts_by_round(load_forecasts(args.forecasts))
    rounds = args.rounds or sorted(grouped)
    pools = {r: build_pool(players, grouped.get(r, []), r) for r in rounds}

    result = TransferPlanner().evaluate_scenario(
        team.player_ids, parse_swaps(args.swap), pools, rounds, team.bank
    )

    table = Table(title="What-if projection", box=box.SIMPLE)
    table.add_column("GW")
    table.add_column("Current", justify="right")
    table.add_column("Scenario", justify="right")
    table.add_column("Change", justify="right")
    for r in result.rounds:
        change = f"[green]+{r.delta:.1f}[/green]" if r.delta > 0 else f"[red]{r.delta:.1f}[/red]"
        table.add_row(str(r.round_id), f"{r.baseline_points:.1f}", f"{r.projected_points:.1f}", change)
    table.add_row("Total", f"{result.total_baseline:.1f}", f"{result.total_projected:.1f}", f"{result.delta:+.1f}")
    console.print(table)

    if not result.is_legal:
        console.print("[red]Scenario squad breaks the rules:[/red]")
        for violation in result.violations:
            console.print(f"  • {violation}")
        return 1
    return 0


def cmd_differentials(args, console: Console) -> int:
    pool = load_pool(args.players, args.forecasts, args.round, args.fill_missing)
    hype = load_hype(args.hype) if args.hype else None
    alerts = DifferentialAnalyzer(args.max_alerts).analyze(pool, hype)

    table = Table(title=f"Differentials - GW{args.round}", box=box.SIMPLE)
    table.add_column("Player", style="bold")
    table.add_column("Type")
    table.add_column("Own %", justify="right")
    table.add_column("Pred", justify="right")
    table.add_column("Conf", justify="right")
    table.add_column("Why")
    for alert in alerts:
        table.add_row(alert.entry.name, alert.alert_type.value.replace('_', ' '),
                      f"{alert.ownership_percent:.1f}", f"{alert.predicted_points:.1f}",
                      f"{alert.confidence:.0f}", alert.reason)
    console.print(table if alerts else "[dim]No differential alerts this round[/dim]")

    pick = CaptainSelector().differential(pool)
    if pick is not None:
        console.print(f"Differential captain: [bold]{pick.name}[/bold] "
                      f"({pick.points:.1f} pts, {pick.player.selected_by_percent:.1f}% owned)")

    if args.db:
        with FPLDatabase(args.db) as db:
            db.save_differential_alerts(args.round, alerts)
    return 0


def cmd_chips(args, console: Console) -> int:
    pool = load_pool(args.players, args.forecasts, args.round, args.fill_missing)
    team = load_current_team(args.team)
    pool_by_id = {e.player_id: e for e in pool}
    missing = [pid for pid in team.player_ids if pid not in pool_by_id]
    if missing:
        raise ValueError(f"Current team players not in roster: {missing}")
    current = [pool_by_id[pid] for pid in team.player_ids]
    chips = args.chips if args.chips is not None else team.chips_available

    report = ChipStrategist(method=args.method).analyze(current, pool, team.bank, chips)

    table = Table(title=f"Chip analysis - GW{args.round}", box=box.SIMPLE)
    table.add_column("Chip", style="bold")
    table.add_column("Gain", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Advice")
    table.add_column("Analysis")
    for chip in report.evaluations:
        advice = "[green]use[/green]" if chip.use else "[dim]save[/dim]"
        table.add_row(chip.chip_name.replace('_', ' '), f"{chip.expected_gain:.1f}",
                      f"{chip.success_percentage}%", advice, chip.reason)
    console.print(table if report.evaluations else "[dim]No chips available[/dim]")

    if report.best is not None:
        line = f"Play [bold]{report.best.chip_name.replace('_', ' ')}[/bold] this gameweek"
        if report.alternatives:
            line += f" (alternatives: {', '.join(report.alternatives)})"
        console.print(line)

    if args.db:
        with FPLDatabase(args.db) as db:
            db.save_chip_analysis(team.user_id, args.round, report)
    return 0


def cmd_score(args, console: Console) -> int:
    realized = load_realized_points(args.results)
    with FPLDatabase(args.db) as db:
        predictions = db.load_predictions(args.round)
        if not predictions:
            console.print(f"[yellow]No stored predictions for GW{args.round}[/yellow]")
            return 1
        selected = db.load_selected_squad(args.round)
        score = AccuracyScorer().score_round(args.round, predictions, realized, selected)
        db.save_round_score(score)

    record = score.record
    table = Table(title=f"Prediction accuracy - GW{args.round}", box=box.SIMPLE)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Players analyzed", str(record.players_analyzed))
    table.add_row("Unscored forecasts", str(len(score.unscored_player_ids)))
    table.add_row("Correct (within 2 pts)", str(record.correct_predictions))
    table.add_row("Predicted total", f"{record.total_predicted_points:.1f}")
    table.add_row("Actual total", f"{record.total_actual_points:.1f}")
    table.add_row("Mean absolute error", f"{record.mean_absolute_error:.2f}")
    table.add_row("Accuracy", f"{record.accuracy_percentage:.1f}%")
    if score.lineup_score is not None:
        table.add_row("Selected XI predicted", f"{score.lineup_score.predicted_points:.1f}")
        table.add_row("Selected XI actual", f"{score.lineup_score.actual_points:.1f}")
    console.print(table)
    return 0


def cmd_history(args, console: Console) -> int:
    with FPLDatabase(args.db) as db:
        history = db.load_accuracy_history()

    if not len(history):
        console.print("[dim]No scored rounds yet[/dim]")
        return 0

    table = Table(title="Accuracy history", box=box.SIMPLE)
    table.add_column("GW")
    table.add_column("Players", justify="right")
    table.add_column("Correct", justify="right")
    table.add_column("MAE", justify="right")
    table.add_column("Accuracy", justify="right")
    for round_id, record in history.items():
        table.add_row(str(round_id), str(record.players_analyzed), str(record.correct_predictions),
                      f"{record.mean_absolute_error:.2f}", f"{record.accuracy_percentage:.1f}%")
    console.print(table)

    summary = history.summary()
    console.print(Panel(
        f"Rounds: {summary.rounds}   Average accuracy: {summary.average_accuracy:.1f}%   "
        f"Average error: {summary.average_error:.2f}   Correct rate: {summary.correct_rate:.1f}%",
        box=box.ROUNDED
    ))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='fpl-advisor', description='FPL gameweek advisor')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    def add_pool_arguments(sub):
        sub.add_argument('--players', '-p', required=True, help='Roster CSV')
        sub.add_argument('--forecasts', '-f', required=True, help='Forecasts CSV')
        sub.add_argument('--round', '-gw', type=int, required=True, help='Gameweek to plan for')
        sub.add_argument('--budget', type=float, default=BUDGET, help='Budget cap in £M')
        sub.add_argument('--method', '-m', choices=sorted(TeamOptimizer.SELECTORS),
                         default=OPTIMIZATION_METHOD, help='Squad selection method')
        sub.add_argument('--fill-missing', action='store_true',
                         help='Use the form/fixture forecast for players without one')

    select = subparsers.add_parser('select', help='Select the optimal squad and lineup')
    add_pool_arguments(select)
    select.add_argument('--db', help='Store predictions and the selected squad in this database')
    select.set_defaults(func=cmd_select)

    suggest = subparsers.add_parser('suggest', help='Suggest transfers for a current team')
    add_pool_arguments(suggest)
    suggest.add_argument('--team', '-t', required=True, help='Current team JSON')
    suggest.add_argument('--max-suggestions', type=int, default=MAX_SUGGESTIONS)
    suggest.add_argument('--db', help='Store the suggestions in this database')
    suggest.set_defaults(func=cmd_suggest)

    differentials = subparsers.add_parser('differentials', help='Flag low-ownership picks')
    add_pool_arguments(differentials)
    differentials.add_argument('--hype', help='News hype CSV (hype_score, sentiment, mentions)')
    differentials.add_argument('--max-alerts', type=int, default=MAX_DIFFERENTIAL_ALERTS)
    differentials.add_argument('--db', help='Store the alerts in this database')
    differentials.set_defaults(func=cmd_differentials)

    chips = subparsers.add_parser('chips', help='Evaluate the available chips for a current team')
    add_pool_arguments(chips)
    chips.add_argument('--team', '-t', required=True, help='Current team JSON')
    chips.add_argument('--chips', nargs='*', help='Chips still available (default: from the team file)')
    chips.add_argument('--db', help='Store the chip analysis in this database')
    chips.set_defaults(func=cmd_chips)

    whatif = subparsers.add_parser('whatif', help='Project points for explicit swaps')
    whatif.add_argument('--players', '-p', required=True, help='Roster CSV')
    whatif.add_argument('--forecasts', '-f', required=True, help='Forecasts CSV with a round column')
    whatif.add_argument('--team', '-t', required=True, help='Current team JSON')
    whatif.add_argument('--swap', '-s', action='append', default=[], help='OUT_ID:IN_ID (repeatable)')
    whatif.add_argument('--rounds', type=int, nargs='+', help='Gameweeks to project')
    whatif.set_defaults(func=cmd_whatif)

    score = subparsers.add_parser('score', help='Score stored predictions against results')
    score.add_argument('--round', '-gw', type=int, required=True)
    score.add_argument('--results', '-r', required=True, help='Realized points CSV')
    score.add_argument('--db', default=DATABASE_PATH)
    score.set_defaults(func=cmd_score)

    history = subparsers.add_parser('history', help='Show stored accuracy history')
    history.add_argument('--db', default=DATABASE_PATH)
    history.set_defaults(func=cmd_history)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    console = Console()

    try:
        return args.func(args, console)
    except InsufficientCandidatesError as e:
        console.print(f"[red]Cannot build a squad: not enough {e.position.label}s ({e.reason})[/red]")
        return 1
    except OptimizationError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    except (FileNotFoundError, ValueError, argparse.ArgumentTypeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 2


if __name__ == "__main__":
    sys.exit(main())
