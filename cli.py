from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from config.settings import get_settings
from tradejournal.utils.logging import setup_logging
from tradejournal.utils.exceptions import ConfigError, InvalidCaseDataError, InvalidScenarioError
from tradejournal.calibration import REFERENCE_CASES, CalibrationSearch, HybridConstantOptimizer, load_cases
from tradejournal.api import run_api_server
from tradejournal.data.storage.sqlite_client import JournalDatabase
from tradejournal.growth import GrowthModel, build_policy
from tradejournal.models import CalibrationCase, Scenario

app = typer.Typer(no_args_is_help=True)


def _fmt_pct(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}%"


def _fmt_money(value: Optional[float]) -> str:
    return "N/A" if value is None else f"${value:,.2f}"


def _case_from_options(
    capital: Optional[float],
    trades: Optional[int],
    accuracy: Optional[float],
    rr: Optional[float],
    expected: Optional[float],
) -> CalibrationCase:
    missing = [
        flag
        for flag, value in (
            ("--capital", capital),
            ("--trades", trades),
            ("--accuracy", accuracy),
            ("--rr", rr),
            ("--expected", expected),
        )
        if value is None
    ]
    if missing:
        raise InvalidCaseDataError(f"missing {', '.join(missing)} (or pass --cases FILE)")

    scenario = Scenario(capital=capital, total_trades=trades, accuracy=accuracy, risk_reward_ratio=rr)
    return CalibrationCase(name="command line", scenario=scenario, expected_profit=expected)


def _load_case_set(cases_file: Optional[Path]) -> list[CalibrationCase]:
    if cases_file is None:
        return list(REFERENCE_CASES)
    return load_cases(cases_file)


@app.command()
def init() -> None:
    """Create the data directory and the journal database schema."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, settings.database.log_dir)

        settings.database.db_dir.mkdir(parents=True, exist_ok=True)
        typer.echo(f"Created directory: {settings.database.db_dir}")
        typer.echo(f"Created directory: {settings.database.log_dir}")

        with JournalDatabase(settings.database.sqlite_path) as database:
            database.initialize_schema()
            typer.echo(f"Initialized SQLite schema at {settings.database.sqlite_path}")

        typer.echo("Trade journal initialized successfully")
        logger.info("Trade journal directories and database initialized")

    except Exception as e:
        typer.echo(f"Initialization failed: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def project(
    capital: float = typer.Option(..., help="Starting capital"),
    trades: int = typer.Option(..., help="Number of trades to compound over"),
    accuracy: float = typer.Option(..., help="Win rate in percent (0-100)"),
    rr: float = typer.Option(..., help="Reward-to-risk ratio (R in 1:R)"),
    fraction: Optional[float] = typer.Option(None, help="Fraction of full Kelly; default uses the configured policy"),
    policy: Optional[str] = typer.Option(None, help="calibrated, initial, adaptive or constant"),
) -> None:
    """Project the target profit of a trading scenario."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, None)

        policy_name = policy or settings.growth.default_policy
        model = GrowthModel(build_policy(policy_name, settings.growth.constant_fraction))

        scenario = Scenario(capital=capital, total_trades=trades, accuracy=accuracy, risk_reward_ratio=rr)
        result = model.project(scenario, fraction)
        params = scenario.kelly_parameters

        typer.echo("\nGrowth Projection:")
        typer.echo("=" * 60)
        typer.echo(f"Scenario: {scenario.describe()}")
        typer.echo(f"Kelly: {params.kelly:.4f}")
        typer.echo(f"Expected value per unit risked: {params.expected_value:+.4f}")

        if not result.has_edge:
            typer.echo("No edge: the system does not grow capital")
        else:
            source = "given" if fraction is not None else f"{policy_name} policy"
            typer.echo(f"Kelly fraction: {result.kelly_fraction:.4f} ({source})")
            typer.echo(f"Per-trade return: {result.per_trade_return:.4%}")

        typer.echo(f"Final balance: {_fmt_money(result.final_balance)}")
        typer.echo(f"Target profit: {_fmt_money(result.profit)}")

    except (InvalidScenarioError, ValueError) as e:
        typer.echo(f"Invalid input: {e}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Project command failed")
        raise typer.Exit(code=1)


@app.command()
def scan(
    capital: Optional[float] = typer.Option(None, help="Starting capital"),
    trades: Optional[int] = typer.Option(None, help="Number of trades"),
    accuracy: Optional[float] = typer.Option(None, help="Win rate in percent"),
    rr: Optional[float] = typer.Option(None, help="Reward-to-risk ratio"),
    expected: Optional[float] = typer.Option(None, help="Reference profit for the scenario"),
    cases_file: Optional[Path] = typer.Option(None, "--cases", help="JSON/YAML case file (first case is scanned)"),
    step: Optional[float] = typer.Option(None, help="Distance between scanned fractions"),
    radius: Optional[float] = typer.Option(None, help="Scan half-width around the implied fraction"),
    top_k: Optional[int] = typer.Option(None, help="Number of fractions to show"),
) -> None:
    """Scan kelly fractions around the value implied by a reference profit."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, None)

        if cases_file is not None:
            cases = load_cases(cases_file)
            if not cases:
                raise InvalidCaseDataError("no cases to scan", str(cases_file))
            case = cases[0]
        else:
            case = _case_from_options(capital, trades, accuracy, rr, expected)

        search = CalibrationSearch(max_workers=settings.calibration.max_workers)
        report = search.local_scan(
            case,
            step=step if step is not None else settings.calibration.scan_step,
            radius=radius if radius is not None else settings.calibration.scan_radius,
            top_k=top_k if top_k is not None else settings.calibration.top_k,
        )

        typer.echo(f"\nLocal Scan: {case.name}")
        typer.echo("=" * 80)
        typer.echo(f"Scenario: {case.scenario.describe()}")
        typer.echo(f"Expected profit: {_fmt_money(case.expected_profit)}")
        typer.echo(f"Kelly: {report.kelly:.4f}")

        if report.skipped:
            typer.echo(f"Status: {report.reason}")
            return

        typer.echo(f"Implied per-trade return: {report.implied_per_trade_return:.6f}")
        typer.echo(f"Implied kelly fraction: {report.implied_fraction:.6f}")

        if not report.ranking:
            typer.echo("No scanned fraction falls inside (0, 1]")
            return

        typer.echo("")
        typer.echo(f"{'Rank':<6} | {'Fraction':<10} | {'Profit':<22} | {'Abs Error':<18} | {'Rel Error':<10}")
        typer.echo("=" * 80)
        for rank, candidate in enumerate(report.ranking, start=1):
            fraction_str = f"{candidate.parameters['kelly_fraction']:.4f}"
            typer.echo(
                f"{rank:<6} | {fraction_str:<10} | {_fmt_money(candidate.profit):<22} | "
                f"{_fmt_money(candidate.absolute_error):<18} | {_fmt_pct(candidate.relative_error_pct):<10}"
            )

    except (InvalidScenarioError, InvalidCaseDataError, ValueError) as e:
        typer.echo(f"Invalid input: {e}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Scan command failed")
        raise typer.Exit(code=1)


@app.command()
def compare(
    cases_file: Optional[Path] = typer.Option(None, "--cases", help="JSON/YAML case file (default: reference cases)"),
) -> None:
    """Compare the built-in return formulas case by case."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, None)

        cases = _load_case_set(cases_file)
        report = CalibrationSearch(max_workers=settings.calibration.max_workers).compare(cases)

        if not report.rows:
            typer.echo("No calibration cases to compare")
            return

        for row in report.rows:
            typer.echo(f"\nCase: {row.case_name} (expected {_fmt_money(row.expected_profit)})")
            typer.echo("=" * 90)

            if row.status != "scored":
                typer.echo(f"Status: {row.status}")
                continue

            typer.echo(f"{'Formula':<24} | {'Profit':<24} | {'Abs Error':<22} | {'Rel Error':<10}")
            typer.echo("-" * 90)
            for outcome in row.outcomes:
                marker = " *" if outcome.formula == row.winner else ""
                typer.echo(
                    f"{outcome.formula:<24} | {_fmt_money(outcome.profit):<24} | "
                    f"{_fmt_money(outcome.absolute_error):<22} | {_fmt_pct(outcome.relative_error_pct)}{marker}"
                )

        typer.echo("\nSummary:")
        typer.echo("=" * 60)
        typer.echo(f"{'Formula':<24} | {'Wins':<6} | {'Mean Rel Error':<14}")
        typer.echo("-" * 60)
        for name in report.formulas:
            typer.echo(
                f"{name:<24} | {report.win_counts[name]:<6} | "
                f"{_fmt_pct(report.mean_relative_error_pct[name]):<14}"
            )

        if report.best_formula is None:
            typer.echo("\nNo scorable cases: every case was skipped")
        else:
            typer.echo(f"\nBest formula: {report.best_formula}")

    except InvalidCaseDataError as e:
        typer.echo(f"Invalid input: {e}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Compare command failed")
        raise typer.Exit(code=1)


@app.command()
def optimize(
    cases_file: Optional[Path] = typer.Option(None, "--cases", help="JSON/YAML case file (default: reference cases)"),
    random_iterations: Optional[int] = typer.Option(None, help="Random search samples"),
    gradient_iterations: Optional[int] = typer.Option(None, help="Gradient descent steps"),
    learning_rate: Optional[float] = typer.Option(None, help="Gradient descent learning rate"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
) -> None:
    """Tune the hybrid power-law constants against the case set."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, None)
        calibration = settings.calibration

        cases = _load_case_set(cases_file)
        optimizer = HybridConstantOptimizer(cases)
        result = optimizer.optimize(
            random_iterations=random_iterations if random_iterations is not None else calibration.random_iterations,
            gradient_iterations=gradient_iterations if gradient_iterations is not None else calibration.gradient_iterations,
            learning_rate=learning_rate if learning_rate is not None else calibration.learning_rate,
            seed=seed if seed is not None else calibration.seed,
        )

        if result.scored_cases == 0:
            typer.echo("No cases with a reference profit and an edge; nothing to optimize")
            return

        typer.echo("\nHybrid Constant Optimization:")
        typer.echo("=" * 70)
        typer.echo(f"Scored cases: {result.scored_cases}")
        typer.echo(f"Baseline error: {result.baseline_error:.2%}")
        typer.echo(f"Random search error: {result.random_search_error:.2%}")
        typer.echo(f"Gradient descent error: {result.gradient_descent_error:.2%}")
        typer.echo(f"Best error: {result.best_error:.2%}")
        typer.echo("")

        typer.echo(f"{'Tier':<6} | {'Kelly Fraction':<15} | {'Scaling':<10} | {'Acc Exp':<10} | {'RR Exp':<10}")
        typer.echo("-" * 70)
        for tier_name in ("low", "mid", "high"):
            tier = getattr(result.best, tier_name)
            typer.echo(
                f"{tier_name:<6} | {tier.kelly_fraction:<15.4f} | {tier.scaling_factor:<10.4f} | "
                f"{tier.accuracy_exponent:<10.4f} | {tier.rr_exponent:<10.4f}"
            )

        if not result.improved:
            typer.echo("\nNo improvement over the baseline constants")

    except InvalidCaseDataError as e:
        typer.echo(f"Invalid input: {e}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Optimize command failed")
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default from settings)"),
    port: Optional[int] = typer.Option(None, help="Port (default from settings)"),
) -> None:
    """Run the journal API server."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, settings.database.log_dir)

        overrides = {
            key: value for key, value in (("host", host), ("port", port)) if value is not None
        }
        if overrides:
            settings = settings.model_copy(
                update={"server": settings.server.model_copy(update=overrides)}
            )

        run_api_server(settings)

    except ConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Server failed: {e}", err=True)
        logger.exception("Serve command failed")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
