#!/usr/bin/env python3
"""
DAO Mirror Simulation CLI

Runs the differential harness against the in-process oracle and prints the
per-operation scoreboard.

Usage:
    daomirror-sim [--config FILE] [--runs N] [--seed N] [--stakers N] [--log-level LEVEL]
"""

import json
from typing import Optional

import click
from rich.console import Console

from .. import __version__
from ..config import load_config
from ..constants import DAOMIRROR_CONFIG_PATH
from ..exceptions import (
    ConfigurationError,
    InvariantViolationError,
    MismatchError,
    ModelDriftError,
)
from ..harness import DifferentialRunner, LocalOracle
from ..logger import get_logger, set_log_level

logger = get_logger(__name__)


@click.command("daomirror-sim")
@click.version_option(version=__version__, prog_name="daomirror-sim")
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML file with [dao] and [harness] sections (default: DAOMIRROR_CONFIG_PATH)"
)
@click.option("--runs", "-n", type=int, default=None, help="Number of iterations")
@click.option("--seed", "-s", type=int, default=None, help="RNG seed for a reproducible run")
@click.option("--stakers", type=int, default=None, help="Number of simulated stakers")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL"
)
@click.option("--json", "as_json", is_flag=True, help="Print the scoreboard as JSON")
def main(
    config_path: Optional[str],
    runs: Optional[int],
    seed: Optional[int],
    stakers: Optional[int],
    log_level: Optional[str],
    as_json: bool,
):
    """Run a randomized differential simulation.

    Exits with status 1 if the oracle and the mirror disagree.

    Examples:

        daomirror-sim --runs 2000 --seed 7

        daomirror-sim --config daomirror.toml --log-level WARNING
    """
    if log_level:
        set_log_level(log_level)

    try:
        config = load_config(config_path or DAOMIRROR_CONFIG_PATH)
        if runs is not None:
            config.harness.num_runs = runs
        if seed is not None:
            config.harness.seed = seed
        if stakers is not None:
            config.harness.num_stakers = stakers
        config.validate()
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    runner = DifferentialRunner(LocalOracle(config.dao), config)
    try:
        score = runner.run()
    except (MismatchError, ModelDriftError, InvariantViolationError) as e:
        logger.error(f"MISMATCH after {runner.score.operations} operations: {e}")
        click.echo(click.style(f"✗ Simulation failed: {e}", fg="red"), err=True)
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps(score.to_dict(), indent=2))
    else:
        score.render(Console())
        click.echo(click.style("✓ Oracle and mirror agree", fg="green"))


if __name__ == "__main__":
    main()
