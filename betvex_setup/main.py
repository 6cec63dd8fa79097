import functools
import random
import sys
import traceback
from pathlib import Path
from typing import Optional

import click
import gevent
import structlog

from betvex_setup import __version__
from betvex_setup.constants import DEFAULT_KEY_COUNT
from betvex_setup.definition import SetupDefinition
from betvex_setup.exceptions import ConfigurationError, SetupError
from betvex_setup.runner import SetupRunner
from betvex_setup.utils import DummyStream
from betvex_setup.utils.configuration.matches import load_matches
from betvex_setup.utils.configuration.settings import load_environment
from betvex_setup.utils.logs import configure_logging, construct_log_file_name

log = structlog.get_logger(__name__)

DEFAULT_DATA_PATH = Path.home().joinpath(".betvex", "setup")


def configure_logging_for_subcommand(log_file_name: Path) -> None:
    click.secho(f"Writing log to {log_file_name}", fg="yellow")
    configure_logging(debug_log_file_path=log_file_name)


def environment_options(func):
    """Decorator for adding '--env-file', '--key-count' and '--data-path' to subcommands."""

    @click.option(
        "--env-file",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="A .env file with account ids and keys. The process environment takes precedence.",
    )
    @click.option(
        "--key-count",
        type=click.IntRange(min=1),
        default=DEFAULT_KEY_COUNT,
        show_default=True,
        help="Number of signing keys per account (<PREFIX>_KEY_1 .. <PREFIX>_KEY_N).",
    )
    @click.option(
        "--data-path",
        default=str(DEFAULT_DATA_PATH),
        type=click.Path(exists=False, dir_okay=True, file_okay=False),
        show_default=True,
    )
    @click.option(
        "--definition",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="A YAML file overriding the default settings.",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


@click.group(invoke_without_command=True, context_settings={"max_content_width": 120})
@click.pass_context
def main(ctx):
    gevent.get_hub().exception_stream = DummyStream()
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command(name="run")
@click.option(
    "--matches",
    "matches_file",
    type=click.Path(dir_okay=False),
    default="matches.json",
    show_default=True,
    help="JSON array of the matches to create.",
)
@click.option("--seed", type=int, default=None, help="Seed for all random choices of the run.")
@click.option(
    "--stake/--no-stake",
    default=None,
    help="Stake VEX before provisioning. [default: from definition, else enabled]",
)
@environment_options
def run(
    matches_file,
    seed,
    stake,
    env_file,
    key_count,
    data_path,
    definition,
):
    """Set up accounts, matches and bets on the betting contract.

    click entrypoint, this dispatches to `run_`.
    """
    data_path = Path(data_path)
    log_file_name = construct_log_file_name("run", data_path)
    configure_logging_for_subcommand(log_file_name)
    run_(
        command="run",
        matches_file=Path(matches_file),
        seed=seed,
        stake=stake,
        env_file=Path(env_file) if env_file else None,
        key_count=key_count,
        definition_file=Path(definition) if definition else None,
    )


@main.command(name="preflight")
@environment_options
def preflight(env_file, key_count, data_path, definition):
    """Only check the balances of the main account."""
    data_path = Path(data_path)
    log_file_name = construct_log_file_name("preflight", data_path)
    configure_logging_for_subcommand(log_file_name)
    run_(
        command="preflight",
        matches_file=None,
        seed=None,
        stake=None,
        env_file=Path(env_file) if env_file else None,
        key_count=key_count,
        definition_file=Path(definition) if definition else None,
    )


@main.command(name="version")
def version():
    """Print the version of betvex-setup."""
    click.echo(f"betvex-setup {__version__}")


def build_runner(
    matches_file: Optional[Path],
    seed: Optional[int],
    stake: Optional[bool],
    env_file: Optional[Path],
    key_count: int,
    definition_file: Optional[Path],
) -> SetupRunner:
    environment = load_environment(env_file=env_file, key_count=key_count)
    overrides = {"preflight": {"stake": stake}} if stake is not None else None
    definition = SetupDefinition(definition_file, environment, overrides=overrides)
    matches = load_matches(matches_file) if matches_file else []
    if seed is not None:
        log.info("Using random seed", seed=seed)
    return SetupRunner(
        environment=environment,
        definition=definition,
        matches=matches,
        rng=random.Random(seed),
    )


def run_(
    command: str,
    matches_file: Optional[Path],
    seed: Optional[int],
    stake: Optional[bool],
    env_file: Optional[Path],
    key_count: int,
    definition_file: Optional[Path],
) -> None:
    """Execute `command` (``run`` or ``preflight``).

    Calls :func:`sys.exit` when done, with the following status codes:

        Exit code 1x
        A remote call, a precondition or a phase failed. The main account may
        be short of funds, or the network rejected a required operation.

        Exit code 2x
        There was an error when loading the credentials, the definition file
        or the match fixture. No remote call was made.
    """
    log.info("betvex-setup version", version=__version__, command=command)
    try:
        runner = build_runner(
            matches_file=matches_file,
            seed=seed,
            stake=stake,
            env_file=env_file,
            key_count=key_count,
            definition_file=definition_file,
        )
        if command == "preflight":
            runner.run_preflight()
        else:
            runner.run_setup()
    except ConfigurationError as ex:
        log.error("Run finished", result="configuration error", message=str(ex))
        click.secho(str(ex), fg="red", err=True)
        sys.exit(ex.exit_code)
    except SetupError as ex:
        log.error("Run finished", result="setup error", message=str(ex))
        click.secho(str(ex), fg="red", err=True)
        sys.exit(ex.exit_code)
    except Exception as ex:
        log.exception("Exception while running setup")
        if hasattr(ex, "exit_code"):
            exit_code = ex.exit_code  # type: ignore
        else:
            exit_code = 1
        click.secho(traceback.format_exc(), fg="red", err=True)
        sys.exit(exit_code)
    else:
        log.info("Run finished", result="success")
        sys.exit(0)
