"""
Command line entrypoint for bastion.
"""

import logging
import sys
from typing import Optional

import click
from botocore.exceptions import BotoCoreError, ClientError

from . import __version__
from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import BastionError, ConfigError
from .orchestrator import run

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "ignore_unknown_options": True,
    "allow_interspersed_args": False,
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@click.command(context_settings=CONTEXT_SETTINGS)
@click.option("-m", "--memory", "memory_gb", type=float, help="Container memory limit in GB")
@click.option("-c", "--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True,
              help="Configuration file (Jinja2-templated YAML)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(__version__)
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def main(memory_gb: Optional[float], config_path: str, verbose: bool, command: tuple):
    """
    Launch a temporary bastion, tunnel to the service's database and Redis,
    and run the latest service image locally against them.

    Any trailing COMMAND is passed to the container's entrypoint.
    """
    _setup_logging(verbose)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    try:
        exit_code = run(config, memory_gb=memory_gb, args=list(command))
    except BastionError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except (ClientError, BotoCoreError) as e:
        click.echo(f"❌ AWS call failed: {e}", err=True)
        sys.exit(1)
    except OSError as e:
        # e.g. ssh or docker missing from PATH
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
