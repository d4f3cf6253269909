import logging
from typing import Optional, Tuple

import click

from pdfcrypt import __version__
from pdfcrypt.cli._ctx import CLIContext
from pdfcrypt.cli.config import parse_cli_config
from pdfcrypt.cli.runtime import DEFAULT_CONFIG_FILE, logging_setup
from pdfcrypt.config.errors import ConfigurationError
from pdfcrypt.config.logging import LogConfig, parse_logging_config

__all__ = ['cli_root']


def _read_config(config) -> Tuple[Optional[str], Optional[str]]:
    # returns the configuration text and where it came from
    if config is not None:
        try:
            return config.read(), config.name
        except IOError as e:
            raise click.ClickException(
                f"Failed to read configuration: {str(e)}"
            )
    try:
        with open(DEFAULT_CONFIG_FILE, 'r') as f:
            return f.read(), DEFAULT_CONFIG_FILE
    except FileNotFoundError:
        return None, None
    except IOError as e:
        raise click.ClickException(
            f"Failed to read {DEFAULT_CONFIG_FILE}: {str(e)}"
        )


@click.group()
@click.version_option(prog_name='pdfcrypt', version=__version__)
@click.option(
    '--config',
    help=(
        'YAML file to load configuration from '
        f'[default: {DEFAULT_CONFIG_FILE}]'
    ),
    required=False,
    type=click.File('r'),
)
@click.option(
    '--verbose',
    help='Run in verbose mode',
    required=False,
    default=False,
    type=bool,
    is_flag=True,
)
@click.pass_context
def _root(ctx: click.Context, config, verbose):
    config_text, source = _read_config(config)

    ctx_obj: CLIContext = ctx.ensure_object(CLIContext)
    if config_text is None:
        log_config = parse_logging_config({})
    else:
        try:
            cfg = parse_cli_config(config_text)
        except ConfigurationError as e:
            raise click.ClickException(f"Configuration problem: {e.msg}")
        ctx_obj.config = cfg.config
        log_config = cfg.log_config

    if verbose:
        # only the level changes, the output stays as configured
        log_config[None] = LogConfig(
            level=logging.DEBUG, output=log_config[None].output
        )
    logging_setup(log_config, verbose)

    if verbose:
        logging.debug("Running with --verbose")
    if source is not None:
        logging.debug(f"Finished reading configuration from {source}.")
    else:
        logging.debug("There was no configuration to parse.")


cli_root: click.Group = _root
