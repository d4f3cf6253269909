from dataclasses import dataclass
from typing import Dict, Optional

import yaml

from pdfcrypt.config import CryptSettings
from pdfcrypt.config.errors import ConfigurationError
from pdfcrypt.config.logging import LogConfig, parse_logging_config


@dataclass
class CLIConfig:
    """
    CLI configuration settings.
    """

    crypt_settings: CryptSettings
    """
    Settings for the security handler, read from the ``crypt`` section.
    See :class:`.CryptSettings`.
    """

    raw_config: dict
    """
    The raw config data parsed into a Python dictionary.
    """


@dataclass(frozen=True)
class CLIRootConfig:
    """
    Config settings that are only relevant to the CLI root and are not exposed
    to subcommands.
    """

    config: CLIConfig
    """
    General CLI config.
    """

    log_config: Dict[Optional[str], LogConfig]
    """
    Per-module logging configuration. The keys in this dictionary are
    module names, the :class:`.LogConfig` values define the logging settings.

    The ``None`` key houses the configuration for the root logger, if any.
    """


def parse_cli_config(yaml_str) -> CLIRootConfig:
    config_dict = yaml.safe_load(yaml_str) or {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Configuration should be a dictionary")
    return CLIRootConfig(
        log_config=parse_logging_config(config_dict.get('logging', {})),
        config=CLIConfig(
            **process_config_dict(config_dict), raw_config=config_dict
        ),
    )


def process_config_dict(config_dict: dict) -> dict:
    crypt_spec = config_dict.get('crypt', {})
    if not isinstance(crypt_spec, dict):
        raise ConfigurationError("'crypt' section should be a dictionary")
    return dict(crypt_settings=CryptSettings.from_config(crypt_spec))
