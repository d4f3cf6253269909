import enum
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from ..misc import get_and_apply
from .errors import ConfigurationError

__all__ = ['LogConfig', 'StdLogOutput', 'parse_logging_config']

DEFAULT_ROOT_LOGGER_LEVEL = logging.INFO


class StdLogOutput(enum.Enum):
    STDERR = enum.auto()
    STDOUT = enum.auto()


@dataclass(frozen=True)
class LogConfig:
    level: Union[int, str]
    """
    Logging level, should be one of the levels defined in the logging module.
    """

    output: Union[StdLogOutput, str]
    """
    Name of the output file, or a standard one.
    """

    @staticmethod
    def parse_output_spec(spec) -> Union[StdLogOutput, str]:
        if not isinstance(spec, str):
            raise ConfigurationError(
                "Log output must be specified as a string."
            )
        try:
            return StdLogOutput[spec.upper()]
        except KeyError:
            return spec


def _log_level(settings: dict, key: str, default=None) -> Union[int, str]:
    level = settings.get(key, default)
    if level is None:
        raise ConfigurationError(
            f"Logging config for '{key}' does not define a log level."
        )
    if not isinstance(level, (int, str)):
        raise ConfigurationError(
            f"Log levels must be int or str, not {type(level)}"
        )
    return level


def _module_log_config(module, settings, default_output) -> LogConfig:
    if not isinstance(module, str):
        raise ConfigurationError("Keys in logging.by-module should be strings")
    if not isinstance(settings, dict):
        raise ConfigurationError(
            f"Logging settings for '{module}' should be a dict"
        )
    return LogConfig(
        level=_log_level(settings, 'level'),
        output=get_and_apply(
            settings, 'output', LogConfig.parse_output_spec,
            default=default_output
        )
    )


def parse_logging_config(log_config_spec) -> Dict[Optional[str], LogConfig]:
    """
    Parse the ``logging`` section of a configuration file.

    :return:
        A dictionary mapping logger names to their configuration. The root
        logger is keyed by ``None``.
    """
    if not isinstance(log_config_spec, dict):
        raise ConfigurationError('logging config should be a dictionary')

    root_config = LogConfig(
        level=_log_level(
            log_config_spec, 'root-level', default=DEFAULT_ROOT_LOGGER_LEVEL
        ),
        output=get_and_apply(
            log_config_spec, 'root-output', LogConfig.parse_output_spec,
            default=StdLogOutput.STDERR
        )
    )
    by_module = log_config_spec.get('by-module', {})
    if not isinstance(by_module, dict):
        raise ConfigurationError('logging.by-module should be a dict')

    log_config: Dict[Optional[str], LogConfig] = {None: root_config}
    for module, settings in by_module.items():
        log_config[module] = _module_log_config(
            module, settings, root_config.output
        )
    return log_config
