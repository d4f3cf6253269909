"""
Populate dataclasses from user-provided configuration dictionaries (e.g. the
sections of a YAML file).

Keys may be spelled with hyphens or underscores; hyphens are what users see
in error messages, underscores are what ends up in the dataclass.
"""

import dataclasses

__all__ = [
    'ConfigurationError', 'ConfigurableMixin', 'check_config_keys',
    'enforce_required_keys', 'require_type',
]


class ConfigurationError(ValueError):
    """Signal configuration errors."""

    def __init__(self, msg: str):
        self.msg = msg
        super().__init__(msg)


def _dashed(keys):
    return {key.replace('_', '-') for key in keys}


def _describe_keys(problem: str, config_name: str, keys) -> str:
    noun = 'key' if len(keys) == 1 else 'keys'
    return (
        f"{problem} {noun} in configuration for {config_name}: "
        f"{', '.join(sorted(keys))}."
    )


@dataclasses.dataclass(frozen=True)
class ConfigurableMixin:
    """General configuration mixin for dataclasses"""

    @classmethod
    def process_entries(cls, config_dict):
        """
        Hook to validate or convert values in place, after the keys have
        been normalised to underscores. Overrides should call the parent
        implementation.

        :raises ConfigurationError:
            when an entry has an invalid value.
        """
        pass

    @classmethod
    def from_config(cls, config_dict):
        """
        Instantiate the class from a configuration dictionary.

        :param config_dict:
            A dictionary containing configuration values.
        :return:
            An instance of the class on which it is called.
        :raises ConfigurationError:
            when a key is unknown or missing, or when
            :meth:`process_entries` rejects a value.
        """
        fields = dataclasses.fields(cls)
        check_config_keys(cls.__name__, {f.name for f in fields}, config_dict)
        config_dict = {
            key.replace('-', '_'): v for key, v in config_dict.items()
        }
        cls.process_entries(config_dict)
        required = {
            f.name for f in fields
            if f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        }
        enforce_required_keys(cls.__name__, required, config_dict)
        try:
            return cls(**config_dict)
        except TypeError as e:  # pragma: nocover
            raise ConfigurationError(str(e))


def check_config_keys(config_name, expected_keys, config_dict):
    """
    Reject anything that isn't a dictionary, and dictionaries with keys that
    don't correspond to a field.
    """
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"{config_name} requires a dictionary to initialise."
        )
    unexpected = _dashed(config_dict.keys()) - _dashed(expected_keys)
    if unexpected:
        raise ConfigurationError(
            _describe_keys("Unexpected", config_name, unexpected)
        )


def enforce_required_keys(config_name, required_keys, config_dict):
    missing = _dashed(required_keys) - _dashed(config_dict.keys())
    if missing:
        raise ConfigurationError(
            _describe_keys("Missing required", config_name, missing)
        )


def require_type(config_dict, key, expected_type):
    """
    Check the type of a configuration value, if it is present.

    :raises ConfigurationError:
        if the value has the wrong type.
    """
    try:
        value = config_dict[key]
    except KeyError:
        return
    # bool is a subclass of int, but we don't want to accept it as one
    if not isinstance(value, expected_type) or \
            (expected_type is int and isinstance(value, bool)):
        raise ConfigurationError(
            f"'{key.replace('_', '-')}' must be of type "
            f"{expected_type.__name__}, not {type(value).__name__}."
        )
