import logging

import pytest

from pdfcrypt.cli.config import parse_cli_config
from pdfcrypt.config import CryptSettings
from pdfcrypt.config.errors import ConfigurationError
from pdfcrypt.config.logging import (
    DEFAULT_ROOT_LOGGER_LEVEL,
    StdLogOutput,
    parse_logging_config,
)


def test_crypt_settings_defaults():
    settings = CryptSettings.from_config({})
    assert settings == CryptSettings()
    assert settings.strict_perms
    assert settings.legacy_password_encoding == 'pdfdoc'


def test_crypt_settings_from_config():
    settings = CryptSettings.from_config({
        'object-key-cache-size': 0,
        'stream-chunk-size': 1024,
        'strict-perms': False,
        'fallback-to-input': False,
        'legacy-password-encoding': 'UTF-8',
    })
    assert settings.object_key_cache_size == 0
    assert settings.stream_chunk_size == 1024
    assert not settings.strict_perms
    assert not settings.fallback_to_input
    assert settings.legacy_password_encoding == 'utf-8'


@pytest.mark.parametrize('config_dict,msg', [
    ({'object-key-cache-size': -1}, 'non-negative'),
    ({'stream-chunk-size': 0}, 'positive'),
    ({'strict-perms': 'yes'}, 'strict-perms'),
    ({'object-key-cache-size': True}, 'object-key-cache-size'),
    ({'legacy-password-encoding': 'ebcdic'}, 'must be one of'),
    ({'no-such-setting': 1}, 'Unexpected key'),
])
def test_crypt_settings_errors(config_dict, msg):
    with pytest.raises(ConfigurationError, match=msg):
        CryptSettings.from_config(config_dict)


def test_empty_cli_config():
    cfg = parse_cli_config("")
    assert cfg.config.crypt_settings == CryptSettings()
    assert cfg.log_config[None].level == DEFAULT_ROOT_LOGGER_LEVEL


def test_cli_config():
    config_string = """
    crypt:
        strict-perms: false
        object-key-cache-size: 32
    logging:
        root-level: DEBUG
        by-module:
            pdfcrypt.crypt:
                level: WARNING
                output: stdout
    """
    cfg = parse_cli_config(config_string)
    assert not cfg.config.crypt_settings.strict_perms
    assert cfg.config.crypt_settings.object_key_cache_size == 32
    assert cfg.log_config[None].level == 'DEBUG'
    assert cfg.log_config['pdfcrypt.crypt'].level == 'WARNING'
    assert cfg.log_config['pdfcrypt.crypt'].output == StdLogOutput.STDOUT
    assert cfg.config.raw_config['crypt']['strict-perms'] is False


def test_cli_config_bad_crypt_section():
    with pytest.raises(ConfigurationError, match='dictionary'):
        parse_cli_config("crypt: 5")


def test_logging_config_defaults():
    log_config = parse_logging_config({})
    assert log_config[None].level == logging.INFO
    assert log_config[None].output == StdLogOutput.STDERR


def test_logging_config_file_output():
    log_config = parse_logging_config({
        'root-output': 'pdfcrypt.log',
        'by-module': {'pdfcrypt': {'level': 10}},
    })
    assert log_config[None].output == 'pdfcrypt.log'
    # inherits the root output
    assert log_config['pdfcrypt'].output == 'pdfcrypt.log'
    assert log_config['pdfcrypt'].level == 10


@pytest.mark.parametrize('spec,msg', [
    ([], 'should be a dictionary'),
    ({'by-module': []}, 'should be a dict'),
    ({'by-module': {'pdfcrypt': {}}}, 'does not define a log level'),
    ({'root-level': 1.5}, 'must be int or str'),
    ({'root-output': 5}, 'as a string'),
])
def test_logging_config_errors(spec, msg):
    with pytest.raises(ConfigurationError, match=msg):
        parse_logging_config(spec)
