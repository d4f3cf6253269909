import logging
import sys
from contextlib import contextmanager

import click

from pdfcrypt import misc
from pdfcrypt.cli.utils import logger
from pdfcrypt.config.errors import ConfigurationError
from pdfcrypt.config.logging import LogConfig, StdLogOutput
from pdfcrypt.crypt import (
    MalformedEncryptionDescriptorError,
    PdfKeyNotAvailableError,
    UnsupportedAlgorithmError,
)

DEFAULT_CONFIG_FILE = 'pdfcrypt.yml'

LOG_FORMAT_STRING = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class NoStackTraceFormatter(logging.Formatter):
    def formatException(self, ei) -> str:
        return ""  # pragma: nocover


def _make_handler(output, verbose: bool) -> logging.Handler:
    if not isinstance(output, StdLogOutput):
        handler = logging.FileHandler(output)
        handler.setFormatter(logging.Formatter(LOG_FORMAT_STRING))
        return handler
    stream = sys.stdout if output == StdLogOutput.STDOUT else sys.stderr
    handler = logging.StreamHandler(stream)
    # no stack traces on the console unless asked for
    formatter_cls = logging.Formatter if verbose else NoStackTraceFormatter
    handler.setFormatter(formatter_cls(LOG_FORMAT_STRING))
    return handler


def logging_setup(log_configs, verbose: bool):
    log_config: LogConfig
    for module, log_config in log_configs.items():
        cur_logger = logging.getLogger(module)
        cur_logger.setLevel(log_config.level)
        cur_logger.addHandler(_make_handler(log_config.output, verbose))


# first match wins, so subclasses go before their parents
_ERROR_MESSAGES = (
    (ConfigurationError, "Configuration problem"),
    (UnsupportedAlgorithmError, "Unsupported encryption scheme"),
    (MalformedEncryptionDescriptorError, "Malformed encryption dictionary"),
    (PdfKeyNotAvailableError, "Encryption key not available"),
    (misc.PdfReadError, "Failed to read input"),
    (misc.PdfWriteError, "Failed to write output"),
)


@contextmanager
def pdfcrypt_exception_manager():
    try:
        yield
    except click.ClickException:
        raise
    except Exception as e:
        for exc_type, prefix in _ERROR_MESSAGES:
            if isinstance(e, exc_type):
                msg = f"{prefix}: {e.msg}"
                break
        else:
            msg = "Generic processing error."
        logger.error(msg, exc_info=e)
        raise click.ClickException(msg)
