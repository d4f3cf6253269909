from dataclasses import dataclass
from typing import Optional

from pdfcrypt.cli.config import CLIConfig


@dataclass
class CLIContext:
    """
    Context object that carries the CLI settings gathered while processing
    the root command. This object is passed around as a ``click`` context
    object.
    """

    config: Optional[CLIConfig] = None
    """
    Values for CLI configuration settings.
    """
