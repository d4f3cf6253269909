from pdfcrypt.cli._root import cli_root
from pdfcrypt.cli.commands import *

__all__ = ['launch', 'cli_root']


def launch():
    cli_root(prog_name='pdfcrypt')
