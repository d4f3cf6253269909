import getpass

import click

from pdfcrypt import misc
from pdfcrypt.cli._ctx import CLIContext
from pdfcrypt.cli._root import cli_root
from pdfcrypt.cli.runtime import pdfcrypt_exception_manager
from pdfcrypt.cli.utils import parse_descriptor_file, readable_file
from pdfcrypt.config import CryptSettings
from pdfcrypt.crypt import AuthStatus, CipherFailure, SecurityManager
from pdfcrypt.generic import Reference

__all__ = [
    'inspect_descriptor', 'check_password', 'decrypt_object', 'encrypt_object'
]


def _crypt_settings(ctx: click.Context) -> CryptSettings:
    ctx_obj: CLIContext = ctx.find_object(CLIContext)
    if ctx_obj is not None and ctx_obj.config is not None:
        return ctx_obj.config.crypt_settings
    return CryptSettings()


def _open_manager(ctx: click.Context, descriptor_file) -> SecurityManager:
    with open(descriptor_file, 'r') as inf:
        encrypt_dict, id_array = parse_descriptor_file(inf.read())
    return SecurityManager.from_trailer(
        encrypt_dict, id_array, settings=_crypt_settings(ctx)
    )


def _authorize(manager: SecurityManager, password) -> AuthStatus:
    if password is None:
        password = getpass.getpass(prompt='Document password: ')
    result = manager.authenticate(password)
    if result.status == AuthStatus.FAILED:
        raise click.ClickException("Password didn't match.")
    return result.status


def _write_output(outfile, data: bytes):
    try:
        with open(outfile, 'wb') as outf:
            outf.write(data)
    except OSError as e:
        raise misc.PdfWriteError(f"Could not write to {outfile}: {e}") from e


password_option = click.option(
    '--password',
    help='password to authenticate with (prompted for if not specified)',
    required=False,
    type=str,
)


@cli_root.command(help='describe an encryption dictionary', name='inspect')
@click.argument('descriptor', type=readable_file)
@password_option
@click.option(
    '--check-permissions',
    help='authenticate and list the document permissions',
    required=False,
    type=bool,
    is_flag=True,
    default=False,
)
@click.pass_context
def inspect_descriptor(ctx, descriptor, password, check_permissions):
    with pdfcrypt_exception_manager():
        with _open_manager(ctx, descriptor) as manager:
            for key, value in manager.descriptor.summary().items():
                click.echo(f"{key}: {value}")
            if not check_permissions:
                return
            status = _authorize(manager, password)
            click.echo(f"authenticated as: {status.name.lower()}")
            for perm, granted in manager.permissions().as_table():
                click.echo(
                    f"{perm.name}: {'granted' if granted else 'denied'}"
                )


@cli_root.command(
    help='check a password against an encryption dictionary',
    name='check-password'
)
@click.argument('descriptor', type=readable_file)
@password_option
@click.pass_context
def check_password(ctx, descriptor, password):
    with pdfcrypt_exception_manager():
        with _open_manager(ctx, descriptor) as manager:
            status = _authorize(manager, password)
            click.echo(f"Password accepted as {status.name.lower()} password.")


def _apply(manager: SecurityManager, decrypt, ref, inf, string,
           crypt_filter) -> bytes:
    if string:
        process = manager.decrypt if decrypt else manager.encrypt
        return process(ref, inf.read(), is_string=True, strict=True)
    decode_params = {'/Name': crypt_filter} if crypt_filter else None
    process = manager.decrypt_stream if decrypt else manager.encrypt_stream
    result_stream = process(
        ref, inf, decode_params=decode_params, fallback_to_input=False,
        strict=True
    )
    return result_stream.read()


def _process_object(ctx, decrypt, descriptor, idnum, generation, infile,
                    outfile, password, string, crypt_filter):
    with pdfcrypt_exception_manager():
        with _open_manager(ctx, descriptor) as manager:
            _authorize(manager, password)
            ref = Reference(idnum, generation)
            try:
                with open(infile, 'rb') as inf:
                    result = _apply(manager, decrypt, ref, inf, string,
                                    crypt_filter)
            except CipherFailure as e:
                raise click.ClickException(
                    f"Failed to {'decrypt' if decrypt else 'encrypt'} "
                    f"object {ref}: {e.msg}"
                )
            _write_output(outfile, result)


object_args = [
    click.argument('descriptor', type=readable_file),
    click.argument('idnum', type=click.IntRange(min=0)),
    click.argument('generation', type=click.IntRange(min=0)),
    click.argument('infile', type=readable_file),
    click.argument('outfile', type=click.Path(writable=True, dir_okay=False)),
    password_option,
    click.option(
        '--string',
        help='treat the payload as a string instead of a stream',
        required=False,
        type=bool,
        is_flag=True,
        default=False,
    ),
    click.option(
        '--crypt-filter',
        help='crypt filter requested by the stream (ignored for strings)',
        required=False,
        type=str,
    ),
]


def _with_object_args(f):
    for decorator in reversed(object_args):
        f = decorator(f)
    return f


@cli_root.command(
    help='decrypt the payload of a single object', name='decrypt-object'
)
@_with_object_args
@click.pass_context
def decrypt_object(ctx, descriptor, idnum, generation, infile, outfile,
                   password, string, crypt_filter):
    _process_object(
        ctx, True, descriptor, idnum, generation, infile, outfile,
        password, string, crypt_filter
    )


@cli_root.command(
    help='encrypt the payload of a single object', name='encrypt-object'
)
@_with_object_args
@click.pass_context
def encrypt_object(ctx, descriptor, idnum, generation, infile, outfile,
                   password, string, crypt_filter):
    _process_object(
        ctx, False, descriptor, idnum, generation, infile, outfile,
        password, string, crypt_filter
    )
