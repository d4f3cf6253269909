import getpass

import pytest

from pdfcrypt.cli import cli_root
from pdfcrypt.generic import Reference
from pdfcrypt_tests.cli_tests.conftest import (
    DESCRIPTOR_PATH,
    INPUT_PATH,
    OUTPUT_PATH,
    OWNER_PASSWORD,
    USER_PASSWORD,
    _const,
    _write_descriptor,
)


def _write_input(data: bytes):
    with open(INPUT_PATH, 'wb') as outf:
        outf.write(data)


def _read_output() -> bytes:
    with open(OUTPUT_PATH, 'rb') as inf:
        return inf.read()


def test_cli_inspect(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    result = cli_runner.invoke(cli_root, ['inspect', DESCRIPTOR_PATH])
    assert not result.exception, result.output
    assert 'revision: 4' in result.output
    assert 'key-length: 128' in result.output
    assert 'authenticated as' not in result.output


def test_cli_inspect_permissions(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    result = cli_runner.invoke(
        cli_root,
        ['inspect', DESCRIPTOR_PATH, '--check-permissions',
         '--password', USER_PASSWORD]
    )
    assert not result.exception, result.output
    assert 'authenticated as: user' in result.output
    assert 'ALLOW_PRINTING: granted' in result.output
    assert 'ALLOW_MODIFICATION_GENERIC: denied' in result.output


@pytest.mark.parametrize('password,expected', [
    (USER_PASSWORD, 'user'), (OWNER_PASSWORD, 'owner'),
])
def test_cli_check_password(cli_runner, aes128_handler, password, expected):
    _write_descriptor(aes128_handler)
    result = cli_runner.invoke(
        cli_root, ['check-password', DESCRIPTOR_PATH, '--password', password]
    )
    assert not result.exception, result.output
    assert f'accepted as {expected} password' in result.output


def test_cli_check_password_aes256(cli_runner, aes256_handler):
    _write_descriptor(aes256_handler, id1=None)
    result = cli_runner.invoke(
        cli_root,
        ['check-password', DESCRIPTOR_PATH, '--password', OWNER_PASSWORD]
    )
    assert not result.exception, result.output
    assert 'accepted as owner password' in result.output


def test_cli_wrong_password(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    result = cli_runner.invoke(
        cli_root, ['check-password', DESCRIPTOR_PATH, '--password', 'nope']
    )
    assert result.exit_code == 1
    assert "Password didn't match" in result.output


def test_cli_password_prompt(cli_runner, aes128_handler, monkeypatch):
    monkeypatch.setattr(getpass, 'getpass', _const(USER_PASSWORD))
    _write_descriptor(aes128_handler)
    result = cli_runner.invoke(cli_root, ['check-password', DESCRIPTOR_PATH])
    assert not result.exception, result.output
    assert 'accepted as user password' in result.output


@pytest.mark.parametrize('string', [True, False])
def test_cli_decrypt_object(cli_runner, aes128_handler, string):
    ref = Reference(12, 0)
    ct = aes128_handler.encrypt_object(ref, b'Hello world', is_string=string)
    _write_descriptor(aes128_handler)
    _write_input(ct)
    args = [
        'decrypt-object', DESCRIPTOR_PATH, '12', '0', INPUT_PATH, OUTPUT_PATH,
        '--password', USER_PASSWORD
    ]
    if string:
        args.append('--string')
    result = cli_runner.invoke(cli_root, args)
    assert not result.exception, result.output
    assert _read_output() == b'Hello world'


def test_cli_decrypt_object_failure(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    # too short to hold an IV
    _write_input(b'abc')
    result = cli_runner.invoke(
        cli_root,
        ['decrypt-object', DESCRIPTOR_PATH, '12', '0', INPUT_PATH, OUTPUT_PATH,
         '--password', USER_PASSWORD]
    )
    assert result.exit_code == 1
    assert 'Failed to decrypt object 12 0 R' in result.output


@pytest.mark.parametrize('handler', ['rc4_handler', 'aes128_handler'])
@pytest.mark.parametrize('string', [True, False])
def test_cli_decrypt_empty_payload(cli_runner, request, handler, string):
    sh = request.getfixturevalue(handler)
    ct = sh.encrypt_object(Reference(12, 0), b'', is_string=string)
    _write_descriptor(sh)
    _write_input(ct)
    args = [
        'decrypt-object', DESCRIPTOR_PATH, '12', '0', INPUT_PATH, OUTPUT_PATH,
        '--password', USER_PASSWORD
    ]
    if string:
        args.append('--string')
    result = cli_runner.invoke(cli_root, args)
    assert not result.exception, result.output
    assert _read_output() == b''



def test_cli_decrypt_identity_filter(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    _write_input(b'not encrypted')
    result = cli_runner.invoke(
        cli_root,
        ['decrypt-object', DESCRIPTOR_PATH, '5', '0', INPUT_PATH, OUTPUT_PATH,
         '--password', USER_PASSWORD, '--crypt-filter', 'Identity']
    )
    assert not result.exception, result.output
    assert _read_output() == b'not encrypted'


def test_cli_output_not_writable(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    _write_input(b'not encrypted')
    result = cli_runner.invoke(
        cli_root,
        ['decrypt-object', DESCRIPTOR_PATH, '5', '0', INPUT_PATH,
         'no-such-dir/out.bin', '--password', USER_PASSWORD,
         '--crypt-filter', 'Identity']
    )
    assert result.exit_code == 1
    assert 'Failed to write output' in result.output


def test_cli_encrypt_object(cli_runner, aes256_handler):
    _write_descriptor(aes256_handler, id1=None)
    _write_input(b'Hello world')
    result = cli_runner.invoke(
        cli_root,
        ['encrypt-object', DESCRIPTOR_PATH, '3', '0', INPUT_PATH, OUTPUT_PATH,
         '--password', USER_PASSWORD]
    )
    assert not result.exception, result.output
    ct = _read_output()
    assert aes256_handler.decrypt_object(Reference(3, 0), ct) \
        == b'Hello world'


def test_cli_malformed_descriptor(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler, id1=None)
    result = cli_runner.invoke(
        cli_root,
        ['check-password', DESCRIPTOR_PATH, '--password', USER_PASSWORD]
    )
    assert result.exit_code == 1
    assert 'Malformed encryption dictionary' in result.output


def test_cli_bad_hex(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler, O='zz')
    result = cli_runner.invoke(cli_root, ['inspect', DESCRIPTOR_PATH])
    assert result.exit_code == 1
    assert 'not a valid hex string' in result.output


def test_cli_unsupported_revision(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler, R=6)
    result = cli_runner.invoke(cli_root, ['inspect', DESCRIPTOR_PATH])
    assert result.exit_code == 1
    assert 'Unsupported encryption scheme' in result.output


def test_cli_not_a_descriptor(cli_runner):
    with open(DESCRIPTOR_PATH, 'w') as outf:
        outf.write('- just\n- a list\n')
    result = cli_runner.invoke(cli_root, ['inspect', DESCRIPTOR_PATH])
    assert result.exit_code == 1
    assert "'encrypt' entry" in result.output


def test_cli_config(cli_runner, aes256_handler):
    # tamper with the permissions, and tell the CLI not to care
    _write_descriptor(aes256_handler, id1=None, P=-8)
    with open('pdfcrypt-test.yml', 'w') as outf:
        outf.write("crypt:\n    strict-perms: false\n")
    result = cli_runner.invoke(
        cli_root,
        ['check-password', DESCRIPTOR_PATH, '--password', USER_PASSWORD]
    )
    assert result.exit_code == 1
    result = cli_runner.invoke(
        cli_root,
        ['--config', 'pdfcrypt-test.yml', 'check-password', DESCRIPTOR_PATH,
         '--password', USER_PASSWORD]
    )
    assert not result.exception, result.output
    assert 'accepted as user password' in result.output


def test_cli_bad_config(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    with open('pdfcrypt-test.yml', 'w') as outf:
        outf.write("crypt:\n    stream-chunk-size: 0\n")
    result = cli_runner.invoke(
        cli_root, ['--config', 'pdfcrypt-test.yml', 'inspect', DESCRIPTOR_PATH]
    )
    assert result.exit_code == 1
    assert 'Configuration problem' in result.output


def test_cli_verbose(cli_runner, aes128_handler):
    _write_descriptor(aes128_handler)
    result = cli_runner.invoke(
        cli_root, ['--verbose', 'inspect', DESCRIPTOR_PATH]
    )
    assert not result.exception, result.output
