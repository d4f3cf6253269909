import pytest
import yaml
from click.testing import CliRunner

from pdfcrypt import generic
from pdfcrypt.crypt import (
    StandardSecurityHandler,
    StandardSecuritySettingsRevision,
)

DESCRIPTOR_PATH = 'descriptor.yml'
INPUT_PATH = 'input.bin'
OUTPUT_PATH = 'output.bin'
ID1 = b'ID1'
USER_PASSWORD = 'usersecret'
OWNER_PASSWORD = 'ownersecret'


def _const(v):
    def f(*_args, **_kwargs):
        return v

    return f


def _to_yaml_value(value):
    if isinstance(value, dict):
        return {str(k): _to_yaml_value(v) for k, v in value.items()}
    elif isinstance(value, bytes):
        return value.hex()
    elif isinstance(value, (bool, generic.BooleanObject)):
        return bool(value)
    elif isinstance(value, int):
        return int(value)
    return str(value)


def _write_descriptor(sh: StandardSecurityHandler, id1=ID1,
                      fname=DESCRIPTOR_PATH, **overrides):
    encrypt = _to_yaml_value(sh.descriptor.as_pdf_object())
    encrypt.update({'/' + k: v for k, v in overrides.items()})
    data = {'encrypt': encrypt}
    if id1 is not None:
        data['id'] = [id1.hex(), 'ffff']
    with open(fname, 'w') as outf:
        yaml.safe_dump(data, outf)
    return fname


@pytest.fixture
def aes128_handler():
    return StandardSecurityHandler.build_from_pw_legacy(
        StandardSecuritySettingsRevision.RC4_OR_AES128, ID1,
        OWNER_PASSWORD, USER_PASSWORD, perms=-44
    )


@pytest.fixture
def rc4_handler():
    return StandardSecurityHandler.build_from_pw_legacy(
        StandardSecuritySettingsRevision.RC4_EXTENDED, ID1,
        OWNER_PASSWORD, USER_PASSWORD, keylen_bytes=16
    )


@pytest.fixture
def aes256_handler():
    return StandardSecurityHandler.build_from_pw(OWNER_PASSWORD, USER_PASSWORD)


# cli_runner is autouse to ensure it gets priority in the dependency graph
@pytest.fixture(scope="function", autouse=True)
def cli_runner():
    runner = CliRunner()
    with runner.isolated_filesystem():
        yield runner
