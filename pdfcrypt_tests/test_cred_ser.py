import pytest

from pdfcrypt import misc
from pdfcrypt.crypt import (
    PasswordCredential,
    SerialisableCredential,
    SerialisedCredential,
)


def test_password_credential_round_trip():
    cred = PasswordCredential({'pwd_bytes': b'secret', 'id1': b'ID1'})
    ser = cred.serialise()
    assert ser.credential_type == 'pwd_bytes'
    restored = SerialisableCredential.deserialise(ser)
    assert isinstance(restored, PasswordCredential)
    assert restored.password == b'secret'
    assert restored.id1 == b'ID1'


def test_password_credential_without_id():
    cred = PasswordCredential({'pwd_bytes': b'secret'})
    restored = SerialisableCredential.deserialise(cred.serialise())
    assert restored.id1 is None


def test_unknown_credential_type():
    with pytest.raises(misc.PdfReadError, match='not known'):
        SerialisableCredential.deserialise(
            SerialisedCredential('no-such-type', b'')
        )


def test_garbage_credential():
    with pytest.raises(misc.PdfReadError, match='deserialise'):
        SerialisableCredential.deserialise(
            SerialisedCredential('pwd_bytes', b'\x04\x03abc')
        )
