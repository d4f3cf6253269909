import pytest

from pdfcrypt.crypt import (
    DEFAULT_PROVIDER,
    CryptoProvider,
    Primitive,
    UnsupportedAlgorithmError,
)


@pytest.mark.parametrize('primitive', list(Primitive))
def test_default_provider_has_everything(primitive):
    assert DEFAULT_PROVIDER.is_available(primitive)


def test_disabled_primitives():
    provider = CryptoProvider(disabled=[Primitive.MD5, Primitive.RC4])
    assert not provider.is_available(Primitive.MD5)
    assert provider.is_available(Primitive.AES_128)
    provider.check_available([Primitive.SHA256, Primitive.AES_256])
    with pytest.raises(UnsupportedAlgorithmError, match='md5, rc4'):
        provider.check_available([Primitive.MD5, Primitive.RC4])


def test_random_bytes():
    assert len(DEFAULT_PROVIDER.random_bytes(16)) == 16
    assert DEFAULT_PROVIDER.random_bytes(16) != DEFAULT_PROVIDER.random_bytes(16)
