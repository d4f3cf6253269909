import io

import pytest

from pdfcrypt.crypt import (
    CipherAlgorithm,
    CipherFailure,
    CipherMode,
    ObjectCipher,
    ObjectKeyCache,
)
from pdfcrypt.crypt._util import aes_cbc_encrypt, rc4_encrypt
from pdfcrypt.crypt.cipher import derive_object_key
from pdfcrypt.generic import Reference

FILE_KEY_16 = bytes(range(16))
FILE_KEY_32 = bytes(range(32))
REF = Reference(7, 0)


def test_rc4_known_answer():
    assert rc4_encrypt(b'Secret', b'Attack at dawn') == bytes.fromhex(
        '45a01f645fc35b383552544b9bf5'
    )


@pytest.mark.parametrize('keylen', [5, 6, 7, 9, 12, 15, 16])
def test_rc4_any_key_length(keylen):
    # object keys are len(file_key) + 5 bytes, capped at 16
    file_key = bytes(range(1, keylen + 1))
    cipher = ObjectCipher()
    ct = cipher.apply(
        REF, file_key, CipherAlgorithm.RC4, b'Hello', CipherMode.ENCRYPT
    )
    assert ct != b'Hello'
    assert cipher.apply(
        REF, file_key, CipherAlgorithm.RC4, ct, CipherMode.DECRYPT
    ) == b'Hello'


@pytest.mark.parametrize('mode', [CipherMode.ENCRYPT, CipherMode.DECRYPT])
def test_aes_bad_key_size(mode):
    # a 5-byte file key yields a 10-byte object key
    with pytest.raises(CipherFailure, match='Could not set up cipher'):
        ObjectCipher().apply(
            REF, b'\x01' * 5, CipherAlgorithm.AES_128_CBC, bytes(32), mode
        )


def test_object_key_truncation():
    assert len(derive_object_key(FILE_KEY_16, REF, use_aes=False)) == 16
    assert len(derive_object_key(b'\x01' * 5, REF, use_aes=False)) == 10
    assert len(derive_object_key(b'\x01' * 7, REF, use_aes=True)) == 12


def test_object_key_accepts_tuples():
    assert derive_object_key(FILE_KEY_16, (7, 0), use_aes=False) \
        == derive_object_key(FILE_KEY_16, REF, use_aes=False)


def test_aes256_uses_file_key():
    cipher = ObjectCipher()
    assert cipher.object_key(REF, FILE_KEY_32, CipherAlgorithm.AES_256_CBC) \
        == FILE_KEY_32


def test_rc4_object_encryption():
    cipher = ObjectCipher()
    ct = cipher.apply(
        REF, FILE_KEY_16, CipherAlgorithm.RC4, b'Hello', CipherMode.ENCRYPT
    )
    obj_key = derive_object_key(FILE_KEY_16, REF, use_aes=False)
    assert ct == rc4_encrypt(obj_key, b'Hello')
    assert cipher.apply(
        REF, FILE_KEY_16, CipherAlgorithm.RC4, ct, CipherMode.DECRYPT
    ) == b'Hello'


@pytest.mark.parametrize('algorithm,file_key', [
    (CipherAlgorithm.AES_128_CBC, FILE_KEY_16),
    (CipherAlgorithm.AES_256_CBC, FILE_KEY_32),
])
def test_aes_object_encryption(algorithm, file_key):
    cipher = ObjectCipher()
    ct = cipher.apply(REF, file_key, algorithm, b'Hello', CipherMode.ENCRYPT)
    # IV + one padded block
    assert len(ct) == 32
    assert cipher.apply(
        REF, file_key, algorithm, ct, CipherMode.DECRYPT
    ) == b'Hello'


def test_aes_decrypt_matches_reference_implementation():
    obj_key = derive_object_key(FILE_KEY_16, REF, use_aes=True)
    iv, ct = aes_cbc_encrypt(obj_key, b'some string data', bytes(16))
    cipher = ObjectCipher()
    assert cipher.apply(
        REF, FILE_KEY_16, CipherAlgorithm.AES_128_CBC, iv + ct,
        CipherMode.DECRYPT
    ) == b'some string data'


def test_aes_iv_only():
    cipher = ObjectCipher()
    assert cipher.apply(
        REF, FILE_KEY_16, CipherAlgorithm.AES_128_CBC, bytes(16),
        CipherMode.DECRYPT
    ) == b''


@pytest.mark.parametrize('length', [0, 5, 15])
def test_aes_too_short(length):
    cipher = ObjectCipher()
    with pytest.raises(CipherFailure, match='too short'):
        cipher.apply(
            REF, FILE_KEY_16, CipherAlgorithm.AES_128_CBC, bytes(length),
            CipherMode.DECRYPT
        )


def test_aes_not_block_aligned():
    cipher = ObjectCipher()
    with pytest.raises(CipherFailure, match='multiple of the block size'):
        cipher.apply(
            REF, FILE_KEY_16, CipherAlgorithm.AES_128_CBC, bytes(40),
            CipherMode.DECRYPT
        )


def test_aes_bad_padding():
    obj_key = derive_object_key(FILE_KEY_16, REF, use_aes=True)
    # no padding applied, last byte is 0x00, which is invalid PKCS#7
    iv, ct = aes_cbc_encrypt(obj_key, bytes(16), bytes(16), use_padding=False)
    cipher = ObjectCipher()
    with pytest.raises(CipherFailure, match='AES decryption failed'):
        cipher.apply(
            REF, FILE_KEY_16, CipherAlgorithm.AES_128_CBC, iv + ct,
            CipherMode.DECRYPT
        )


def test_identity_passes_through():
    cipher = ObjectCipher()
    assert cipher.apply(
        REF, FILE_KEY_16, CipherAlgorithm.IDENTITY, b'abc', CipherMode.DECRYPT
    ) == b'abc'


@pytest.mark.parametrize('algorithm,file_key', [
    (CipherAlgorithm.RC4, FILE_KEY_16),
    (CipherAlgorithm.AES_128_CBC, FILE_KEY_16),
    (CipherAlgorithm.AES_256_CBC, FILE_KEY_32),
])
@pytest.mark.parametrize('chunk_size', [1, 7, 16, 4096])
def test_stream_matches_one_shot(algorithm, file_key, chunk_size):
    data = bytes(range(256)) * 5
    cipher = ObjectCipher(chunk_size=chunk_size)
    out = io.BytesIO()
    written = cipher.apply_stream(
        REF, file_key, algorithm, io.BytesIO(data), out, CipherMode.ENCRYPT
    )
    ct = out.getvalue()
    assert written == len(ct)
    # decrypting in one go recovers the data
    assert cipher.apply(
        REF, file_key, algorithm, ct, CipherMode.DECRYPT
    ) == data
    # and so does decrypting in chunks
    out = io.BytesIO()
    cipher.apply_stream(
        REF, file_key, algorithm, io.BytesIO(ct), out, CipherMode.DECRYPT
    )
    assert out.getvalue() == data


def test_key_cache_lru():
    cache = ObjectKeyCache(max_size=2)
    calls = []

    def _compute(value):
        def f():
            calls.append(value)
            return value
        return f

    alg = CipherAlgorithm.RC4
    assert cache.get_or_compute(b'k', Reference(1), alg, _compute(b'1')) == b'1'
    assert cache.get_or_compute(b'k', Reference(2), alg, _compute(b'2')) == b'2'
    # hit, and refresh the entry for ref 1
    assert cache.get_or_compute(b'k', Reference(1), alg, _compute(b'x')) == b'1'
    # evicts ref 2
    cache.get_or_compute(b'k', Reference(3), alg, _compute(b'3'))
    assert len(cache) == 2
    assert cache.get_or_compute(b'k', Reference(2), alg, _compute(b'2')) == b'2'
    assert calls == [b'1', b'2', b'3', b'2']


def test_key_cache_distinguishes_algorithms():
    cache = ObjectKeyCache()
    cache.get_or_compute(b'k', REF, CipherAlgorithm.RC4, lambda: b'rc4')
    assert cache.get_or_compute(
        b'k', REF, CipherAlgorithm.AES_128_CBC, lambda: b'aes'
    ) == b'aes'


def test_key_cache_disabled():
    cache = ObjectKeyCache(max_size=0)
    cache.get_or_compute(b'k', REF, CipherAlgorithm.RC4, lambda: b'x')
    assert len(cache) == 0


def test_key_cache_negative_size():
    with pytest.raises(ValueError):
        ObjectKeyCache(max_size=-1)
