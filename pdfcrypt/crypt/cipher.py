"""
Per-object encryption and decryption of string and stream payloads.

:class:`ObjectCipher` holds no per-call state: cipher contexts are created
for every call, and the only shared mutable structure is the
:class:`ObjectKeyCache`, which is guarded by a lock. This makes it safe to
decrypt objects from multiple threads once the file encryption key is known.
"""

import enum
import logging
import threading
from collections import OrderedDict
from typing import Callable, Iterable, Iterator, Optional, Tuple, Union

from cryptography.hazmat.primitives import padding

from .. import generic, misc
from ._legacy import legacy_derive_object_key
from ._util import AES_BLOCK_SIZE
from .api import CipherAlgorithm, CipherFailure
from .provider import DEFAULT_PROVIDER, CryptoProvider

__all__ = [
    'CipherAlgorithm', 'CipherMode', 'ObjectKeyCache', 'ObjectCipher',
    'derive_object_key', 'as_reference',
]

logger = logging.getLogger(__name__)

ReferenceLike = Union[generic.Reference, Tuple[int, int]]


class CipherMode(enum.Enum):
    ENCRYPT = enum.auto()
    DECRYPT = enum.auto()


def as_reference(ref: ReferenceLike) -> generic.Reference:
    if isinstance(ref, generic.Reference):
        return ref
    idnum, generation = ref
    return generic.Reference(idnum, generation)


def derive_object_key(file_key: bytes, reference: ReferenceLike,
                      use_aes: bool) -> bytes:
    """
    Mix the file encryption key with an object reference.

    :param file_key:
        The file encryption key.
    :param reference:
        The reference of the object that is being encrypted or decrypted.
    :param use_aes:
        Whether the key is going to be used with AES-128.
    :return:
        The object key, at most 16 bytes long.
    """
    reference = as_reference(reference)
    return legacy_derive_object_key(
        file_key, reference.idnum, reference.generation, use_aes=use_aes
    )


class ObjectKeyCache:
    """
    Bounded LRU cache of object keys, keyed by file key, object reference
    and cipher algorithm.

    :param max_size:
        Maximal number of entries. ``0`` disables caching.
    """

    def __init__(self, max_size: int = 256):
        if max_size < 0:
            raise ValueError("Cache size must be non-negative")
        self.max_size = max_size
        self._entries: 'OrderedDict[tuple, bytes]' = OrderedDict()
        self._lock = threading.Lock()

    def get_or_compute(self, file_key: bytes, reference: generic.Reference,
                       algorithm: CipherAlgorithm,
                       compute: Callable[[], bytes]) -> bytes:
        if not self.max_size:
            return compute()
        cache_key = (
            file_key, reference.idnum, reference.generation, algorithm
        )
        with self._lock:
            try:
                result = self._entries[cache_key]
                self._entries.move_to_end(cache_key)
                return result
            except KeyError:
                pass
        # computing outside the lock is fine, the result is deterministic
        result = compute()
        with self._lock:
            self._entries[cache_key] = result
            self._entries.move_to_end(cache_key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
        return result

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)


def _cipher_context(factory: Callable, *args):
    try:
        return factory(*args)
    except ValueError as e:
        # typically a key of the wrong size
        raise CipherFailure(f"Could not set up cipher: {e}") from e


def _rc4_transform(provider: CryptoProvider, key: bytes,
                   chunks: Iterable[bytes]) -> Iterator[bytes]:
    # RC4 is symmetric
    ctx = _cipher_context(provider.rc4_cipher, key)
    for chunk in chunks:
        yield ctx.encrypt(chunk)


def _aes_encrypt_transform(provider: CryptoProvider, key: bytes,
                           chunks: Iterable[bytes]) -> Iterator[bytes]:
    iv = provider.random_bytes(AES_BLOCK_SIZE)
    encryptor = _cipher_context(provider.aes_cbc_cipher, key, iv).encryptor()
    padder = padding.PKCS7(128).padder()
    yield iv
    for chunk in chunks:
        yield encryptor.update(padder.update(chunk))
    yield encryptor.update(padder.finalize()) + encryptor.finalize()


def _aes_decrypt_transform(provider: CryptoProvider, key: bytes,
                           chunks: Iterable[bytes]) -> Iterator[bytes]:
    chunks = iter(chunks)
    iv = b''
    rest = b''
    for chunk in chunks:
        iv += bytes(chunk)
        if len(iv) >= AES_BLOCK_SIZE:
            iv, rest = iv[:AES_BLOCK_SIZE], iv[AES_BLOCK_SIZE:]
            break
    if len(iv) < AES_BLOCK_SIZE:
        raise CipherFailure(
            f"AES ciphertext too short to contain an IV ({len(iv)} bytes)"
        )

    decryptor = _cipher_context(provider.aes_cbc_cipher, key, iv).decryptor()
    unpadder = padding.PKCS7(128).unpadder()
    total_len = 0
    try:
        for chunk in _prepend(rest, chunks):
            total_len += len(chunk)
            yield unpadder.update(decryptor.update(chunk))
        if total_len % AES_BLOCK_SIZE:
            raise CipherFailure(
                "AES ciphertext length is not a multiple of the block size"
            )
        tail = decryptor.finalize()
        # we tolerate empty messages that don't have padding
        if total_len:
            yield unpadder.update(tail) + unpadder.finalize()
    except ValueError as e:
        raise CipherFailure(f"AES decryption failed: {e}") from e


def _prepend(first: bytes, chunks: Iterable[bytes]) -> Iterator[bytes]:
    if first:
        yield first
    for chunk in chunks:
        yield bytes(chunk)


class ObjectCipher:
    """
    Applies a cipher algorithm to the payload of a single object.

    :param provider:
        The cryptographic provider. Defaults to :data:`.DEFAULT_PROVIDER`.
    :param key_cache:
        Cache for object keys. Defaults to a fresh :class:`ObjectKeyCache`.
    :param chunk_size:
        Chunk size for stream processing.
    """

    def __init__(self, provider: Optional[CryptoProvider] = None,
                 key_cache: Optional[ObjectKeyCache] = None,
                 chunk_size: int = misc.DEFAULT_CHUNK_SIZE):
        self.provider = provider or DEFAULT_PROVIDER
        self.key_cache = key_cache if key_cache is not None \
            else ObjectKeyCache()
        self.chunk_size = chunk_size

    def object_key(self, reference: ReferenceLike, file_key: bytes,
                   algorithm: CipherAlgorithm) -> bytes:
        """
        Compute the key used to process a given object.

        For AES-256, the file key is used as-is; the other algorithms mix
        in the object reference.
        """
        if algorithm == CipherAlgorithm.IDENTITY:
            return b''
        elif not algorithm.diversifies_key:
            return file_key
        reference = as_reference(reference)
        return self.key_cache.get_or_compute(
            file_key, reference, algorithm,
            lambda: derive_object_key(
                file_key, reference, use_aes=algorithm.uses_aes
            )
        )

    def _transform(self, key: bytes, algorithm: CipherAlgorithm,
                   mode: CipherMode, chunks: Iterable[bytes]) \
            -> Iterator[bytes]:
        if algorithm == CipherAlgorithm.RC4:
            return _rc4_transform(self.provider, key, chunks)
        elif mode == CipherMode.ENCRYPT:
            return _aes_encrypt_transform(self.provider, key, chunks)
        else:
            return _aes_decrypt_transform(self.provider, key, chunks)

    def apply(self, reference: ReferenceLike, file_key: bytes,
              algorithm: CipherAlgorithm, data: bytes,
              mode: CipherMode) -> bytes:
        """
        Encrypt or decrypt a payload.

        :param reference:
            The reference of the object the payload belongs to.
        :param file_key:
            The file encryption key.
        :param algorithm:
            The cipher algorithm to apply.
        :param data:
            The payload.
        :param mode:
            Whether to encrypt or decrypt.
        :return:
            The processed payload. AES ciphertexts are prefixed with their IV.
        :raise CipherFailure:
            if the cipher rejects the input.
        """
        if algorithm == CipherAlgorithm.IDENTITY:
            return bytes(data)
        key = self.object_key(reference, file_key, algorithm)
        return b''.join(self._transform(key, algorithm, mode, (data,)))

    def apply_stream(self, reference: ReferenceLike, file_key: bytes,
                     algorithm: CipherAlgorithm, input_stream, output_stream,
                     mode: CipherMode, chunk_size: Optional[int] = None) \
            -> int:
        """
        Encrypt or decrypt a payload, reading from and writing to binary
        streams.

        The semantics are the same as those of :meth:`apply`, but the
        payload is processed chunk by chunk.

        :return:
            The number of bytes written.
        :raise CipherFailure:
            if the cipher rejects the input. The output stream may have
            received partial output in that case.
        """
        temp_buffer = bytearray(chunk_size or self.chunk_size)
        chunks = (
            bytes(chunk) for chunk in misc.chunk_stream(temp_buffer, input_stream)
        )
        if algorithm == CipherAlgorithm.IDENTITY:
            output = chunks
        else:
            key = self.object_key(reference, file_key, algorithm)
            output = self._transform(key, algorithm, mode, chunks)
        written = 0
        for out_chunk in output:
            if out_chunk:
                output_stream.write(out_chunk)
                written += len(out_chunk)
        return written
