"""
Explicit access to the cryptographic primitives used by the security handler.

A :class:`CryptoProvider` is handed to the security handler when it is
constructed; the handler asks the provider to confirm that every primitive the
encryption dictionary calls for is available before anything else happens.
There is no process-wide registration step.
"""

import enum
import hashlib
import logging
import secrets
from typing import FrozenSet, Iterable

from Crypto.Cipher import ARC4
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .api import UnsupportedAlgorithmError

__all__ = ['Primitive', 'CryptoProvider', 'DEFAULT_PROVIDER']

logger = logging.getLogger(__name__)


@enum.unique
class Primitive(enum.Enum):
    MD5 = 'md5'
    SHA256 = 'sha256'
    RC4 = 'rc4'
    AES_128 = 'aes-128'
    AES_256 = 'aes-256'


def _is_available(primitive: Primitive) -> bool:
    try:
        if primitive == Primitive.MD5:
            hashlib.md5(b'')
        elif primitive == Primitive.SHA256:
            hashlib.sha256(b'')
        elif primitive == Primitive.RC4:
            ARC4.new(bytes(16))
        else:
            keylen = 16 if primitive == Primitive.AES_128 else 32
            Cipher(
                algorithms.AES(bytes(keylen)), modes.CBC(bytes(16))
            ).encryptor()
    except (UnsupportedAlgorithm, ValueError):
        return False
    return True


class CryptoProvider:
    """
    Source of the cipher contexts, hash functions and randomness used by the
    security handler.

    :param disabled:
        Primitives to report as unavailable, regardless of what the
        underlying library supports.
    """

    def __init__(self, disabled: Iterable[Primitive] = ()):
        self.disabled: FrozenSet[Primitive] = frozenset(disabled)
        self._availability = {}

    def is_available(self, primitive: Primitive) -> bool:
        if primitive in self.disabled:
            return False
        try:
            return self._availability[primitive]
        except KeyError:
            result = self._availability[primitive] = _is_available(primitive)
            return result

    def check_available(self, primitives: Iterable[Primitive]):
        """
        Ensure that all primitives in a collection are available.

        :raise UnsupportedAlgorithmError:
            if one or more primitives are unavailable.
        """
        missing = [p.value for p in primitives if not self.is_available(p)]
        if missing:
            raise UnsupportedAlgorithmError(
                f"Required cryptographic primitives unavailable: "
                f"{', '.join(missing)}"
            )

    def rc4_cipher(self, key: bytes):
        """
        Stateful RC4 context; keys of 5 to 256 bytes are accepted.
        """
        return ARC4.new(key)

    def aes_cbc_cipher(self, key: bytes, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(key), modes.CBC(iv))

    def random_bytes(self, count: int) -> bytes:
        return secrets.token_bytes(count)


DEFAULT_PROVIDER = CryptoProvider()
