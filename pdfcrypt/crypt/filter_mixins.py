import abc

from .. import generic
from .api import CipherAlgorithm, CryptFilter


class RC4CryptFilterMixin(CryptFilter, abc.ABC):
    """
    Mixin for RC4-based crypt filters.

    :param keylen:
        Key length, in bytes. Defaults to 5.
    """

    method = generic.NameObject('/V2')
    algorithm = CipherAlgorithm.RC4
    keylen = None

    def __init__(self, *, keylen=5, **kwargs):
        self.keylen = keylen
        super().__init__(**kwargs)


class AESCryptFilterMixin(CryptFilter, abc.ABC):
    """
    Mixin for AES-based crypt filters.

    :param keylen:
        Key length, in bytes: 16 for AES-128 (``/AESV2``), 32 for AES-256
        (``/AESV3``).
    """
    keylen = None
    method = None
    algorithm = None

    def __init__(self, *, keylen, **kwargs):
        if keylen not in (16, 32):
            raise NotImplementedError("Only AES-128 and AES-256 are supported")
        self.keylen = keylen
        if keylen == 16:
            self.method = generic.NameObject('/AESV2')
            self.algorithm = CipherAlgorithm.AES_128_CBC
        else:
            self.method = generic.NameObject('/AESV3')
            self.algorithm = CipherAlgorithm.AES_256_CBC
        super().__init__(**kwargs)
