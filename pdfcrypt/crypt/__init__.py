"""
Password-based encryption of PDF strings and streams with the standard
security handler, revisions 2 to 5:

* RC4 with 40-bit keys (revision 2) or longer keys (revision 3).
* RC4 or AES-128 through crypt filters (revision 4).
* AES-256 with SHA-256 key derivation (revision 5).

A reader typically creates one :class:`SecurityManager` per document from
the trailer's ``/Encrypt`` and ``/ID`` entries, authorises it with a
password, and then decrypts string and stream payloads object by object.
The :class:`StandardSecurityHandler` behind it can also be used directly.

Every payload passes through a crypt filter, which fixes the cipher. For
revisions 2 and 3 there is a single RC4 filter; from revision 4 on, the
``/CF``, ``/StmF`` and ``/StrF`` entries define them, and streams can
request a filter by name in their decode parameters.

.. danger::
    RC4 and the MD5-based key derivation of revisions 2 to 4 are weak.
    They are supported to read existing documents.
"""

from .api import (
    ALL_PERMS,
    IDENTITY,
    STD_CF,
    AuthenticationState,
    AuthResult,
    AuthStatus,
    CipherAlgorithm,
    CipherFailure,
    CryptFilter,
    CryptFilterBuilder,
    CryptFilterConfiguration,
    IdentityCryptFilter,
    MalformedEncryptionDescriptorError,
    PdfKeyNotAvailableError,
    SecurityHandler,
    SecurityHandlerVersion,
    UnsupportedAlgorithmError,
    build_crypt_filter,
)
from .cipher import CipherMode, ObjectCipher, ObjectKeyCache
from .cred_ser import (
    PasswordCredential,
    SerialisableCredential,
    SerialisedCredential,
)
from .descriptor import CryptFilterEntry, CryptFilterTable, EncryptionDescriptor
from .filter_mixins import AESCryptFilterMixin, RC4CryptFilterMixin
from .manager import SecurityManager
from .permissions import PermissionSet, StandardPermissions, decode_permissions
from .provider import DEFAULT_PROVIDER, CryptoProvider, Primitive
from .standard import (
    StandardAESCryptFilter,
    StandardRC4CryptFilter,
    StandardSecurityHandler,
    StandardSecuritySettingsRevision,
)

__all__ = [
    'SecurityHandler', 'StandardSecurityHandler', 'SecurityManager',
    'AuthResult', 'AuthStatus', 'AuthenticationState',
    'SecurityHandlerVersion', 'StandardSecuritySettingsRevision',
    'CryptFilterConfiguration', 'CryptFilter',
    'IdentityCryptFilter', 'RC4CryptFilterMixin', 'AESCryptFilterMixin',
    'StandardAESCryptFilter', 'StandardRC4CryptFilter',
    'EncryptionDescriptor', 'CryptFilterTable', 'CryptFilterEntry',
    'PermissionSet', 'StandardPermissions', 'decode_permissions',
    'CipherAlgorithm', 'CipherMode', 'ObjectCipher', 'ObjectKeyCache',
    'CryptoProvider', 'Primitive', 'DEFAULT_PROVIDER',
    'SerialisedCredential', 'SerialisableCredential', 'PasswordCredential',
    'PdfKeyNotAvailableError', 'UnsupportedAlgorithmError',
    'MalformedEncryptionDescriptorError', 'CipherFailure',
    'STD_CF', 'IDENTITY', 'ALL_PERMS', 'CryptFilterBuilder',
    'build_crypt_filter',
]
