import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Optional, Type

from .. import generic, misc
from .cred_ser import SerialisableCredential

if TYPE_CHECKING:
    from .descriptor import CryptFilterEntry, EncryptionDescriptor

__all__ = [
    'PdfKeyNotAvailableError', 'UnsupportedAlgorithmError',
    'MalformedEncryptionDescriptorError', 'CipherFailure',
    'AuthStatus', 'AuthenticationState', 'AuthResult',
    'SecurityHandlerVersion', 'CipherAlgorithm', 'SecurityHandler',
    'CryptFilter', 'IdentityCryptFilter', 'CryptFilterConfiguration',
    'CryptFilterBuilder', 'build_crypt_filter', 'IDENTITY', 'STD_CF',
    'ALL_PERMS',
]

logger = logging.getLogger(__name__)


class PdfKeyNotAvailableError(misc.PdfReadError):
    pass


class UnsupportedAlgorithmError(misc.PdfReadError):
    """
    The encryption dictionary requires an algorithm, revision or security
    handler that is not supported.
    """
    pass


class MalformedEncryptionDescriptorError(misc.PdfReadError):
    """
    The encryption dictionary is missing required entries, or contains
    values of the wrong shape.
    """
    pass


class CipherFailure(misc.PdfReadError):
    """
    The cipher rejected its input (bad padding, truncated IV, ...).
    """
    pass


class AuthStatus(misc.OrderedEnum):
    """
    Outcome of a single authentication attempt.
    """

    FAILED = 0
    USER = 1
    OWNER = 2


class AuthenticationState(enum.Enum):
    """
    Authentication state of a security handler.
    """

    UNAUTHENTICATED = enum.auto()
    USER_AUTHENTICATED = enum.auto()
    OWNER_AUTHENTICATED = enum.auto()
    REJECTED = enum.auto()

    @classmethod
    def from_status(cls, status: AuthStatus) -> 'AuthenticationState':
        if status == AuthStatus.OWNER:
            return AuthenticationState.OWNER_AUTHENTICATED
        elif status == AuthStatus.USER:
            return AuthenticationState.USER_AUTHENTICATED
        return AuthenticationState.REJECTED

    @property
    def is_authenticated(self) -> bool:
        return self in (
            AuthenticationState.USER_AUTHENTICATED,
            AuthenticationState.OWNER_AUTHENTICATED
        )


@dataclass(frozen=True)
class AuthResult:
    """
    Result of an authentication attempt.
    """

    status: AuthStatus
    """
    Level of access obtained.
    """

    permission_flags: Optional[int] = None
    """
    The ``/P`` value of the document, as a signed 32-bit integer. Only set
    on success.
    """


@enum.unique
class SecurityHandlerVersion(misc.VersionEnum):
    """
    The ``/V`` entry of the encryption dictionary, named after the
    algorithms each version allows.
    """
    RC4_40 = 1
    RC4_LONGER_KEYS = 2
    RC4_OR_AES128 = 4
    AES256 = 5

    OTHER = None
    """
    Placeholder value for unsupported versions.
    """

    @classmethod
    def from_number(cls, value) -> 'SecurityHandlerVersion':
        try:
            return SecurityHandlerVersion(value)
        except ValueError:
            return SecurityHandlerVersion.OTHER


@enum.unique
class CipherAlgorithm(enum.Enum):
    """
    The cipher applied to the payload of a string or stream, keyed by the
    ``/CFM`` name that selects it.
    """

    IDENTITY = '/None'
    RC4 = '/V2'
    AES_128_CBC = '/AESV2'
    AES_256_CBC = '/AESV3'

    @property
    def uses_aes(self) -> bool:
        return self in (CipherAlgorithm.AES_128_CBC,
                        CipherAlgorithm.AES_256_CBC)

    @property
    def diversifies_key(self) -> bool:
        """
        Whether the file key is mixed with the object reference before use.
        """
        return self in (CipherAlgorithm.RC4, CipherAlgorithm.AES_128_CBC)


class SecurityHandler:
    """
    Base class for security handlers.

    Subclasses register themselves under their ``/Filter`` name with
    :meth:`register`; :meth:`build` picks the right one for an encryption
    descriptor. The registry is populated at import time and never changes
    afterwards.

    :param version:
        The ``/V`` entry, see :class:`.SecurityHandlerVersion`.
    :param crypt_filter_config:
        The crypt filters of the handler. Handlers that predate crypt
        filters get a configuration with a single filter for everything.
    :param encrypt_metadata:
        Whether metadata streams are encrypted.
    """

    __registered_subclasses: Dict[str, Type['SecurityHandler']] = dict()
    _known_crypt_filters: Dict[str, 'CryptFilterBuilder'] = dict()

    def __init__(self, version: SecurityHandlerVersion,
                 crypt_filter_config: 'CryptFilterConfiguration',
                 encrypt_metadata=True):
        self.version = version
        self.crypt_filter_config = crypt_filter_config
        self.encrypt_metadata = encrypt_metadata
        self._credential = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        # every subclass gets its own copy of the crypt filter factories
        if '_known_crypt_filters' not in cls.__dict__:
            cls._known_crypt_filters = dict(cls._known_crypt_filters)

    @staticmethod
    def register(cls: Type['SecurityHandler']):
        """
        Class decorator adding a security handler to the registry.
        """
        SecurityHandler.__registered_subclasses[cls.get_name()] = cls
        return cls

    @staticmethod
    def get_handler_class(filter_name) -> Type['SecurityHandler']:
        """
        Look up a registered security handler class by ``/Filter`` name.

        :raise UnsupportedAlgorithmError:
            if there is no such handler.
        """
        try:
            return SecurityHandler.__registered_subclasses[filter_name]
        except KeyError:
            raise UnsupportedAlgorithmError(
                f"There is no security handler named {filter_name}."
            )

    @staticmethod
    def build(descriptor: 'EncryptionDescriptor', **kwargs) \
            -> 'SecurityHandler':
        """
        Set up the security handler named by the descriptor's ``/Filter``.
        Keyword arguments go to :meth:`instantiate_from_descriptor`.
        """
        cls = SecurityHandler.get_handler_class(descriptor.filter_name)
        return cls.instantiate_from_descriptor(descriptor, **kwargs)

    @classmethod
    def get_name(cls) -> str:
        raise NotImplementedError

    @classmethod
    def instantiate_from_descriptor(cls, descriptor: 'EncryptionDescriptor',
                                    **kwargs):
        raise NotImplementedError

    def extract_credential(self) -> Optional[SerialisableCredential]:
        """
        Return the credential of the last successful authentication, if it
        can be serialised. Authenticating with it later grants the same
        access level.
        """
        if isinstance(self._credential, SerialisableCredential):
            return self._credential
        return None

    def is_authenticated(self) -> bool:
        try:
            self.get_file_encryption_key()
            return True
        except PdfKeyNotAvailableError:
            return False

    def authenticate(self, credential) -> AuthResult:
        """
        Authenticate with a credential. What counts as a credential is up to
        the subclass.
        """
        raise NotImplementedError

    def get_string_filter(self) -> 'CryptFilter':
        return self.crypt_filter_config.get_for_string()

    def get_stream_filter(self, name=None) -> 'CryptFilter':
        """
        Return the default stream filter, or the filter called ``name``.

        :raise KeyError:
            if there is no filter called ``name``.
        """
        if name is None:
            return self.crypt_filter_config.get_for_stream()
        return self.crypt_filter_config[name]

    def get_file_encryption_key(self) -> bytes:
        """
        :raise PdfKeyNotAvailableError: when the key is not available
        """
        raise NotImplementedError

    @classmethod
    def read_cf_entry(cls, entry: 'CryptFilterEntry',
                      acts_as_default: bool) -> 'CryptFilter':
        """
        Turn a crypt filter table entry into a crypt filter, using the
        factories known to this handler class.
        """
        return build_crypt_filter(
            cls._known_crypt_filters, entry, acts_as_default
        )


class CryptFilter:
    """
    A crypt filter fixes the cipher and key length used for a class of
    payloads. The cipher work itself is done by :class:`.ObjectCipher`.
    """

    @property
    def method(self) -> generic.NameObject:
        """
        The ``/CFM`` name of the filter.
        """
        raise NotImplementedError

    @property
    def keylen(self) -> int:
        """
        Key length in bytes.
        """
        raise NotImplementedError

    @property
    def algorithm(self) -> CipherAlgorithm:
        raise NotImplementedError


class IdentityCryptFilter(CryptFilter, metaclass=misc.Singleton):
    """
    The filter that leaves data alone. All instances are the same object.
    """

    method = generic.NameObject('/None')
    keylen = 0
    algorithm = CipherAlgorithm.IDENTITY


IDENTITY = generic.NameObject('/Identity')
STD_CF = generic.NameObject('/StdCF')

ALL_PERMS = -4
"""
``/P`` value granting every permission.
"""


class CryptFilterConfiguration:
    """
    The crypt filters of a security handler, along with the defaults for
    strings and streams.

    :param crypt_filters:
        Crypt filters by name. ``/Identity`` is always available and
        doesn't need to be included.
    :param default_stream_filter:
        Name of the default filter for streams (``/StmF``).
    :param default_string_filter:
        Name of the default filter for strings (``/StrF``).
    :param default_file_filter:
        Name of the filter for embedded files (``/EFF``). It is only
        checked for existence.
    :raise MalformedEncryptionDescriptorError:
        if one of the defaults doesn't refer to a known crypt filter.
    """

    def __init__(self, crypt_filters: Dict[str, CryptFilter] = None,
                 default_stream_filter=IDENTITY, default_string_filter=IDENTITY,
                 default_file_filter=None):
        self._crypt_filters = crypt_filters or {}
        self._default_stream_filter = self._default(default_stream_filter)
        self._default_string_filter = self._default(default_string_filter)
        self._default(default_file_filter or default_stream_filter)

    def _default(self, name) -> CryptFilter:
        try:
            return self[name]
        except KeyError:
            raise MalformedEncryptionDescriptorError(
                f"Crypt filter {name} is used as a default, but "
                f"it is not defined."
            )

    def __getitem__(self, item) -> CryptFilter:
        if item == IDENTITY:
            return IdentityCryptFilter()
        return self._crypt_filters[item]

    def __contains__(self, item):
        return item == IDENTITY or item in self._crypt_filters

    def filters(self):
        return self._crypt_filters.values()

    def get_for_stream(self) -> CryptFilter:
        return self._default_stream_filter

    def get_for_string(self) -> CryptFilter:
        return self._default_string_filter


CryptFilterBuilder = Callable[['CryptFilterEntry', bool], CryptFilter]


def build_crypt_filter(reg: Dict[str, CryptFilterBuilder],
                       entry: 'CryptFilterEntry',
                       acts_as_default: bool) -> CryptFilter:
    """
    Instantiate a crypt filter from a table entry.

    :param reg:
        Crypt filter factories, by ``/CFM`` name.
    :param entry:
        A crypt filter table entry.
    :param acts_as_default:
        Whether the filter is named in ``/StmF`` or ``/StrF``.
    :return:
        A :class:`.CryptFilter`. Entries with method ``/None`` (or no method
        at all) yield the identity filter.
    :raise UnsupportedAlgorithmError:
        if the ``/CFM`` is unknown.
    """
    cfm = entry.method
    if cfm is None or cfm == '/None':
        return IdentityCryptFilter()
    try:
        factory = reg[cfm]
    except KeyError:
        raise UnsupportedAlgorithmError(
            f"No such crypt filter method: {cfm}"
        )
    return factory(entry, acts_as_default)
