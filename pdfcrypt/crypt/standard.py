import enum
import logging
import threading
from typing import Dict, Optional, Union

from .. import generic, misc
from ..config import CryptSettings
from . import _aes256, _legacy
from ._util import as_signed
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
)
from .cipher import CipherMode, ObjectCipher, ObjectKeyCache
from .cred_ser import (
    PasswordCredential,
    SerialisableCredential,
    SerialisedCredential,
)
from .descriptor import CryptFilterEntry, EncryptionDescriptor
from .filter_mixins import AESCryptFilterMixin, RC4CryptFilterMixin
from .permissions import PermissionSet
from .provider import DEFAULT_PROVIDER, CryptoProvider, Primitive

__all__ = [
    'StandardSecuritySettingsRevision', 'StandardAESCryptFilter',
    'StandardRC4CryptFilter',
    'StandardSecurityHandler',
]

logger = logging.getLogger(__name__)


@enum.unique
class StandardSecuritySettingsRevision(misc.VersionEnum):
    """Indicate the standard security handler revision to emulate."""

    RC4_BASIC = 2
    RC4_EXTENDED = 3
    RC4_OR_AES128 = 4
    AES256 = 5

    OTHER = None
    """
    Placeholder value for unsupported revisions.
    """

    @classmethod
    def from_number(cls, value) -> 'StandardSecuritySettingsRevision':
        try:
            return StandardSecuritySettingsRevision(value)
        except ValueError:
            return StandardSecuritySettingsRevision.OTHER


class StandardAESCryptFilter(AESCryptFilterMixin):
    """
    AES crypt filter for the standard security handler.
    """
    pass


class StandardRC4CryptFilter(RC4CryptFilterMixin):
    """
    RC4 crypt filter for the standard security handler.
    """
    pass


def _std_rc4_config(keylen):
    return CryptFilterConfiguration(
        {STD_CF: StandardRC4CryptFilter(keylen=keylen)},
        default_stream_filter=STD_CF,
        default_string_filter=STD_CF
    )


def _build_legacy_standard_crypt_filter(entry: CryptFilterEntry,
                                        _acts_as_default):
    return StandardRC4CryptFilter(keylen=entry.length or 16)


def _std_cf_entries(cfm: str, keylen_bytes: int, encrypt_metadata: bool):
    # a single /StdCF filter for both strings and streams
    return {
        '/CF': generic.DictionaryObject({
            STD_CF: generic.DictionaryObject({
                '/CFM': generic.NameObject(cfm),
                '/AuthEvent': generic.NameObject('/DocOpen'),
                '/Length': generic.NumberObject(keylen_bytes),
            })
        }),
        '/StmF': STD_CF,
        '/StrF': STD_CF,
        '/EncryptMetadata': generic.BooleanObject(encrypt_metadata),
    }


_REQUIRED_PRIMITIVES = {
    CipherAlgorithm.RC4: (Primitive.RC4,),
    CipherAlgorithm.AES_128_CBC: (Primitive.AES_128,),
    CipherAlgorithm.AES_256_CBC: (Primitive.AES_256,),
    CipherAlgorithm.IDENTITY: (),
}


@SecurityHandler.register
class StandardSecurityHandler(SecurityHandler):
    """
    Implementation of the standard (password-based) security handler.

    Instances are normally created through :meth:`.SecurityHandler.build`
    or by the :class:`.SecurityManager`, from an
    :class:`.EncryptionDescriptor`.

    :param descriptor:
        The encryption descriptor of the document.
    :param crypt_filter_config:
        The crypt filter configuration. If not specified, the handler sets up
        a single RC4 filter (for ``/V`` < 4) or requires one to be passed in.
    :param provider:
        The cryptographic provider. The availability of all primitives the
        descriptor requires is checked on construction.
    :param settings:
        Tunables, see :class:`.CryptSettings`.
    :raise UnsupportedAlgorithmError:
        if the revision is not supported, or the provider lacks a required
        primitive.
    :raise MalformedEncryptionDescriptorError:
        if an AES crypt filter can't be used with the file key length.
    """

    _known_crypt_filters: Dict[str, CryptFilterBuilder] = {
        '/V2': _build_legacy_standard_crypt_filter,
        '/AESV2': lambda _, __: StandardAESCryptFilter(keylen=16),
        '/AESV3': lambda _, __: StandardAESCryptFilter(keylen=32),
        '/Identity': lambda _, __: IdentityCryptFilter()
    }

    @classmethod
    def get_name(cls) -> str:
        return generic.NameObject('/Standard')

    def __init__(self, descriptor: EncryptionDescriptor,
                 crypt_filter_config: Optional[CryptFilterConfiguration] = None,
                 provider: Optional[CryptoProvider] = None,
                 settings: Optional[CryptSettings] = None):
        version = descriptor.handler_version
        revision = StandardSecuritySettingsRevision.from_number(
            descriptor.revision
        )
        if revision == StandardSecuritySettingsRevision.OTHER \
                or version == SecurityHandlerVersion.OTHER:
            raise UnsupportedAlgorithmError(
                f"Unsupported standard security handler: V={descriptor.version}"
                f", R={descriptor.revision}"
            )
        if crypt_filter_config is None:
            if version <= SecurityHandlerVersion.RC4_LONGER_KEYS:
                crypt_filter_config = _std_rc4_config(
                    descriptor.legacy_key_length
                )
            else:
                raise misc.PdfReadError(
                    "Crypt filter configuration is required for handlers "
                    "of version 4 and up"
                )
        super().__init__(
            version, crypt_filter_config,
            encrypt_metadata=descriptor.encrypt_metadata
        )
        self.descriptor = descriptor
        self.revision = revision
        self.perms = as_signed(descriptor.permission_flags)
        self._check_key_lengths()
        self.settings = settings or CryptSettings()
        self.provider = provider or DEFAULT_PROVIDER
        self.provider.check_available(self._required_primitives())

        self._cipher = ObjectCipher(
            provider=self.provider,
            key_cache=ObjectKeyCache(self.settings.object_key_cache_size),
            chunk_size=self.settings.stream_chunk_size
        )
        self._lock = threading.RLock()
        self._state = AuthenticationState.UNAUTHENTICATED
        self._active_password: Optional[bytes] = None
        self._shared_key: Optional[bytes] = None
        self._disposed = False

    @classmethod
    def process_crypt_filters(cls, descriptor: EncryptionDescriptor) \
            -> Optional[CryptFilterConfiguration]:
        """
        Set up the crypt filter configuration described by the ``/CF``,
        ``/StmF``, ``/StrF`` and ``/EFF`` entries.

        :return:
            A :class:`.CryptFilterConfiguration`, or ``None`` if the
            descriptor doesn't use crypt filters.
        :raise UnsupportedAlgorithmError:
            if a crypt filter uses an unknown method.
        """
        if not descriptor.uses_crypt_filters:
            return None
        table = descriptor.crypt_filters
        stmf = descriptor.stream_filter_name
        strf = descriptor.string_filter_name
        eff = descriptor.embedded_file_filter_name
        names = set(table.names())
        # /StdCF may be used without being declared
        names.update(n for n in (stmf, strf, eff) if n == STD_CF)
        names.discard(IDENTITY)
        crypt_filters = {
            name: cls.read_cf_entry(table[name], name in (stmf, strf))
            for name in names
        }
        return CryptFilterConfiguration(
            crypt_filters=crypt_filters, default_stream_filter=stmf,
            default_string_filter=strf, default_file_filter=eff
        )

    @classmethod
    def instantiate_from_descriptor(cls, descriptor: EncryptionDescriptor,
                                    **kwargs):
        return StandardSecurityHandler(
            descriptor,
            crypt_filter_config=cls.process_crypt_filters(descriptor),
            **kwargs
        )

    @classmethod
    def instantiate_from_pdf_object(cls, encrypt_dict, id1=None, **kwargs):
        """
        Instantiate a handler from an encryption dictionary directly.
        """
        descriptor = EncryptionDescriptor.from_pdf_object(encrypt_dict, id1)
        return cls.instantiate_from_descriptor(descriptor, **kwargs)

    def _check_key_lengths(self):
        keylen = self.descriptor.legacy_key_length
        for cf in self.crypt_filter_config.filters():
            if not cf.algorithm.uses_aes:
                continue
            # object keys are truncated to 16 bytes
            effective = min(16, keylen + 5) if cf.algorithm.diversifies_key \
                else keylen
            if effective != cf.keylen:
                raise MalformedEncryptionDescriptorError(
                    f"Crypt filter method {cf.method} requires a "
                    f"{cf.keylen * 8}-bit key, but the file encryption key "
                    f"is {keylen * 8} bits long"
                )

    def _required_primitives(self):
        if self.revision >= StandardSecuritySettingsRevision.AES256:
            required = {Primitive.SHA256, Primitive.AES_256}
        else:
            required = {Primitive.MD5, Primitive.RC4}
        for cf in self.crypt_filter_config.filters():
            required.update(_REQUIRED_PRIMITIVES[cf.algorithm])
        return sorted(required, key=lambda p: p.value)

    @classmethod
    def build_from_pw_legacy(cls, rev: StandardSecuritySettingsRevision,
                             id1, desired_owner_pass, desired_user_pass=None,
                             keylen_bytes=16, use_aes128=True,
                             perms: int = ALL_PERMS,
                             encrypt_metadata=True, **kwargs):
        """
        Set up a legacy password-based security handler, including freshly
        computed ``/O`` and ``/U`` values. The handler starts out
        authenticated as the owner.

        .. danger::
            The functionality implemented by this handler is deprecated in the
            PDF standard. It is provided for testing purposes, and to
            interface with legacy systems.

        :param rev:
            Security handler revision to use, see
            :class:`.StandardSecuritySettingsRevision`.
        :param id1:
            The first part of the document ID.
        :param desired_owner_pass:
            Desired owner password.
        :param desired_user_pass:
            Desired user password. Defaults to the owner password.
        :param keylen_bytes:
            Length of the key (in bytes).
        :param use_aes128:
            Use AES-128 instead of RC4 (default: ``True``), only relevant for
            revision 4.
        :param perms:
            Permission bits to set (defined as an integer)
        :param encrypt_metadata:
            Whether document metadata is encrypted (revision 4 only).
        :return:
            A :class:`StandardSecurityHandler` instance.
        """
        encoding = (kwargs.get('settings') or CryptSettings()) \
            .legacy_password_encoding
        desired_owner_pass = _legacy.legacy_normalise_pw(
            desired_owner_pass, encoding
        )
        desired_user_pass = (
            _legacy.legacy_normalise_pw(desired_user_pass, encoding)
            if desired_user_pass is not None else desired_owner_pass
        )
        if rev > StandardSecuritySettingsRevision.RC4_OR_AES128:
            raise ValueError(
                f"{rev} is not supported by this bootstrapping method."
            )
        if rev == StandardSecuritySettingsRevision.RC4_BASIC:
            keylen_bytes = 5
        elif use_aes128 and \
                rev == StandardSecuritySettingsRevision.RC4_OR_AES128:
            keylen_bytes = 16
        o_entry = _legacy.compute_owner_verifier(
            desired_owner_pass, desired_user_pass, rev.value, keylen_bytes
        )

        # force perms to a 4-byte format
        perms = as_signed(perms & 0xfffffffc)
        if rev == StandardSecuritySettingsRevision.RC4_BASIC:
            # some permissions are not available for these security handlers
            perms = as_signed(perms | 0xffffffc0)
            u_entry, _ = _legacy.compute_u_value_r2(
                desired_user_pass, o_entry, perms, id1
            )
            version = SecurityHandlerVersion.RC4_40
        else:
            u_entry, _ = _legacy.compute_u_value_r34(
                desired_user_pass, rev.value, keylen_bytes, o_entry, perms,
                id1, encrypt_metadata
            )
            version = SecurityHandlerVersion.RC4_LONGER_KEYS \
                if rev == StandardSecuritySettingsRevision.RC4_EXTENDED \
                else SecurityHandlerVersion.RC4_OR_AES128

        encrypt_dict = generic.DictionaryObject({
            '/Filter': cls.get_name(),
            '/V': generic.NumberObject(version.value),
            '/R': generic.NumberObject(rev.value),
            '/Length': generic.NumberObject(keylen_bytes * 8),
            '/O': generic.ByteStringObject(o_entry),
            '/U': generic.ByteStringObject(u_entry),
            '/P': generic.NumberObject(perms),
        })
        if version == SecurityHandlerVersion.RC4_OR_AES128:
            encrypt_dict.update(_std_cf_entries(
                '/AESV2' if use_aes128 else '/V2', keylen_bytes,
                encrypt_metadata
            ))

        sh = cls.instantiate_from_pdf_object(encrypt_dict, id1, **kwargs)
        sh._active_password = desired_user_pass
        sh._state = AuthenticationState.OWNER_AUTHENTICATED
        sh._credential = PasswordCredential({
            'pwd_bytes': desired_owner_pass, 'id1': id1
        })
        return sh

    @classmethod
    def build_from_pw(cls, desired_owner_pass, desired_user_pass=None,
                      perms=ALL_PERMS, encrypt_metadata=True, **kwargs):
        """
        Set up a revision 5 (AES-256) password-based security handler with
        freshly generated key material. The handler starts out authenticated
        as the owner.

        :param desired_owner_pass:
            Desired owner password.
        :param desired_user_pass:
            Desired user password. Defaults to the owner password.
        :param perms:
            Desired usage permissions.
        :param encrypt_metadata:
            Whether to set up the security handler for encrypting metadata
            as well.
        :return:
            A :class:`StandardSecurityHandler` instance.
        """
        owner_pw_bytes = _aes256.r5_normalise_pw(desired_owner_pass)
        user_pw_bytes = (
            _aes256.r5_normalise_pw(desired_user_pass)
            if desired_user_pass is not None else owner_pw_bytes
        )
        perms = as_signed(perms & 0xfffffffc)
        entries = _aes256.compute_r5_entries(
            owner_pw_bytes, user_pw_bytes, perms,
            encrypt_metadata=encrypt_metadata
        )
        encrypt_dict = generic.DictionaryObject({
            '/Filter': cls.get_name(),
            '/V': generic.NumberObject(5),
            '/R': generic.NumberObject(5),
            '/Length': generic.NumberObject(256),
            '/P': generic.NumberObject(perms),
        })
        encrypt_dict.update(_std_cf_entries('/AESV3', 32, encrypt_metadata))
        for k in ('O', 'U', 'OE', 'UE', 'Perms'):
            encrypt_dict[k] = generic.ByteStringObject(entries[k])
        sh = cls.instantiate_from_pdf_object(encrypt_dict, **kwargs)
        sh._shared_key = entries['key']
        sh._state = AuthenticationState.OWNER_AUTHENTICATED
        sh._credential = PasswordCredential({'pwd_bytes': owner_pw_bytes})
        return sh

    @property
    def auth_state(self) -> AuthenticationState:
        return self._state

    @property
    def permissions(self) -> PermissionSet:
        return PermissionSet.decode(self.perms, self.revision.value)

    def authenticate(self, credential) -> AuthResult:
        """
        Authenticate a user to this security handler.

        :param credential:
            The credential to use: a password (text or bytes), a
            :class:`.PasswordCredential` or its serialised form.
        :return:
            An :class:`AuthResult` object indicating the level of access
            obtained.
        """
        if isinstance(credential, SerialisedCredential):
            credential = SerialisableCredential.deserialise(credential)
        if isinstance(credential, PasswordCredential):
            id1 = credential.id1
            if id1 is not None and self.descriptor.file_id is not None \
                    and id1 != self.descriptor.file_id:
                logger.warning(
                    "Credential was issued for a document with a different ID"
                )
            credential = credential.password
        if not isinstance(credential, (str, bytes)):
            raise misc.PdfReadError(
                f"Standard authentication credential must be a "
                f"string, byte string or PasswordCredential, "
                f"not {type(credential)}."
            )
        return self.authorize(credential)

    def authorize(self, password: Union[str, bytes]) -> AuthResult:
        """
        Attempt to authenticate with a password, and derive the file
        encryption key on success.

        For revisions 2-4, the password is first checked as a user password,
        then as an owner password. For revision 5, it's the other way around.

        A failed attempt after a successful one does not affect the current
        authentication state.

        :param password:
            The password.
        :return:
            An :class:`.AuthResult`.
        """
        with self._lock:
            if self.revision >= StandardSecuritySettingsRevision.AES256:
                pw_bytes = _aes256.r5_normalise_pw(password)
                key, status = _aes256.compute_file_key_r5(
                    pw_bytes, self.descriptor,
                    strict_perms=self.settings.strict_perms
                )
                active = None
            else:
                pw_bytes = _legacy.legacy_normalise_pw(
                    password, self.settings.legacy_password_encoding
                )
                # the file key is derived from the active password on demand
                key = None
                status, active = self._authorize_legacy(pw_bytes)

            if status == AuthStatus.FAILED:
                logger.info("Password authentication failed")
                if not self._state.is_authenticated:
                    self._state = AuthenticationState.REJECTED
                return AuthResult(status=AuthStatus.FAILED)

            logger.debug(f"Authenticated with status {status.name}")
            self._shared_key = key
            self._active_password = active
            self._state = AuthenticationState.from_status(status)
            self._disposed = False
            self._credential = PasswordCredential({
                'pwd_bytes': pw_bytes, 'id1': self.descriptor.file_id
            })
            return AuthResult(status=status, permission_flags=self.perms)

    def _authorize_legacy(self, pw_bytes: bytes):
        descriptor = self.descriptor
        if _legacy.authenticate_user(pw_bytes, descriptor):
            active = pw_bytes
            status = AuthStatus.USER
        else:
            recovered = _legacy.recover_user_password(pw_bytes, descriptor)
            if not _legacy.authenticate_user(recovered, descriptor):
                return AuthStatus.FAILED, None
            active = recovered
            status = AuthStatus.OWNER
        # object keys always derive from the user password
        return status, active

    def get_file_encryption_key(self) -> bytes:
        """
        Retrieve the (global) file encryption key for this security handler.

        :return:
            The file encryption key as a :class:`bytes` object.
        :raise PdfKeyNotAvailableError:
            Raised if no (successful) authentication took place, or if the
            handler has been disposed.
        """
        key = self._shared_key
        if key is not None:
            return key
        with self._lock:
            key = self._shared_key
            if key is None and self._active_password is not None \
                    and self._state.is_authenticated:
                key = self._shared_key = _legacy.compute_file_key(
                    self._active_password, self.descriptor
                )
            if key is None:
                if self._disposed:
                    msg = "Security handler has been disposed."
                elif self._state == AuthenticationState.REJECTED:
                    msg = "Authentication failed."
                else:
                    msg = "No key available, please authenticate first."
                raise PdfKeyNotAvailableError(msg)
            return key

    def resolve_crypt_filter(self, is_string: bool,
                             crypt_filter_name=None,
                             is_metadata=False) -> CryptFilter:
        """
        Determine the crypt filter that applies to a string or stream.

        :param is_string:
            ``True`` for strings, ``False`` for streams.
        :param crypt_filter_name:
            Crypt filter explicitly requested by a stream (through its
            decode parameters). Ignored for strings.
        :param is_metadata:
            Whether the stream is a metadata stream.
        :raise CipherFailure:
            if the requested crypt filter does not exist.
        """
        if not self.descriptor.uses_crypt_filters:
            return self.crypt_filter_config.get_for_string() if is_string \
                else self.crypt_filter_config.get_for_stream()
        if is_string:
            return self.get_string_filter()
        if is_metadata and not self.encrypt_metadata:
            return IdentityCryptFilter()
        if crypt_filter_name is not None:
            name = crypt_filter_name if crypt_filter_name.startswith('/') \
                else '/' + crypt_filter_name
            try:
                return self.get_stream_filter(generic.NameObject(name))
            except KeyError:
                raise CipherFailure(f"Unknown crypt filter {name}")
        return self.get_stream_filter()

    def resolve_algorithm(self, reference, is_string: bool,
                          crypt_filter_name=None,
                          is_metadata=False) -> CipherAlgorithm:
        """
        Determine the cipher algorithm that applies to an object.

        :param reference:
            The reference of the object.
        :param is_string:
            ``True`` for strings, ``False`` for streams.
        :param crypt_filter_name:
            Crypt filter explicitly requested by a stream.
        :param is_metadata:
            Whether the stream is a metadata stream.
        :return:
            A :class:`.CipherAlgorithm`.
        """
        cf = self.resolve_crypt_filter(
            is_string, crypt_filter_name, is_metadata
        )
        logger.debug(f"Crypt filter for {reference}: {cf.method}")
        return cf.algorithm

    def _process(self, reference, data: bytes, mode: CipherMode,
                 is_string, crypt_filter_name, is_metadata, strict) -> bytes:
        key = self.get_file_encryption_key()
        try:
            algorithm = self.resolve_algorithm(
                reference, is_string, crypt_filter_name, is_metadata
            )
            return self._cipher.apply(reference, key, algorithm, data, mode)
        except CipherFailure as e:
            if strict:
                raise
            logger.warning(
                f"Failed to {mode.name.lower()} object {reference}: {e.msg}"
            )
            return b''

    def encrypt_object(self, reference, data: bytes, is_string=False,
                       crypt_filter_name=None, is_metadata=False,
                       strict=False) -> bytes:
        """
        Encrypt the payload of a string or stream.

        :param strict:
            Raise :class:`.CipherFailure` instead of returning an empty
            result when encryption fails.
        :return:
            The ciphertext, or an empty byte string if encryption failed.
        :raise PdfKeyNotAvailableError:
            if the handler is not authenticated.
        """
        return self._process(
            reference, data, CipherMode.ENCRYPT, is_string,
            crypt_filter_name, is_metadata, strict
        )

    def decrypt_object(self, reference, data: bytes, is_string=False,
                       crypt_filter_name=None, is_metadata=False,
                       strict=False) -> bytes:
        """
        Decrypt the payload of a string or stream.

        :param strict:
            Raise :class:`.CipherFailure` instead of returning an empty
            result when decryption fails.
        :return:
            The plaintext, or an empty byte string if decryption failed.
        :raise PdfKeyNotAvailableError:
            if the handler is not authenticated.
        """
        return self._process(
            reference, data, CipherMode.DECRYPT, is_string,
            crypt_filter_name, is_metadata, strict
        )

    def _process_stream(self, reference, input_stream, output_stream,
                        mode: CipherMode, crypt_filter_name,
                        is_metadata, strict) -> int:
        key = self.get_file_encryption_key()
        start = output_stream.tell() if output_stream.seekable() else None
        try:
            algorithm = self.resolve_algorithm(
                reference, False, crypt_filter_name, is_metadata
            )
            return self._cipher.apply_stream(
                reference, key, algorithm, input_stream, output_stream, mode
            )
        except CipherFailure as e:
            if start is not None:
                output_stream.seek(start)
                output_stream.truncate()
            if strict:
                raise
            logger.warning(
                f"Failed to {mode.name.lower()} stream {reference}: {e.msg}"
            )
            return 0

    def encrypt_stream(self, reference, input_stream, output_stream,
                       crypt_filter_name=None, is_metadata=False,
                       strict=False) -> int:
        """
        Encrypt a stream payload, reading from ``input_stream`` and writing
        to ``output_stream``.

        :return:
            The number of bytes written; ``0`` if encryption failed and
            ``strict`` is not set.
        """
        return self._process_stream(
            reference, input_stream, output_stream, CipherMode.ENCRYPT,
            crypt_filter_name, is_metadata, strict
        )

    def decrypt_stream(self, reference, input_stream, output_stream,
                       crypt_filter_name=None, is_metadata=False,
                       strict=False) -> int:
        """
        Decrypt a stream payload, reading from ``input_stream`` and writing
        to ``output_stream``.

        :return:
            The number of bytes written; ``0`` if decryption failed and
            ``strict`` is not set.
        """
        return self._process_stream(
            reference, input_stream, output_stream, CipherMode.DECRYPT,
            crypt_filter_name, is_metadata, strict
        )

    def dispose(self):
        """
        Drop the file encryption key, the active password and all cached
        object keys.
        """
        with self._lock:
            self._shared_key = None
            self._active_password = None
            self._credential = None
            self._cipher.key_cache.clear()
            self._state = AuthenticationState.UNAUTHENTICATED
            self._disposed = True
