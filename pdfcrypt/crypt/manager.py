"""
Document-scoped entry point to the security handler machinery.

One :class:`SecurityManager` is created per open document, and closed along
with it. All state (authentication, keys, caches) lives in the manager and
the security handler it owns; nothing is shared between documents.
"""

import io
import logging
from typing import BinaryIO, Optional, Union

from .. import generic
from ..config import CryptSettings
from .api import AuthenticationState, AuthResult, SecurityHandler
from .descriptor import EncryptionDescriptor
from .permissions import PermissionSet
from .provider import CryptoProvider

__all__ = ['SecurityManager']

logger = logging.getLogger(__name__)


def _crypt_filter_name_from_params(decode_params) -> Optional[str]:
    if decode_params is None:
        return None
    if isinstance(decode_params, (list, tuple)):
        for params in decode_params:
            name = _crypt_filter_name_from_params(params)
            if name is not None:
                return name
        return None
    if not isinstance(decode_params, dict):
        return None
    if not isinstance(decode_params, generic.DictionaryObject):
        decode_params = generic.DictionaryObject(decode_params)
    return decode_params.get('/Name')


class SecurityManager:
    """
    Façade over the security handler of a single document.

    :param descriptor:
        The encryption descriptor of the document.
    :param provider:
        The cryptographic provider to use.
    :param settings:
        Tunables, see :class:`.CryptSettings`.
    :raise UnsupportedAlgorithmError:
        if there is no security handler for the ``/Filter`` of the
        descriptor, or the handler can't be used.
    """

    def __init__(self, descriptor: EncryptionDescriptor,
                 provider: Optional[CryptoProvider] = None,
                 settings: Optional[CryptSettings] = None):
        self.descriptor = descriptor
        self.settings = settings or CryptSettings()
        self._handler = SecurityHandler.build(
            descriptor, provider=provider, settings=self.settings
        )
        logger.debug(
            f"Set up {descriptor.filter_name} security handler, "
            f"V={descriptor.version}, R={descriptor.revision}"
        )

    @classmethod
    def from_trailer(cls, encrypt_dict, id_array=None, **kwargs) \
            -> 'SecurityManager':
        """
        Set up a security manager from the trailer's ``/Encrypt`` and ``/ID``
        entries.

        :param encrypt_dict:
            The encryption dictionary.
        :param id_array:
            The ``/ID`` array of the trailer, if present.
        :return:
            A :class:`SecurityManager`.
        """
        id1 = id_array[0] if id_array else None
        descriptor = EncryptionDescriptor.from_pdf_object(encrypt_dict, id1)
        return cls(descriptor, **kwargs)

    @property
    def handler(self):
        return self._handler

    @property
    def auth_state(self) -> AuthenticationState:
        return self._handler.auth_state

    def authorize(self, password: Union[str, bytes]) -> bool:
        """
        Authenticate with a password. This must happen before any object is
        encrypted or decrypted.

        :return:
            ``True`` if the password was accepted (as user or owner password).
        """
        result = self._handler.authorize(password)
        return result.status.value > 0

    def authenticate(self, credential) -> AuthResult:
        """
        Authenticate with a password or a (serialised) credential.
        """
        return self._handler.authenticate(credential)

    def permissions(self) -> PermissionSet:
        return self._handler.permissions

    def encrypt(self, reference, data: bytes, is_string=False,
                crypt_filter_name=None, strict=False) -> bytes:
        """
        Encrypt the payload of a string or stream.

        :param strict:
            Raise :class:`.CipherFailure` on failure instead of returning
            an empty result.
        :raise PdfKeyNotAvailableError:
            if the manager is not authorised.
        """
        return self._handler.encrypt_object(
            reference, data, is_string=is_string,
            crypt_filter_name=crypt_filter_name, strict=strict
        )

    def decrypt(self, reference, data: bytes, is_string=False,
                crypt_filter_name=None, strict=False) -> bytes:
        """
        Decrypt the payload of a string or stream.

        :param strict:
            Raise :class:`.CipherFailure` on failure instead of returning
            an empty result.
        :return:
            The plaintext; empty if decryption failed, unless ``strict``.
        :raise PdfKeyNotAvailableError:
            if the manager is not authorised.
        """
        return self._handler.decrypt_object(
            reference, data, is_string=is_string,
            crypt_filter_name=crypt_filter_name, strict=strict
        )

    def _process_stream(self, process, reference, stream: BinaryIO,
                        decode_params, fallback_to_input, is_metadata,
                        strict):
        if fallback_to_input is None:
            fallback_to_input = self.settings.fallback_to_input
        start = stream.tell() if stream.seekable() else None
        output = io.BytesIO()
        written = process(
            reference, stream, output,
            crypt_filter_name=_crypt_filter_name_from_params(decode_params),
            is_metadata=is_metadata, strict=strict
        )
        if not written and fallback_to_input:
            output.close()
            if start is not None:
                stream.seek(start)
            logger.debug(f"Falling back to the raw stream for {reference}")
            return stream
        output.seek(0)
        return output

    def encrypt_stream(self, reference, stream: BinaryIO, decode_params=None,
                       fallback_to_input: Optional[bool] = None,
                       is_metadata=False, strict=False) -> BinaryIO:
        """
        Encrypt a stream payload.

        :param reference:
            The reference of the stream object.
        :param stream:
            Binary stream with the plaintext.
        :param decode_params:
            The stream's decode parameters, which may select a crypt filter
            through their ``/Name`` entry.
        :param fallback_to_input:
            Return the input stream (rewound) if the result is empty.
            Defaults to the value in the settings.
        :param is_metadata:
            Whether the stream is a metadata stream.
        :param strict:
            Raise :class:`.CipherFailure` on failure instead of returning
            an empty result (or falling back to the input).
        :return:
            A readable binary stream.
        """
        return self._process_stream(
            self._handler.encrypt_stream, reference, stream,
            decode_params, fallback_to_input, is_metadata, strict
        )

    def decrypt_stream(self, reference, stream: BinaryIO, decode_params=None,
                       fallback_to_input: Optional[bool] = None,
                       is_metadata=False, strict=False) -> BinaryIO:
        """
        Decrypt a stream payload. See :meth:`encrypt_stream` for the
        parameters.
        """
        return self._process_stream(
            self._handler.decrypt_stream, reference, stream,
            decode_params, fallback_to_input, is_metadata, strict
        )

    def close(self):
        """
        Dispose of all key material.
        """
        self._handler.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
