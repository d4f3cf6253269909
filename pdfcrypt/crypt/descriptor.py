"""
Read-only views over a document's encryption dictionary.

The :class:`EncryptionDescriptor` captures all entries of the encryption
dictionary that matter to the standard security handler, validated and
normalised once at document-open time. The ``/CF`` dictionary is wrapped in a
:class:`CryptFilterTable`, which is only parsed when a crypt filter is first
looked up.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from .. import generic
from ._util import as_signed
from .api import (
    IDENTITY,
    STD_CF,
    MalformedEncryptionDescriptorError,
    SecurityHandlerVersion,
    UnsupportedAlgorithmError,
)

__all__ = ['CryptFilterEntry', 'CryptFilterTable', 'EncryptionDescriptor']

logger = logging.getLogger(__name__)

DOC_OPEN = generic.NameObject('/DocOpen')
EF_OPEN = generic.NameObject('/EFOpen')

_SUPPORTED_VERSIONS = {
    2: (1, 2), 3: (1, 2), 4: (1, 2, 4), 5: (5,),
}


def _as_name(value) -> generic.NameObject:
    if not isinstance(value, str):
        raise MalformedEncryptionDescriptorError(
            f"Expected a name, not {value!r}"
        )
    return generic.NameObject(value if value.startswith('/') else '/' + value)


def _as_bytes(value) -> bytes:
    if isinstance(value, (generic.ByteStringObject, generic.TextStringObject)):
        return value.original_bytes
    elif isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    elif isinstance(value, str):
        try:
            return value.encode('latin-1')
        except UnicodeEncodeError:
            raise MalformedEncryptionDescriptorError(
                "String value is not a byte string"
            )
    raise MalformedEncryptionDescriptorError(
        f"Expected a string, not {type(value)}"
    )


def _as_int(value, entry) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedEncryptionDescriptorError(
            f"{entry} must be an integer, not {value!r}"
        )
    return int(value)


def _as_dict(value) -> generic.DictionaryObject:
    if isinstance(value, generic.DictionaryObject):
        return value
    elif isinstance(value, dict):
        return generic.DictionaryObject(value)
    raise MalformedEncryptionDescriptorError(
        f"Expected a dictionary, not {type(value)}"
    )


def _normalise_cf_length(length: Optional[int]) -> Optional[int]:
    # /Length in crypt filter dictionaries is in bits in some producers
    # and in bytes in others (the latter is what PDF 2.0 mandates)
    if length is None:
        return None
    return length if length < 40 else length // 8


@dataclass(frozen=True)
class CryptFilterEntry:
    """
    A single entry in the crypt filter table.
    """

    method: Optional[generic.NameObject] = None
    """
    The crypt filter method (``/CFM``): ``None`` (for ``/None``), ``/V2``,
    ``/AESV2`` or ``/AESV3``.
    """

    auth_event: generic.NameObject = DOC_OPEN
    """
    The ``/AuthEvent`` entry: ``/DocOpen`` or ``/EFOpen``.
    """

    length: Optional[int] = None
    """
    The key length in bytes, if specified.
    """

    @classmethod
    def from_pdf_object(cls, cfdict) -> 'CryptFilterEntry':
        cfdict = _as_dict(cfdict)
        method = cfdict.get_and_apply('/CFM', _as_name)
        if method == '/None':
            method = None
        auth_event = cfdict.get_and_apply(
            '/AuthEvent', _as_name, default=DOC_OPEN
        )
        length = cfdict.get_and_apply(
            '/Length', lambda x: _as_int(x, '/Length')
        )
        return CryptFilterEntry(
            method=method, auth_event=auth_event,
            length=_normalise_cf_length(length)
        )


class CryptFilterTable:
    """
    Named crypt filters, from the ``/CF`` entry of an encryption dictionary.

    The table is parsed on first lookup, and cached afterwards. Parsing is
    guarded by a lock, so lookups may happen from multiple threads.

    ``/Identity`` always resolves to a pass-through entry, and ``/StdCF``
    resolves even when it is not present in ``/CF``.
    """

    def __init__(self, cf_dict=None,
                 version: SecurityHandlerVersion = SecurityHandlerVersion.OTHER):
        self._raw = _as_dict(cf_dict) if cf_dict is not None else None
        self._version = version
        self._entries: Optional[Dict[str, CryptFilterEntry]] = None
        self._lock = threading.Lock()

    @property
    def declared(self) -> bool:
        """
        Whether the encryption dictionary had a ``/CF`` entry at all.
        """
        return self._raw is not None

    def _get_entries(self) -> Dict[str, CryptFilterEntry]:
        entries = self._entries
        if entries is None:
            with self._lock:
                entries = self._entries
                if entries is None:
                    entries = self._entries = self._build()
        return entries

    def _build(self) -> Dict[str, CryptFilterEntry]:
        logger.debug("Parsing crypt filter table")
        if self._raw is None:
            return {}
        return {
            generic.NameObject(name): CryptFilterEntry.from_pdf_object(cfdict)
            for name, cfdict in self._raw.items()
        }

    def _std_cf_fallback(self) -> Optional[CryptFilterEntry]:
        if self._version == SecurityHandlerVersion.RC4_OR_AES128:
            return CryptFilterEntry(
                method=generic.NameObject('/V2'), length=16
            )
        elif self._version == SecurityHandlerVersion.AES256:
            return CryptFilterEntry(
                method=generic.NameObject('/AESV3'), length=32
            )
        return None

    def lookup(self, name) -> Optional[CryptFilterEntry]:
        """
        Look up a crypt filter by name.

        :param name:
            The name of the crypt filter, with or without leading slash.
        :return:
            A :class:`CryptFilterEntry`, or ``None`` if there is no crypt filter
            by that name.
        """
        name = _as_name(name)
        if name == IDENTITY:
            return CryptFilterEntry(method=None)
        entry = self._get_entries().get(name)
        if entry is None and name == STD_CF:
            entry = self._std_cf_fallback()
        return entry

    def is_declared(self, name) -> bool:
        """
        Check whether a name refers to a crypt filter, without parsing
        the table.
        """
        name = _as_name(name)
        if name == IDENTITY:
            return True
        if self._raw is not None and name in self._raw:
            return True
        return name == STD_CF and self._std_cf_fallback() is not None

    def __getitem__(self, name) -> CryptFilterEntry:
        entry = self.lookup(name)
        if entry is None:
            raise KeyError(name)
        return entry

    def __contains__(self, name) -> bool:
        try:
            return self.lookup(name) is not None
        except MalformedEncryptionDescriptorError:
            return False

    def names(self):
        """
        The names of all crypt filters declared in ``/CF``.
        """
        return list(self._get_entries().keys())

    def items(self):
        return self._get_entries().items()


@dataclass(frozen=True)
class EncryptionDescriptor:
    """
    Immutable view over the encryption dictionary of a document, together
    with the first element of the document's file identifier.

    Use :meth:`from_pdf_object` to construct instances from an encryption
    dictionary; that method validates the entries.
    """

    filter_name: generic.NameObject
    """
    The ``/Filter`` entry (the name of the security handler).
    """

    version: int
    """
    The ``/V`` entry.
    """

    revision: int
    """
    The ``/R`` entry.
    """

    owner_entry: bytes
    """
    The ``/O`` entry.
    """

    user_entry: bytes
    """
    The ``/U`` entry.
    """

    permission_flags: int
    """
    The ``/P`` entry, as a signed 32-bit integer.
    """

    subfilter: Optional[generic.NameObject] = None
    length_bits: int = 40
    """
    The ``/Length`` entry, in bits.
    """

    explicit_length: bool = False
    """
    Whether ``/Length`` was present in the encryption dictionary.
    """

    owner_key_entry: Optional[bytes] = None
    user_key_entry: Optional[bytes] = None
    encrypted_perms: Optional[bytes] = None
    encrypt_metadata: bool = True
    file_id: Optional[bytes] = None
    stream_filter_name: generic.NameObject = IDENTITY
    string_filter_name: generic.NameObject = IDENTITY
    embedded_file_filter_name: Optional[generic.NameObject] = None
    crypt_filters: CryptFilterTable = field(
        default_factory=CryptFilterTable, compare=False, repr=False
    )

    @property
    def handler_version(self) -> SecurityHandlerVersion:
        return SecurityHandlerVersion.from_number(self.version)

    @property
    def uses_crypt_filters(self) -> bool:
        """
        Whether crypt filters are in effect (``/V`` 4 and up).
        """
        return self.version >= 4

    @property
    def legacy_key_length(self) -> int:
        """
        The length of the file encryption key, in bytes.
        """
        if self.revision == 2 or self.version == 1:
            return 5
        elif self.version >= 5:
            return 32
        elif self.version == 4:
            # the top-level /Length doesn't apply to crypt filters
            for name in (self.stream_filter_name, self.string_filter_name):
                if name == IDENTITY:
                    continue
                entry = self.crypt_filters.lookup(name)
                if entry is not None and entry.method is not None:
                    return entry.length or 16
            return 16
        return self.length_bits // 8

    @classmethod
    def from_pdf_object(cls, encrypt_dict, id1=None) \
            -> 'EncryptionDescriptor':
        """
        Read an encryption descriptor from an encryption dictionary.

        :param encrypt_dict:
            The encryption dictionary, as a :class:`.generic.DictionaryObject`
            or a plain dictionary (keys with or without leading slash).
        :param id1:
            The first element of the document's ``/ID`` array.
            Required for revisions 2-4.
        :return:
            An :class:`EncryptionDescriptor`.
        :raise UnsupportedAlgorithmError:
            if the combination of ``/V`` and ``/R`` is not supported.
        :raise MalformedEncryptionDescriptorError:
            if required entries are missing or malformed.
        """
        encrypt_dict = _as_dict(encrypt_dict)
        filter_name = encrypt_dict.get_and_apply(
            '/Filter', _as_name, default=generic.NameObject('/Standard')
        )
        subfilter = encrypt_dict.get_and_apply('/SubFilter', _as_name)
        version = encrypt_dict.get_and_apply(
            '/V', lambda x: _as_int(x, '/V'), default=0
        )
        try:
            revision = _as_int(encrypt_dict['/R'], '/R')
        except KeyError:
            raise MalformedEncryptionDescriptorError("/R entry is required")
        if revision >= 6:
            raise UnsupportedAlgorithmError(
                f"Security handler revision {revision} is not supported"
            )
        try:
            supported_versions = _SUPPORTED_VERSIONS[revision]
        except KeyError:
            raise UnsupportedAlgorithmError(
                f"Security handler revision {revision} is not supported"
            )
        if version not in supported_versions:
            raise UnsupportedAlgorithmError(
                f"Encryption algorithm version {version} is not supported "
                f"in combination with revision {revision}"
            )

        explicit_length = '/Length' in encrypt_dict
        length_bits = encrypt_dict.get_and_apply(
            '/Length', lambda x: _as_int(x, '/Length'), default=40
        )
        if length_bits % 8 or not (40 <= length_bits <= 256):
            raise MalformedEncryptionDescriptorError(
                "Key length must be a multiple of 8 between 40 and 256, "
                f"not {length_bits}"
            )
        if version in (1, 2) and explicit_length and length_bits > 128 \
                and revision > 2:
            raise MalformedEncryptionDescriptorError(
                f"Key length of {length_bits} bits is not allowed "
                f"for revision {revision}"
            )

        try:
            owner_entry = _as_bytes(encrypt_dict['/O'])
            user_entry = _as_bytes(encrypt_dict['/U'])
        except KeyError:
            raise MalformedEncryptionDescriptorError(
                "/O and /U entries must be present"
            )
        try:
            permission_flags = as_signed(_as_int(encrypt_dict['/P'], '/P'))
        except KeyError:
            raise MalformedEncryptionDescriptorError("/P entry is required")

        kwargs = {}
        if revision == 5:
            if len(owner_entry) < 48 or len(user_entry) < 48:
                raise MalformedEncryptionDescriptorError(
                    "/U and /O entries must be 48 bytes long in a "
                    "rev. 5 security handler"
                )
            owner_entry, user_entry = owner_entry[:48], user_entry[:48]
            oe = encrypt_dict.get_and_apply('/OE', _as_bytes)
            ue = encrypt_dict.get_and_apply('/UE', _as_bytes)
            if oe is None or ue is None or len(oe) < 32 or len(ue) < 32:
                raise MalformedEncryptionDescriptorError(
                    "/UE and /OE must be present and be 32 bytes long in a "
                    "rev. 5 security handler"
                )
            perms = encrypt_dict.get_and_apply('/Perms', _as_bytes)
            if perms is None or len(perms) < 16:
                raise MalformedEncryptionDescriptorError(
                    "/Perms must be present and be 16 bytes long in a "
                    "rev. 5 security handler"
                )
            kwargs.update(
                owner_key_entry=oe[:32], user_key_entry=ue[:32],
                encrypted_perms=perms[:16]
            )
        else:
            if len(owner_entry) < 32 or len(user_entry) < 32:
                raise MalformedEncryptionDescriptorError(
                    "/U and /O entries must be 32 bytes long in a "
                    "legacy security handler"
                )
            owner_entry, user_entry = owner_entry[:32], user_entry[:32]
            if id1 is None:
                raise MalformedEncryptionDescriptorError(
                    "The document ID is required for legacy encryption"
                )

        handler_version = SecurityHandlerVersion.from_number(version)
        cf_table = CryptFilterTable(
            encrypt_dict.get('/CF'), version=handler_version
        )
        if version >= 4:
            stmf = encrypt_dict.get_and_apply(
                '/StmF', _as_name, default=IDENTITY
            )
            strf = encrypt_dict.get_and_apply(
                '/StrF', _as_name, default=IDENTITY
            )
            eff = encrypt_dict.get_and_apply('/EFF', _as_name)
            for name in (stmf, strf, eff):
                if name is not None and not cf_table.is_declared(name):
                    raise MalformedEncryptionDescriptorError(
                        f"Crypt filter {name} is not defined in /CF"
                    )
            kwargs.update(
                stream_filter_name=stmf, string_filter_name=strf,
                embedded_file_filter_name=eff
            )

        return EncryptionDescriptor(
            filter_name=filter_name, subfilter=subfilter,
            version=version, revision=revision,
            length_bits=length_bits, explicit_length=explicit_length,
            owner_entry=owner_entry, user_entry=user_entry,
            permission_flags=permission_flags,
            encrypt_metadata=encrypt_dict.get_and_apply(
                '/EncryptMetadata', bool, default=True
            ),
            file_id=_as_bytes(id1) if id1 is not None else None,
            crypt_filters=cf_table, **kwargs
        )

    def as_pdf_object(self) -> generic.DictionaryObject:
        """
        Serialise the descriptor back to an encryption dictionary.
        The file identifier is not part of the result.
        """
        result = generic.DictionaryObject()
        result['/Filter'] = self.filter_name
        if self.subfilter is not None:
            result['/SubFilter'] = self.subfilter
        result['/V'] = generic.NumberObject(self.version)
        result['/R'] = generic.NumberObject(self.revision)
        if self.explicit_length:
            result['/Length'] = generic.NumberObject(self.length_bits)
        result['/O'] = generic.ByteStringObject(self.owner_entry)
        result['/U'] = generic.ByteStringObject(self.user_entry)
        result['/P'] = generic.NumberObject(self.permission_flags)
        if self.revision >= 5:
            result['/OE'] = generic.ByteStringObject(self.owner_key_entry)
            result['/UE'] = generic.ByteStringObject(self.user_key_entry)
            result['/Perms'] = generic.ByteStringObject(self.encrypted_perms)
        if self.uses_crypt_filters:
            result['/EncryptMetadata'] = \
                generic.BooleanObject(self.encrypt_metadata)
            result['/StmF'] = self.stream_filter_name
            result['/StrF'] = self.string_filter_name
            if self.embedded_file_filter_name is not None:
                result['/EFF'] = self.embedded_file_filter_name
            if self.crypt_filters.declared:
                result['/CF'] = self.crypt_filters._raw
        return result

    def summary(self) -> dict:
        """
        Summarise the descriptor in a form suitable for display.
        """
        result = {
            'filter': self.filter_name,
            'version': self.version,
            'revision': self.revision,
            'key-length': self.legacy_key_length * 8,
            'permissions': self.permission_flags,
            'encrypt-metadata': self.encrypt_metadata,
        }
        if self.uses_crypt_filters:
            result['stream-filter'] = self.stream_filter_name
            result['string-filter'] = self.string_filter_name
            result['crypt-filters'] = {
                name: entry.method or '/None'
                for name, entry in self.crypt_filters.items()
            }
        return result
