"""
Minimal implementation of the PDF object types exchanged with the
document-loading layer.

The loader is responsible for parsing; the security handler only needs to look
at encryption dictionaries, crypt filter dictionaries, string payloads and
object references. Plain Python values (``dict``, ``bytes``, ``int``, ...) are
accepted wherever these types are expected.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

__all__ = [
    'Reference', 'PdfObject', 'BooleanObject', 'NumberObject',
    'ByteStringObject', 'TextStringObject', 'NameObject', 'ArrayObject',
    'DictionaryObject', 'pdf_name', 'encode_pdfdocencoding',
    'decode_pdfdocencoding',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reference:
    """
    A reference to an object with a certain ID and generation number.

    In the context of encryption, the pair identifies the indirect object
    that a string or stream belongs to, and is mixed into the per-object key.
    """

    idnum: int
    """
    The object's ID.
    """

    generation: int = 0
    """
    The object's generation number (usually `0`)
    """

    def __post_init__(self):
        if self.idnum < 0 or self.generation < 0:
            raise ValueError(
                "Object and generation numbers must be non-negative, "
                f"not {self.idnum} {self.generation}"
            )

    def __str__(self):
        return f"{self.idnum} {self.generation} R"


class PdfObject:
    """Superclass for all PDF objects."""

    def get_object(self):
        """
        Resolves indirect references. Direct objects resolve to themselves.
        """
        return self


class BooleanObject(PdfObject):

    def __init__(self, value):
        self.value = bool(value)

    def __eq__(self, o):
        if isinstance(o, BooleanObject):
            return o.value == self.value
        elif isinstance(o, bool):
            return o == self.value
        else:
            return False

    def __hash__(self):
        return hash(self.value)

    def __bool__(self):
        return self.value

    def __repr__(self):
        return str(self.value)


class NumberObject(int, PdfObject):
    """PDF number (integers only; the encryption layer has no use for reals)."""
    pass


class ByteStringObject(bytes, PdfObject):
    """PDF bytestring class."""

    original_bytes = property(lambda self: bytes(self))
    """
    For compatibility with :attr:`.TextStringObject.original_bytes`
    """


class TextStringObject(str, PdfObject):
    """
    PDF text string object.

    The loader may decode string literals to text before handing them over.
    Encryption-related entries are binary, so the raw bytes should be supplied
    through ``original_bytes`` whenever they are known.
    """

    def __new__(cls, value, original_bytes=None):
        obj = str.__new__(cls, value)
        obj._original_bytes = original_bytes
        return obj

    @property
    def original_bytes(self) -> bytes:
        """
        The original bytes of the string as it was read. If not available,
        the string is encoded using PDFDocEncoding, falling back to UTF-16BE
        with a byte order mark.
        """
        if self._original_bytes is not None:
            return self._original_bytes
        try:
            return encode_pdfdocencoding(self)
        except UnicodeEncodeError:
            return b'\xfe\xff' + self.encode('utf-16be')


class NameObject(str, PdfObject):
    """
    PDF name object. These are valid Python strings, but names and strings
    are treated differently in the PDF specification, so proper care is
    required.
    """
    pass


pdf_name = NameObject


class ArrayObject(list, PdfObject):
    pass


def _normalise_key(key) -> NameObject:
    if not isinstance(key, str):
        raise ValueError("key must be PdfName")
    if not key.startswith('/'):
        key = '/' + key
    return key if isinstance(key, NameObject) else NameObject(key)


class DictionaryObject(dict, PdfObject):
    """
    A PDF dictionary object.

    Keys in a PDF dictionary are PDF names. For convenience, keys without
    the leading slash are normalised on the way in, so ``{'V': 2}`` and
    ``{'/V': 2}`` describe the same dictionary.
    """

    def __init__(self, dict_data=None):
        if dict_data is not None:
            super().__init__(
                {_normalise_key(k): v for k, v in dict_data.items()}
            )
        else:
            super().__init__()

    def __setitem__(self, key, value):
        return dict.__setitem__(self, _normalise_key(key), value)

    def __getitem__(self, key):
        raw_obj = dict.__getitem__(self, _normalise_key(key))
        if isinstance(raw_obj, PdfObject):
            return raw_obj.get_object()
        return raw_obj

    def __contains__(self, key):
        try:
            return dict.__contains__(self, _normalise_key(key))
        except ValueError:
            return False

    def __delitem__(self, key):
        return dict.__delitem__(self, _normalise_key(key))

    def update(self, other=(), **kwargs):
        items = other.items() if isinstance(other, dict) else other
        for k, v in items:
            self[k] = v
        for k, v in kwargs.items():
            self[k] = v

    def raw_get(self, key: Union[NameObject, str]):
        """
        Get a value from a dictionary without resolving it.
        """
        return dict.__getitem__(self, _normalise_key(key))

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def get_and_apply(
        self,
        key,
        function: Callable[[Any], Any],
        *,
        raw=False,
        default=None,
    ):
        try:
            value = self.raw_get(key) if raw else self[key]
        except KeyError:
            return default
        return function(value)


# PDFDocEncoding agrees with Latin-1 on 0x20-0x7E and 0xA1-0xFF (save 0xAD),
# the remaining code points are listed explicitly.
_PDFDOC_SPECIALS = {
    0x09: '\u0009', 0x0a: '\u000a', 0x0d: '\u000d',
    0x18: '˘', 0x19: 'ˇ', 0x1a: 'ˆ', 0x1b: '˙',
    0x1c: '˝', 0x1d: '˛', 0x1e: '˚', 0x1f: '˜',
    0x80: '•', 0x81: '†', 0x82: '‡', 0x83: '…',
    0x84: '—', 0x85: '–', 0x86: 'ƒ', 0x87: '⁄',
    0x88: '‹', 0x89: '›', 0x8a: '−', 0x8b: '‰',
    0x8c: '„', 0x8d: '“', 0x8e: '”', 0x8f: '‘',
    0x90: '’', 0x91: '‚', 0x92: '™', 0x93: 'ﬁ',
    0x94: 'ﬂ', 0x95: 'Ł', 0x96: 'Œ', 0x97: 'Š',
    0x98: 'Ÿ', 0x99: 'Ž', 0x9a: 'ı', 0x9b: 'ł',
    0x9c: 'œ', 0x9d: 'š', 0x9e: 'ž', 0xa0: '€',
}


def _build_pdfdoc_table():
    table = {}
    for b in range(256):
        if b in _PDFDOC_SPECIALS:
            table[b] = _PDFDOC_SPECIALS[b]
        elif 0x20 <= b <= 0x7e or (0xa1 <= b <= 0xff and b != 0xad):
            table[b] = chr(b)
    return table


_pdfDocEncoding = _build_pdfdoc_table()
_pdfDocEncoding_rev = {char: ix for ix, char in _pdfDocEncoding.items()}


def encode_pdfdocencoding(unicode_string):
    def _build():
        for c in unicode_string:
            try:
                yield _pdfDocEncoding_rev[c]
            except KeyError:
                raise UnicodeEncodeError(
                    "pdfdocencoding",
                    c,
                    -1,
                    -1,
                    "does not exist in translation table",
                )

    return bytes(_build())


def decode_pdfdocencoding(byte_array):
    def _build():
        for b in byte_array:
            try:
                yield _pdfDocEncoding[b]
            except KeyError:
                raise UnicodeDecodeError(
                    "pdfdocencoding",
                    bytes((b,)),
                    -1,
                    -1,
                    "does not exist in translation table",
                )

    return ''.join(_build())
