import operator
import struct
from dataclasses import dataclass
from enum import Flag
from functools import reduce
from typing import Union

from ._util import as_signed

__all__ = [
    'PdfPermissions', 'StandardPermissions', 'PermissionSet',
    'decode_permissions', 'RESERVED_BITS_MASK',
]

RESERVED_BITS_MASK = 0xFFFFF0C0
"""
Bits that are reserved in the ``/P`` entry, and must be set to 1.
"""


class PdfPermissions(Flag):

    @classmethod
    def allow_everything(cls):
        return reduce(operator.or_, cls.__members__.values())

    @classmethod
    def from_uint(cls, uint_flags: int):
        result = cls(0)
        for flag in cls:
            if uint_flags & flag.value:
                result |= flag
        return result

    @classmethod
    def from_bytes(cls, flags: bytes):
        uint_flags = struct.unpack('>I', flags)[0]
        return cls.from_uint(uint_flags)

    @classmethod
    def from_sint32(cls, sint32_flags: int):
        return cls.from_uint(sint32_flags & 0xFFFFFFFF)

    def as_uint32(self):
        raise NotImplementedError

    def as_bytes(self) -> bytes:
        return struct.pack('>I', self.as_uint32())

    def as_sint32(self) -> int:
        return struct.unpack('>i', self.as_bytes())[0]


class StandardPermissions(PdfPermissions, Flag):
    # We purposefully do not inherit from IntFlag since
    # PDF uses 32-bit twos complement to treat flags as ints,
    # which doesn't jive well with what IntFlag would do.

    ALLOW_PRINTING = 4
    ALLOW_MODIFICATION_GENERIC = 8
    ALLOW_CONTENT_EXTRACTION = 16
    ALLOW_ANNOTS_FORM_FILLING = 32
    ALLOW_FORM_FILLING = 256
    ALLOW_ASSISTIVE_TECHNOLOGY = 512
    ALLOW_REASSEMBLY = 1024
    ALLOW_HIGH_QUALITY_PRINTING = 2048

    def as_uint32(self):
        return sum(x.value for x in self.__class__ if x in self) \
            | RESERVED_BITS_MASK

    @property
    def mask(self) -> int:
        """
        The mask that has to be fully set in ``/P`` for this capability
        to be granted.
        """
        return self.value | RESERVED_BITS_MASK


# legacy integer indices, in order
_CAPABILITY_INDEX = (
    StandardPermissions.ALLOW_PRINTING,
    StandardPermissions.ALLOW_HIGH_QUALITY_PRINTING,
    StandardPermissions.ALLOW_MODIFICATION_GENERIC,
    StandardPermissions.ALLOW_CONTENT_EXTRACTION,
    StandardPermissions.ALLOW_ANNOTS_FORM_FILLING,
    StandardPermissions.ALLOW_FORM_FILLING,
    StandardPermissions.ALLOW_ASSISTIVE_TECHNOLOGY,
    StandardPermissions.ALLOW_REASSEMBLY,
)

# capabilities that revision 2 handlers derive from a coarser bit
_R2_DERIVED = {
    StandardPermissions.ALLOW_ANNOTS_FORM_FILLING:
        StandardPermissions.ALLOW_CONTENT_EXTRACTION,
    StandardPermissions.ALLOW_FORM_FILLING:
        StandardPermissions.ALLOW_CONTENT_EXTRACTION,
    StandardPermissions.ALLOW_ASSISTIVE_TECHNOLOGY:
        StandardPermissions.ALLOW_CONTENT_EXTRACTION,
    StandardPermissions.ALLOW_REASSEMBLY:
        StandardPermissions.ALLOW_MODIFICATION_GENERIC,
}


def _mask_set(p_uint: int, perm: StandardPermissions) -> bool:
    mask = perm.mask
    return (p_uint & mask) == mask


@dataclass(frozen=True)
class PermissionSet:
    """
    Decoded permissions of a document encrypted with the standard security
    handler.
    """

    granted: StandardPermissions
    """
    The capabilities that are granted.
    """

    permission_flags: int
    """
    The raw ``/P`` value (as a signed 32-bit integer).
    """

    revision: int
    """
    The revision of the security handler the flags were interpreted for.
    """

    @classmethod
    def decode(cls, p: int, revision: int) -> 'PermissionSet':
        """
        Decode a ``/P`` value.

        :param p:
            The permission flags, signed or unsigned.
        :param revision:
            The security handler revision.
        :return:
            A :class:`PermissionSet`.
        """
        p_uint = p & 0xFFFFFFFF
        granted = StandardPermissions(0)
        for perm in StandardPermissions:
            if revision == 2 and perm in _R2_DERIVED:
                source = _R2_DERIVED[perm]
            else:
                source = perm
            if _mask_set(p_uint, source):
                granted |= perm
        return PermissionSet(
            granted=granted, permission_flags=as_signed(p_uint),
            revision=revision
        )

    def has(self, capability: Union[StandardPermissions, int]) -> bool:
        """
        Check whether a capability is granted.

        :param capability:
            A :class:`.StandardPermissions` member, or a legacy integer index
            (0 print, 1 high-quality print, 2 modify, 3 extract,
            4 annotate/fill forms, 5 fill existing forms, 6 accessibility,
            7 assemble).
        :return:
            ``True`` if granted. Indices out of range are never granted.
        """
        if isinstance(capability, StandardPermissions):
            return capability in self.granted
        if isinstance(capability, int) \
                and 0 <= capability < len(_CAPABILITY_INDEX):
            return _CAPABILITY_INDEX[capability] in self.granted
        return False

    @property
    def can_print(self) -> bool:
        return self.has(StandardPermissions.ALLOW_PRINTING)

    @property
    def can_print_high_quality(self) -> bool:
        return self.has(StandardPermissions.ALLOW_HIGH_QUALITY_PRINTING)

    @property
    def can_modify(self) -> bool:
        return self.has(StandardPermissions.ALLOW_MODIFICATION_GENERIC)

    @property
    def can_extract(self) -> bool:
        return self.has(StandardPermissions.ALLOW_CONTENT_EXTRACTION)

    @property
    def can_annotate(self) -> bool:
        return self.has(StandardPermissions.ALLOW_ANNOTS_FORM_FILLING)

    @property
    def can_fill_forms(self) -> bool:
        return self.has(StandardPermissions.ALLOW_FORM_FILLING)

    @property
    def can_extract_for_accessibility(self) -> bool:
        return self.has(StandardPermissions.ALLOW_ASSISTIVE_TECHNOLOGY)

    @property
    def can_assemble(self) -> bool:
        return self.has(StandardPermissions.ALLOW_REASSEMBLY)

    def as_table(self):
        """
        Enumerate all capabilities with their status, in index order.
        """
        return [(perm, perm in self.granted) for perm in _CAPABILITY_INDEX]


def decode_permissions(p: int, revision: int) -> PermissionSet:
    """Shorthand for :meth:`PermissionSet.decode`."""
    return PermissionSet.decode(p, revision)
