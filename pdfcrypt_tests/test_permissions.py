import pytest

from pdfcrypt.crypt import (
    PermissionSet,
    StandardPermissions,
    decode_permissions,
)
from pdfcrypt.crypt.permissions import RESERVED_BITS_MASK

ALL_CAPABILITIES = list(StandardPermissions)


def test_r2_derived_capabilities():
    # print and extract, no modification and no annotations
    perms = decode_permissions(-44, 2)
    assert perms.can_print
    assert not perms.can_modify
    assert perms.can_extract
    # revision 2 reads these from the extraction bit
    assert perms.can_annotate
    assert perms.can_fill_forms
    assert perms.can_extract_for_accessibility
    # ... and this one from the modification bit
    assert not perms.can_assemble


def test_r3_same_flags():
    perms = decode_permissions(-44, 3)
    assert perms.can_print
    assert not perms.can_modify
    assert perms.can_extract
    assert not perms.can_annotate
    assert perms.can_fill_forms
    assert perms.can_extract_for_accessibility
    assert perms.can_assemble
    assert perms.can_print_high_quality


@pytest.mark.parametrize('revision', [2, 3, 4, 5])
def test_reserved_bits_cleared(revision):
    # all capability bits set, but the reserved bits are zero
    perms = decode_permissions(0x0f3c, revision)
    assert not any(perms.has(cap) for cap in ALL_CAPABILITIES)
    assert perms.granted == StandardPermissions(0)


@pytest.mark.parametrize('revision', [2, 3, 4, 5])
def test_all_perms(revision):
    perms = decode_permissions(-4, revision)
    assert all(perms.has(cap) for cap in ALL_CAPABILITIES)
    assert all(perms.has(ix) for ix in range(8))


def test_unsigned_and_signed_agree():
    assert decode_permissions(0xffffffd4, 4) == decode_permissions(-44, 4)
    assert decode_permissions(0xffffffd4, 4).permission_flags == -44


@pytest.mark.parametrize('index', [-1, 8, 100])
def test_out_of_range_index(index):
    assert not decode_permissions(-4, 4).has(index)


def test_legacy_index_order():
    # only printing allowed
    p = RESERVED_BITS_MASK | 4
    perms = decode_permissions(p, 4)
    assert perms.has(0)
    assert not any(perms.has(ix) for ix in range(1, 8))


def test_as_table():
    perms = decode_permissions(RESERVED_BITS_MASK | 4 | 2048, 3)
    table = dict(perms.as_table())
    assert len(table) == 8
    assert table[StandardPermissions.ALLOW_PRINTING]
    assert table[StandardPermissions.ALLOW_HIGH_QUALITY_PRINTING]
    assert not table[StandardPermissions.ALLOW_REASSEMBLY]


def test_permission_set_is_value():
    assert isinstance(decode_permissions(-4, 4), PermissionSet)
    assert decode_permissions(-4, 4) == PermissionSet.decode(-4, 4)
