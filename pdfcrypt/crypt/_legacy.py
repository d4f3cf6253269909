"""
Key derivation and password verification for revisions 2, 3 and 4 of the
standard security handler (RC4 and AES-128 with MD5-based key derivation).

All functions in this module are pure.
"""

import struct
from hashlib import md5
from typing import TYPE_CHECKING, Union

from .. import generic
from ..config import LEGACY_PASSWORD_ENCODINGS
from ._util import rc4_encrypt

if TYPE_CHECKING:
    from .descriptor import EncryptionDescriptor

__all__ = [
    'PASSWORD_PADDING', 'legacy_normalise_pw', 'derive_legacy_file_key',
    'compute_o_value_legacy', 'compute_o_value_legacy_prep',
    'compute_u_value_r2', 'compute_u_value_r34', 'legacy_derive_object_key',
    'compute_file_key', 'compute_owner_verifier', 'compute_user_verifier',
    'authenticate_user', 'authenticate_owner', 'recover_user_password',
]

# ref: PDF 1.7 reference, section 3.5.2, algorithm 3.2
PASSWORD_PADDING = (
    b'\x28\xbf\x4e\x5e\x4e\x75\x8a\x41\x64\x00\x4e\x56'
    b'\xff\xfa\x01\x08\x2e\x2e\x00\xb6\xd0\x68\x3e\x80\x2f\x0c'
    b'\xa9\xfe\x64\x53\x69\x7a'
)


def legacy_normalise_pw(password: Union[str, bytes],
                        encoding: str = 'pdfdoc') -> bytes:
    """
    Turn a password into the byte string used by the legacy algorithms.

    :param password:
        A text or byte string. Byte strings are passed through.
    :param encoding:
        The text encoding to use for text passwords: ``pdfdoc`` (the
        default), ``latin-1`` or ``utf-8``. PDFDocEncoding falls back to
        UTF-8 for characters it can't represent.
    :return:
        The password, truncated to 32 bytes.
    """
    if isinstance(password, str):
        if encoding == 'pdfdoc':
            try:
                password = generic.encode_pdfdocencoding(password)
            except UnicodeEncodeError:
                password = password.encode('utf-8')
        elif encoding in LEGACY_PASSWORD_ENCODINGS:
            password = password.encode(encoding)
        else:
            raise ValueError(f"Unknown password encoding '{encoding}'")
    return bytes(password[:32])


def _pad_password(password: bytes) -> bytes:
    return (password + PASSWORD_PADDING)[:32]


# Implementation of algorithm 3.2 of the PDF standard security handler,
# section 3.5.2 of the PDF 1.6 reference.
def derive_legacy_file_key(password: bytes, rev: int, keylen: int,
                           owner_entry: bytes, p_entry: int,
                           id1_entry: bytes, metadata_encrypt=True) -> bytes:
    # 1. Pad or truncate the password string to exactly 32 bytes.
    password = _pad_password(password)
    # 2. Initialize the MD5 hash function and pass the result of step 1 as
    # input to this function.
    # NOTE: Suppress LGTM warning here, MD5 is mandated by the file format
    m = md5(password)  # lgtm
    # 3. Pass the value of the encryption dictionary's /O entry.
    m.update(owner_entry)
    # 4. Treat the value of the /P entry as a 4-byte integer and pass
    # these bytes to the MD5 hash function, low-order byte first.
    m.update(struct.pack('<i', p_entry))
    # 5. Pass the first element of the file's file identifier array.
    m.update(id1_entry)
    # 6. (Revision 4 or greater) If document metadata is not being encrypted,
    # pass 4 bytes with the value 0xFFFFFFFF to the MD5 hash function.
    if rev >= 4 and not metadata_encrypt:
        m.update(b"\xff\xff\xff\xff")
    md5_hash = m.digest()
    # 8. (Revision 3 or greater) Do the following 50 times: take the first
    # n bytes of the previous digest and hash them again.
    if rev >= 3:
        for _ in range(50):
            md5_hash = md5(md5_hash[:keylen]).digest()
    # 9. The key is the first n bytes of the final digest, where n is always 5
    # for revision 2.
    return md5_hash[:keylen]


# Steps 1-4 of algorithm 3.3
def compute_o_value_legacy_prep(password: bytes, rev: int, keylen: int):
    password = _pad_password(password)
    md5_hash = md5(password).digest()
    if rev >= 3:
        for _ in range(50):
            md5_hash = md5(md5_hash).digest()
    return md5_hash[:keylen]


# Implementation of algorithm 3.3 of the PDF standard security handler,
# section 3.5.2 of the PDF 1.6 reference.
def compute_o_value_legacy(owner_pwd: bytes, user_pwd: bytes, rev: int,
                           keylen: int) -> bytes:
    # steps 1 - 4
    key = compute_o_value_legacy_prep(owner_pwd, rev, keylen)
    # 5. Pad or truncate the user password string.
    user_pwd = _pad_password(user_pwd)
    # 6. Encrypt the result of step 5 with the key obtained in step 4.
    val = rc4_encrypt(key, user_pwd)
    # 7. (Revision 3 or greater) 19 more rounds, XOR-ing every byte of the
    # key with the round counter.
    if rev >= 3:
        for i in range(1, 20):
            new_key = bytes(b ^ i for b in key)
            val = rc4_encrypt(new_key, val)
    return val


# Implementation of algorithm 3.4 of the PDF standard security handler,
# section 3.5.2 of the PDF 1.6 reference.
def compute_u_value_r2(password: bytes, owner_entry: bytes, p_entry: int,
                       id1_entry: bytes):
    key = derive_legacy_file_key(
        password, 2, 5, owner_entry, p_entry, id1_entry
    )
    u = rc4_encrypt(key, PASSWORD_PADDING)
    return u, key


# Implementation of algorithm 3.5 of the PDF standard security handler,
# section 3.5.2 of the PDF 1.6 reference.
def compute_u_value_r34(password: bytes, rev: int, keylen: int,
                        owner_entry: bytes, p_entry: int, id1_entry: bytes,
                        encrypt_metadata=True):
    key = derive_legacy_file_key(
        password, rev, keylen, owner_entry, p_entry, id1_entry,
        encrypt_metadata
    )
    m = md5()
    m.update(PASSWORD_PADDING)
    m.update(id1_entry)
    md5_hash = m.digest()
    val = rc4_encrypt(key, md5_hash)
    for i in range(1, 20):
        new_key = bytes(b ^ i for b in key)
        val = rc4_encrypt(new_key, val)
    # "Arbitrary padding" is taken to mean null bytes.
    # Only the first 16 bytes take part in the comparison anyway.
    return val + (b'\x00' * 16), key


def legacy_derive_object_key(shared_key: bytes, idnum: int, generation: int,
                             use_aes=False) -> bytes:
    """
    Function that does the key derivation for PDF's legacy security handlers.

    :param shared_key:
        Global file encryption key.
    :param idnum:
        ID of the object being written.
    :param generation:
        Generation number of the object being written.
    :param use_aes:
        Boolean indicating whether the security handler uses RC4 or AES(-128).
    :return:
        The object key, at most 16 bytes long.
    """
    pack1 = struct.pack("<I", idnum & 0xffffffff)[:3]
    pack2 = struct.pack("<I", generation & 0xffffffff)[:2]
    key = shared_key + pack1 + pack2
    if use_aes:
        key += b'sAlT'
    md5_hash = md5(key).digest()
    return md5_hash[:min(16, len(shared_key) + 5)]


def compute_file_key(password: bytes,
                     descriptor: 'EncryptionDescriptor') -> bytes:
    """
    Derive the file encryption key from a (user) password.

    :param password:
        The password, as a byte string.
    :param descriptor:
        The encryption descriptor of the document.
    :return:
        The file encryption key.
    """
    return derive_legacy_file_key(
        password, descriptor.revision, descriptor.legacy_key_length,
        descriptor.owner_entry, descriptor.permission_flags,
        descriptor.file_id, descriptor.encrypt_metadata
    )


def compute_owner_verifier(owner_password: bytes, user_password: bytes,
                           revision: int, key_length: int) -> bytes:
    """
    Compute the ``/O`` value for a pair of passwords.

    :param owner_password:
        The owner password. If empty, the user password is used in its place.
    :param user_password:
        The user password.
    :param revision:
        The security handler revision (2, 3 or 4).
    :param key_length:
        Key length in bytes. Ignored for revision 2.
    :return:
        A 32-byte ``/O`` value.
    """
    if revision == 2:
        key_length = 5
    return compute_o_value_legacy(
        owner_password or user_password, user_password, revision, key_length
    )


def compute_user_verifier(user_password: bytes,
                          descriptor: 'EncryptionDescriptor') -> bytes:
    """
    Compute the ``/U`` value for a user password, using the ``/O`` value,
    permission flags and file identifier from the descriptor.

    :return:
        A 32-byte ``/U`` value.
    """
    if descriptor.revision == 2:
        u, _ = compute_u_value_r2(
            user_password, descriptor.owner_entry,
            descriptor.permission_flags, descriptor.file_id
        )
    else:
        u, _ = compute_u_value_r34(
            user_password, descriptor.revision,
            descriptor.legacy_key_length, descriptor.owner_entry,
            descriptor.permission_flags, descriptor.file_id,
            descriptor.encrypt_metadata
        )
    return u


def authenticate_user(password: bytes,
                      descriptor: 'EncryptionDescriptor') -> bool:
    """
    Check a user password against the stored ``/U`` value.
    """
    supplied = compute_user_verifier(password, descriptor)
    stored = descriptor.user_entry
    if descriptor.revision >= 3:
        supplied = supplied[:16]
        stored = stored[:16]
    return supplied == stored


def recover_user_password(password: bytes,
                          descriptor: 'EncryptionDescriptor') -> bytes:
    """
    Decrypt the ``/O`` value with a purported owner password.
    If the owner password is correct, the result is the (padded) user
    password.
    """
    rev = descriptor.revision
    key = compute_o_value_legacy_prep(
        password, rev, descriptor.legacy_key_length
    )
    if rev == 2:
        return rc4_encrypt(key, descriptor.owner_entry)
    val = descriptor.owner_entry
    for i in range(19, -1, -1):
        new_key = bytes(b ^ i for b in key)
        val = rc4_encrypt(new_key, val)
    return val


def authenticate_owner(password: bytes,
                       descriptor: 'EncryptionDescriptor') -> bool:
    """
    Check an owner password by recovering the user password from ``/O``
    and authenticating that.
    """
    return authenticate_user(
        recover_user_password(password, descriptor), descriptor
    )
