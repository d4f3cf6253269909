"""
Key derivation for revision 5 of the standard security handler (AES-256 with
SHA-256 based password hashing, as introduced in Adobe's extension level 3).
"""

import logging
import secrets
import struct
from dataclasses import dataclass
from hashlib import sha256
from typing import TYPE_CHECKING, Optional, Tuple, Union

from ._util import (
    aes_cbc_decrypt,
    aes_cbc_encrypt,
    aes_ecb_decrypt_block,
    aes_ecb_encrypt_block,
)
from .api import AuthStatus

if TYPE_CHECKING:
    from .descriptor import EncryptionDescriptor

__all__ = [
    'r5_normalise_pw', 'compute_file_key_r5', 'check_perms_entry',
    'compute_r5_entries',
]

logger = logging.getLogger(__name__)


@dataclass
class _R5KeyEntry:
    hash_value: bytes
    validation_salt: bytes
    key_salt: bytes

    @classmethod
    def from_bytes(cls, entry: bytes) -> '_R5KeyEntry':
        assert len(entry) >= 48
        return _R5KeyEntry(entry[:32], entry[32:40], entry[40:48])


def r5_normalise_pw(password: Union[str, bytes]) -> bytes:
    if isinstance(password, str):
        password = password.encode('utf-8')
    return bytes(password[:127])


def _r5_hash(pw_bytes: bytes, salt: bytes,
             u_entry: Optional[bytes] = None) -> bytes:
    h = sha256(pw_bytes)
    h.update(salt)
    if u_entry:
        h.update(u_entry[:48])
    return h.digest()


def _r5_password_authenticate(pw_bytes: bytes, entry: _R5KeyEntry,
                              u_entry: Optional[bytes] = None) -> bool:
    return _r5_hash(pw_bytes, entry.validation_salt, u_entry) \
        == entry.hash_value


def _r5_derive_file_key(pw_bytes: bytes, entry: _R5KeyEntry, e_entry: bytes,
                        u_entry: Optional[bytes] = None) -> bytes:
    interm_key = _r5_hash(pw_bytes, entry.key_salt, u_entry)
    assert len(e_entry) == 32
    return aes_cbc_decrypt(
        key=interm_key, data=e_entry, iv=bytes(16), use_padding=False
    )


_EXPECTED_PERMS_8 = {
    0x54: True,  # 'T'
    0x46: False  # 'F'
}


def check_perms_entry(file_key: bytes, descriptor: 'EncryptionDescriptor',
                      strict=True) -> bool:
    """
    Decrypt the ``/Perms`` entry with the file encryption key, and compare
    it against the plaintext permission flags.

    :param file_key:
        The candidate file encryption key.
    :param descriptor:
        The encryption descriptor.
    :param strict:
        If ``False``, a mismatch between the permission flags is logged but
        tolerated. The ``adb`` marker is always required.
    :return:
        ``True`` if the check passed.
    """
    decrypted = aes_ecb_decrypt_block(file_key, descriptor.encrypted_perms)
    # known plaintext mandated by the format
    if decrypted[9:12] != b'adb':
        logger.warning(
            "File encryption key didn't decrypt /Perms correctly; "
            "wrong key or tampered encryption dictionary."
        )
        return False
    echoed_p = struct.unpack('<i', decrypted[:4])[0]
    if echoed_p != descriptor.permission_flags:
        logger.warning(
            f"Permission flags in /Perms ({echoed_p}) do not match /P "
            f"({descriptor.permission_flags}); file permissions may have been "
            f"tampered with."
        )
        if strict:
            return False
    metadata_flag = _EXPECTED_PERMS_8.get(decrypted[8])
    if metadata_flag is not None \
            and metadata_flag != descriptor.encrypt_metadata:
        logger.debug("/Perms disagrees with /EncryptMetadata, ignoring")
    return True


def compute_file_key_r5(password: bytes, descriptor: 'EncryptionDescriptor',
                        strict_perms=True) \
        -> Tuple[Optional[bytes], AuthStatus]:
    """
    Authenticate a password against a revision 5 handler, and derive the
    file encryption key.

    The owner password is tried first, then the user password.

    :param password:
        The password (at most 127 bytes are used).
    :param descriptor:
        The encryption descriptor.
    :param strict_perms:
        Whether to require the permission flags in ``/Perms`` to match ``/P``.
    :return:
        A tuple of the file encryption key (``None`` on failure) and the
        authentication status.
    """
    pw_bytes = r5_normalise_pw(password)
    o_entry = _R5KeyEntry.from_bytes(descriptor.owner_entry)
    u_entry = _R5KeyEntry.from_bytes(descriptor.user_entry)
    udata = descriptor.user_entry[:48]

    if _r5_password_authenticate(pw_bytes, o_entry, udata):
        status = AuthStatus.OWNER
        key = _r5_derive_file_key(
            pw_bytes, o_entry, descriptor.owner_key_entry, udata
        )
    elif _r5_password_authenticate(pw_bytes, u_entry):
        status = AuthStatus.USER
        key = _r5_derive_file_key(
            pw_bytes, u_entry, descriptor.user_key_entry
        )
    else:
        return None, AuthStatus.FAILED

    if not check_perms_entry(key, descriptor, strict=strict_perms):
        return None, AuthStatus.FAILED
    return key, status


def compute_r5_entries(owner_pw: bytes, user_pw: bytes, perms: int,
                       encrypt_metadata=True,
                       file_key: Optional[bytes] = None) -> dict:
    """
    Generate the ``/O``, ``/U``, ``/OE``, ``/UE`` and ``/Perms`` values of
    a revision 5 handler.

    :return:
        A dictionary with the generated values, and the file encryption key
        under ``key``.
    """
    owner_pw = r5_normalise_pw(owner_pw)
    user_pw = r5_normalise_pw(user_pw)
    encryption_key = file_key or secrets.token_bytes(32)

    u_validation_salt = secrets.token_bytes(8)
    u_key_salt = secrets.token_bytes(8)
    u_hash = _r5_hash(user_pw, u_validation_salt)
    u_entry = u_hash + u_validation_salt + u_key_salt
    u_interm_key = _r5_hash(user_pw, u_key_salt)
    _, ue_seed = aes_cbc_encrypt(
        u_interm_key, encryption_key, bytes(16), use_padding=False
    )

    o_validation_salt = secrets.token_bytes(8)
    o_key_salt = secrets.token_bytes(8)
    o_hash = _r5_hash(owner_pw, o_validation_salt, u_entry)
    o_entry = o_hash + o_validation_salt + o_key_salt
    o_interm_key = _r5_hash(owner_pw, o_key_salt, u_entry)
    _, oe_seed = aes_cbc_encrypt(
        o_interm_key, encryption_key, bytes(16), use_padding=False
    )

    perms_bytes = struct.pack('<i', perms)
    extd_perms_bytes = (
        perms_bytes + (b'\xff' * 4)
        + (b'T' if encrypt_metadata else b'F')
        + b'adb' + secrets.token_bytes(4)
    )
    encrypted_perms = aes_ecb_encrypt_block(encryption_key, extd_perms_bytes)
    return {
        'O': o_entry, 'U': u_entry, 'OE': oe_seed, 'UE': ue_seed,
        'Perms': encrypted_perms, 'key': encryption_key,
    }
