import logging
from typing import List, Optional, Tuple

import click
import yaml

from pdfcrypt import generic
from pdfcrypt.crypt import MalformedEncryptionDescriptorError

logger = logging.getLogger("cli")

readable_file = click.Path(exists=True, readable=True, dir_okay=False)

# entries of the encryption dictionary that hold binary data
BINARY_ENTRIES = frozenset(['/O', '/U', '/OE', '/UE', '/Perms'])


def _parse_binary(value, what) -> bytes:
    if isinstance(value, bytes):
        # !!binary in YAML
        return value
    if not isinstance(value, str):
        raise MalformedEncryptionDescriptorError(
            f"{what} should be a hex string, not {type(value)}"
        )
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise MalformedEncryptionDescriptorError(
            f"{what} is not a valid hex string"
        )


def parse_descriptor_file(yaml_str) \
        -> Tuple[generic.DictionaryObject, Optional[List[bytes]]]:
    """
    Read an encryption dictionary and file identifier from YAML.

    The document is a dictionary with an ``encrypt`` section that holds the
    entries of the encryption dictionary (with or without leading slashes),
    and an optional ``id`` entry with the file identifier. Binary values
    (``O``, ``U``, ``OE``, ``UE``, ``Perms`` and the identifier) are given
    in hexadecimal.

    :return:
        The encryption dictionary and the ``/ID`` array (if any).
    """
    data = yaml.safe_load(yaml_str)
    if not isinstance(data, dict) or 'encrypt' not in data:
        raise MalformedEncryptionDescriptorError(
            "Descriptor file should be a dictionary with an 'encrypt' entry"
        )
    raw_dict = data['encrypt']
    if not isinstance(raw_dict, dict):
        raise MalformedEncryptionDescriptorError(
            "'encrypt' should be a dictionary"
        )
    encrypt_dict = generic.DictionaryObject(raw_dict)
    for key in BINARY_ENTRIES:
        if key in encrypt_dict:
            encrypt_dict[key] = generic.ByteStringObject(
                _parse_binary(encrypt_dict[key], key)
            )

    id_spec = data.get('id')
    if id_spec is None:
        id_array = None
    else:
        if not isinstance(id_spec, list):
            id_spec = [id_spec]
        id_array = [_parse_binary(part, 'id') for part in id_spec]
    return encrypt_dict, id_array
