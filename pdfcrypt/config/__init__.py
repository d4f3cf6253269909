"""
Configuration of the encryption machinery.

Settings are usually supplied programmatically, but can also be read from
a configuration dictionary (e.g. the ``crypt`` section of the CLI's YAML
configuration file) through :meth:`.CryptSettings.from_config`.
"""

from dataclasses import dataclass

from ..config_utils import ConfigurableMixin, ConfigurationError, require_type
from ..misc import DEFAULT_CHUNK_SIZE

__all__ = ['CryptSettings', 'ConfigurationError']

LEGACY_PASSWORD_ENCODINGS = ('pdfdoc', 'latin-1', 'utf-8')


@dataclass(frozen=True)
class CryptSettings(ConfigurableMixin):
    """
    Tunables for the security handler and the security manager.
    """

    object_key_cache_size: int = 256
    """
    Maximal number of object keys to cache. ``0`` disables the cache.
    """

    stream_chunk_size: int = DEFAULT_CHUNK_SIZE
    """
    Chunk size used when encrypting or decrypting streams.
    """

    strict_perms: bool = True
    """
    Reject AES-256 passwords when the permission flags in ``/Perms`` don't
    match ``/P``. If ``False``, the mismatch is only logged.
    """

    fallback_to_input: bool = True
    """
    Return the original stream when encrypting or decrypting a stream
    produces no output.
    """

    legacy_password_encoding: str = 'pdfdoc'
    """
    Encoding of text passwords for revisions 2-4: ``pdfdoc``, ``latin-1``
    or ``utf-8``.
    """

    @classmethod
    def process_entries(cls, config_dict):
        super().process_entries(config_dict)
        require_type(config_dict, 'object_key_cache_size', int)
        require_type(config_dict, 'stream_chunk_size', int)
        require_type(config_dict, 'strict_perms', bool)
        require_type(config_dict, 'fallback_to_input', bool)
        require_type(config_dict, 'legacy_password_encoding', str)

        if config_dict.get('object_key_cache_size', 0) < 0:
            raise ConfigurationError(
                "'object-key-cache-size' must be non-negative"
            )
        if config_dict.get('stream_chunk_size', 1) <= 0:
            raise ConfigurationError("'stream-chunk-size' must be positive")
        try:
            encoding = config_dict['legacy_password_encoding'].lower()
        except KeyError:
            return
        if encoding not in LEGACY_PASSWORD_ENCODINGS:
            raise ConfigurationError(
                f"'legacy-password-encoding' must be one of "
                f"{', '.join(LEGACY_PASSWORD_ENCODINGS)}, not '{encoding}'"
            )
        config_dict['legacy_password_encoding'] = encoding
