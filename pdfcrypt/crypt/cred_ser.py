import abc
from dataclasses import dataclass
from typing import Dict, Type

from asn1crypto import core

from .. import misc

__all__ = ['SerialisedCredential', 'SerialisableCredential',
           'PasswordCredential']


@dataclass(frozen=True)
class SerialisedCredential:
    """
    A credential in serialised form.
    """

    credential_type: str
    """
    The registered type name of the credential
    (see :meth:`.SerialisableCredential.register`).
    """

    data: bytes
    """
    The credential data, as a byte string.
    """


class SerialisableCredential(abc.ABC):
    """
    Class representing a credential that can be serialised, so a document
    can be reopened later at the same access level without prompting for
    a password again.
    """

    __registered_subclasses: Dict[str, Type['SerialisableCredential']] = dict()

    @classmethod
    def get_name(cls) -> str:
        """
        Get the type name of the credential, which will be embedded into
        serialised values and used on deserialisation.
        """
        raise NotImplementedError

    @staticmethod
    def register(cls: Type['SerialisableCredential']):
        """
        Register a subclass into the credential serialisation registry, using
        the name returned by :meth:`get_name`. Can be used as a class decorator.
        """
        SerialisableCredential.__registered_subclasses[cls.get_name()] = cls
        return cls

    def _ser_value(self) -> bytes:
        raise NotImplementedError

    @classmethod
    def _deser_value(cls, data: bytes):
        raise NotImplementedError

    @staticmethod
    def deserialise(
        ser_value: SerialisedCredential,
    ) -> 'SerialisableCredential':
        """
        Deserialise a :class:`.SerialisedCredential` value by looking up
        the proper subclass of :class:`.SerialisableCredential` and invoking
        its deserialisation method.

        :raises misc.PdfReadError:
            If a deserialisation error occurs.
        """
        cred_type = ser_value.credential_type
        try:
            cls = SerialisableCredential.__registered_subclasses[cred_type]
        except KeyError:
            raise misc.PdfReadError(
                f"Failed to deserialise credential: "
                f"credential type '{cred_type}' not known."
            )
        return cls._deser_value(ser_value.data)

    def serialise(self) -> SerialisedCredential:
        return SerialisedCredential(
            credential_type=self.__class__.get_name(), data=self._ser_value()
        )


@SerialisableCredential.register
class PasswordCredential(core.Sequence, SerialisableCredential):
    """
    A password, as it was accepted by the standard security handler.

    For revision 2-4 handlers this is the user password (possibly recovered
    from ``/O``), together with the first part of the document ID it was
    validated against.
    """

    _fields = [
        ('pwd_bytes', core.OctetString),
        ('id1', core.OctetString, {'optional': True})
    ]

    @classmethod
    def get_name(cls) -> str:
        return 'pwd_bytes'

    @property
    def password(self) -> bytes:
        return self['pwd_bytes'].native

    @property
    def id1(self):
        return self['id1'].native

    def _ser_value(self) -> bytes:
        return self.dump()

    @classmethod
    def _deser_value(cls, data: bytes):
        try:
            result = PasswordCredential.load(data)
            # force parsing so that malformed input fails here
            result.native
            return result
        except ValueError:
            raise misc.PdfReadError("Failed to deserialise password credential")
