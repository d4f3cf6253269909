"""
Utility functions and exception classes shared by the whole library.

Generally, all of these constitute internal API, except for the exception
classes.
"""

import operator
from enum import Enum
from typing import Callable

__all__ = [
    'PdfError', 'PdfReadError', 'PdfWriteError',
    'get_and_apply', 'OrderedEnum', 'VersionEnum', 'Singleton',
    'DEFAULT_CHUNK_SIZE', 'chunk_stream',
]

DEFAULT_CHUNK_SIZE = 4096
"""
Default chunk size for stream I/O.
"""


class PdfError(Exception):

    def __init__(self, msg: str, *args):
        self.msg = msg
        super().__init__(msg, *args)


class PdfReadError(PdfError):
    pass


class PdfWriteError(PdfError):
    pass


class OrderedEnum(Enum):
    """
    Enum whose members compare by value. Members of different enums are
    not comparable.
    """

    def _sort_key(self):
        return self.value

    def _compare(self, other, op):
        if self.__class__ is not other.__class__:
            return NotImplemented
        return op(self._sort_key(), other._sort_key())

    def __ge__(self, other):
        return self._compare(other, operator.ge)

    def __gt__(self, other):
        return self._compare(other, operator.gt)

    def __le__(self, other):
        return self._compare(other, operator.le)

    def __lt__(self, other):
        return self._compare(other, operator.lt)


class VersionEnum(OrderedEnum):
    """
    Ordered enum in which the value ``None`` stands in for "any future
    version", and hence sorts after every other member.
    """

    def _sort_key(self):
        return (1, 0) if self.value is None else (0, self.value)


def get_and_apply(dictionary: dict, key, function: Callable, *, default=None):
    try:
        value = dictionary[key]
    except KeyError:
        return default
    return function(value)


def chunk_stream(temp_buffer: bytearray, stream, max_read=None):
    total_read = 0
    while max_read is None or total_read < max_read:
        # clamp the input buffer if necessary
        read_buffer = temp_buffer
        if max_read is not None:
            to_read = max_read - total_read
            if to_read < len(temp_buffer):
                read_buffer = memoryview(temp_buffer)[:to_read]
        bytes_read = stream.readinto(read_buffer)
        if not bytes_read:
            return
        total_read += bytes_read

        # clamp the output as well, if necessary
        if bytes_read < len(read_buffer):
            to_feed = memoryview(read_buffer)[:bytes_read]
        else:
            to_feed = read_buffer
        yield to_feed


class Singleton(type):

    def __new__(mcs, name, bases, dct):
        cls = type.__new__(mcs, name, bases, dct)
        instance = type.__call__(cls)
        cls.__new__ = lambda _: instance
        return cls
