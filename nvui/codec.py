"""
Wire codec for the msgpack-RPC envelope.

Messages travel as msgpack arrays. The remote process sends buffer, window
and tabpage handles as msgpack extension types; these are decoded into
`RemoteHandle` tuples and encoded back the same way.
"""
from collections import namedtuple

import msgpack
from msgpack.exceptions import UnpackException

__all__ = ('DecodeError', 'Decoder', 'RemoteHandle', 'encode', 'decode')


#: Extension type codes used by the remote process.
EXT_BUFFER = 0
EXT_WINDOW = 1
EXT_TABPAGE = 2

_EXT_NAMES = {
    EXT_BUFFER: 'buffer',
    EXT_WINDOW: 'window',
    EXT_TABPAGE: 'tabpage',
}
_EXT_CODES = dict((v, k) for k, v in _EXT_NAMES.items())


RemoteHandle = namedtuple('RemoteHandle', 'kind id')


class DecodeError(Exception):
    """ Malformed bytes on the wire. """


def _ext_hook(code, data):
    kind = _EXT_NAMES.get(code)
    if kind is None:
        return msgpack.ExtType(code, data)
    return RemoteHandle(kind, msgpack.unpackb(data))


def _default(obj):
    if isinstance(obj, RemoteHandle):
        return msgpack.ExtType(_EXT_CODES[obj.kind], msgpack.packb(obj.id))
    raise TypeError('Cannot serialize %r' % (obj, ))


def encode(value):
    """ Serialize one value into bytes. """
    return msgpack.packb(value, use_bin_type=True, default=_default)


def decode(data):
    """ Decode all complete values contained in `data`. """
    decoder = Decoder()
    decoder.feed(data)
    return list(decoder)


class Decoder:
    """
    Incremental decoder. Feed it chunks as they come from the transport and
    iterate to receive every value that is complete so far. Values split over
    several chunks are kept until the remaining bytes arrive.
    """
    def __init__(self):
        self._unpacker = msgpack.Unpacker(
                raw=False, strict_map_key=False, ext_hook=_ext_hook)

    def feed(self, data):
        self._unpacker.feed(data)

    def __iter__(self):
        while True:
            try:
                value = next(self._unpacker)
            except StopIteration:
                return
            except (UnpackException, ValueError) as e:
                raise DecodeError(str(e)) from e
            yield value
