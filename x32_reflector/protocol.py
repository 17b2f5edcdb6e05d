"""
OSC (Open Sound Control) encoding for the messages the relay itself sends.

Forwarded traffic is never decoded; decode() exists for tooling and tests.
"""
import struct
from collections import namedtuple

from .errors import ProtocolError

KEEP_ALIVE_ADDRESS = '/xremote'
BUNDLE_TAG = b'#bundle\x00'
MAX_BUNDLE_DEPTH = 8

OscMessage = namedtuple('OscMessage', ['address', 'args'])
OscBundle = namedtuple('OscBundle', ['time_tag', 'elements'])


def _pad(data):
    return data + b'\x00' * (-len(data) % 4)


def _encode_string(value):
    return _pad(value.encode('utf-8') + b'\x00')


def _encode_blob(value):
    return struct.pack('!i', len(value)) + _pad(bytes(value))


def build_message(address, *args):
    """
    Build an OSC message

    Args:
        address: OSC address pattern, must start with '/'
        args: int, float, str or bytes arguments
    """
    if not address.startswith('/'):
        raise ProtocolError(f"OSC address must start with '/': {address!r}")

    type_tags = ','
    payload = b''
    for arg in args:
        if isinstance(arg, bool):
            raise ProtocolError("Boolean arguments are not supported")
        if isinstance(arg, int):
            type_tags += 'i'
            payload += struct.pack('!i', arg)
        elif isinstance(arg, float):
            type_tags += 'f'
            payload += struct.pack('!f', arg)
        elif isinstance(arg, str):
            type_tags += 's'
            payload += _encode_string(arg)
        elif isinstance(arg, (bytes, bytearray)):
            type_tags += 'b'
            payload += _encode_blob(arg)
        else:
            raise ProtocolError(f"Unsupported OSC argument type: {type(arg).__name__}")

    return _encode_string(address) + _encode_string(type_tags) + payload


def encode_keep_alive():
    """The message that makes a console stream all updates to the sender for the next 10 seconds"""
    return build_message(KEEP_ALIVE_ADDRESS)


def _read_string(data, offset):
    end = data.find(b'\x00', offset)
    if end < 0:
        raise ProtocolError("Unterminated OSC string")
    value = data[offset:end].decode('utf-8', errors='replace')
    # Skip the terminator and padding
    return value, end + 1 + (-(end + 1 - offset) % 4)


def _read_struct(fmt, data, offset):
    size = struct.calcsize(fmt)
    if offset + size > len(data):
        raise ProtocolError("Truncated OSC argument")
    return struct.unpack(fmt, data[offset:offset + size])[0], offset + size


def _decode_message(data):
    address, offset = _read_string(data, 0)
    if not address.startswith('/'):
        raise ProtocolError(f"Invalid OSC address: {address!r}")

    # Type tags are optional in old OSC implementations
    if offset >= len(data):
        return OscMessage(address, [])

    type_tags, offset = _read_string(data, offset)
    if not type_tags.startswith(','):
        raise ProtocolError(f"Invalid OSC type tag string: {type_tags!r}")

    args = []
    for tag in type_tags[1:]:
        if tag == 'i':
            value, offset = _read_struct('!i', data, offset)
        elif tag == 'f':
            value, offset = _read_struct('!f', data, offset)
        elif tag == 's':
            value, offset = _read_string(data, offset)
        elif tag == 'b':
            length, offset = _read_struct('!i', data, offset)
            if length < 0 or offset + length > len(data):
                raise ProtocolError("Truncated OSC blob")
            value = data[offset:offset + length]
            offset += length + (-length % 4)
        elif tag == 'T':
            value = True
        elif tag == 'F':
            value = False
        elif tag == 'N':
            value = None
        else:
            raise ProtocolError(f"Unsupported OSC type tag: {tag!r}")
        args.append(value)

    return OscMessage(address, args)


def _decode_bundle(data, depth):
    if depth >= MAX_BUNDLE_DEPTH:
        raise ProtocolError("OSC bundles nested too deeply")
    if len(data) < 16:
        raise ProtocolError("Truncated OSC bundle")
    time_tag = struct.unpack('!Q', data[8:16])[0]

    elements = []
    offset = 16
    while offset < len(data):
        size, offset = _read_struct('!i', data, offset)
        if size <= 0 or offset + size > len(data):
            raise ProtocolError("Invalid OSC bundle element size")
        elements.append(_decode(data[offset:offset + size], depth + 1))
        offset += size

    return OscBundle(time_tag, elements)


def _decode(data, depth):
    if not data:
        raise ProtocolError("Empty OSC packet")
    if data.startswith(BUNDLE_TAG):
        return _decode_bundle(data, depth)
    return _decode_message(data)


def decode(data):
    """Decode an OSC packet into an OscMessage or OscBundle"""
    return _decode(bytes(data), 0)
