import struct

import pytest

from x32_reflector.errors import ProtocolError
from x32_reflector.protocol import OscBundle, OscMessage, build_message, decode, encode_keep_alive


def test_keep_alive_bytes():
    assert encode_keep_alive() == b"/xremote\x00\x00\x00\x00,\x00\x00\x00"


def test_message_with_arguments():
    data = build_message("/ch/01/mix/fader", 0.75, 3, "on")

    assert len(data) % 4 == 0
    assert decode(data) == OscMessage("/ch/01/mix/fader", [0.75, 3, "on"])


def test_blob_argument_is_padded():
    data = build_message("/blob", b"\x01\x02\x03")

    assert data.endswith(struct.pack("!i", 3) + b"\x01\x02\x03\x00")
    assert decode(data).args == [b"\x01\x02\x03"]


def test_address_must_start_with_slash():
    with pytest.raises(ProtocolError):
        build_message("xremote")


def test_unsupported_argument_type():
    with pytest.raises(ProtocolError):
        build_message("/x", [1, 2])


def test_message_without_type_tags():
    assert decode(b"/xinfo\x00\x00") == OscMessage("/xinfo", [])


def test_bundle():
    first = build_message("/a", 1)
    second = build_message("/b", "x")
    data = (b"#bundle\x00" + struct.pack("!Q", 1)
            + struct.pack("!i", len(first)) + first
            + struct.pack("!i", len(second)) + second)

    assert decode(data) == OscBundle(1, [OscMessage("/a", [1]), OscMessage("/b", ["x"])])


@pytest.mark.parametrize("data", [
    b"",
    b"/unterminated",
    b"not-an-address\x00\x00",
    b"/x\x00\x00,i\x00\x00\x00\x01",
    b"#bundle\x00\x00",
])
def test_malformed_packets(data):
    with pytest.raises(ProtocolError):
        decode(data)


def nested_bundle(levels):
    data = build_message("/inner", 1)
    for _ in range(levels):
        data = b"#bundle\x00" + struct.pack("!Q", 1) + struct.pack("!i", len(data)) + data
    return data


def test_nested_bundles_within_limit():
    decoded = decode(nested_bundle(2))

    assert decoded.elements[0].elements == [OscMessage("/inner", [1])]


def test_deeply_nested_bundles_are_rejected():
    with pytest.raises(ProtocolError, match="nested too deeply"):
        decode(nested_bundle(5000))
