"""
Unit tests for the XVIZ binary container codec.
"""
import json
import struct

import numpy as np
import pytest

from xviz.core.errors import MalformedContainerError
from xviz.services.io.protocol.binary import (
    BinaryBuilder,
    HEADER_FORMAT,
    HEADER_SIZE,
    MAGIC_BYTES,
    VERSION,
    color_stride,
    flatten_to_array,
    is_binary_container,
    pack_binary,
    unpack_binary,
)


@pytest.fixture
def state_update():
    return {
        "type": "xviz/state_update",
        "data": {
            "update_type": "SNAPSHOT",
            "updates": [
                {
                    "timestamp": 1001.5,
                    "primitives": {
                        "/lidar/points": {
                            "points": [
                                {
                                    "points": [[1, 2, 3], [4, 5, 6]],
                                    "colors": [[255, 0, 0, 255], [0, 255, 0, 128]],
                                }
                            ]
                        }
                    },
                }
            ],
        },
    }


class TestPackBinary:
    """Tests for pack_binary"""

    def test_header(self, state_update):
        """Test magic, version and declared lengths match the buffer"""
        data = pack_binary(state_update)

        magic, version, skeleton_length, table_length = struct.unpack_from(HEADER_FORMAT, data, 0)
        padded = skeleton_length + (4 - skeleton_length % 4) % 4

        assert magic == MAGIC_BYTES
        assert version == VERSION
        assert len(data) == HEADER_SIZE + padded + table_length

    def test_skeleton_holds_pointers(self, state_update):
        """Test numeric lists are replaced by accessor pointers"""
        data = pack_binary(state_update)
        _, _, skeleton_length, _ = struct.unpack_from(HEADER_FORMAT, data, 0)
        skeleton = json.loads(data[HEADER_SIZE:HEADER_SIZE + skeleton_length])

        entry = skeleton["data"]["updates"][0]["primitives"]["/lidar/points"]["points"][0]
        assert entry["points"] == "#/accessors/0"
        assert entry["colors"] == "#/accessors/1"

    def test_flatten_disabled_keeps_lists(self, state_update):
        """Test flatten_arrays=False leaves nested lists in the skeleton"""
        data = pack_binary(state_update, flatten_arrays=False)
        message = unpack_binary(data)

        entry = message["data"]["updates"][0]["primitives"]["/lidar/points"]["points"][0]
        assert entry["points"] == [[1, 2, 3], [4, 5, 6]]

    def test_is_binary_container(self, state_update):
        """Test magic detection"""
        assert is_binary_container(pack_binary(state_update))
        assert not is_binary_container(b'{"type": "xviz/metadata"}')
        assert not is_binary_container(b"XVIZ")


class TestUnpackBinary:
    """Tests for unpack_binary"""

    def test_round_trip(self, state_update):
        """Test decoded message equals the input with arrays flattened"""
        message = unpack_binary(pack_binary(state_update))

        assert message["type"] == "xviz/state_update"
        update = message["data"]["updates"][0]
        assert update["timestamp"] == 1001.5

        entry = update["primitives"]["/lidar/points"]["points"][0]
        assert entry["points"].dtype == np.float32
        np.testing.assert_array_equal(entry["points"], [1, 2, 3, 4, 5, 6])
        assert entry["colors"].dtype == np.uint8
        np.testing.assert_array_equal(entry["colors"], [255, 0, 0, 255, 0, 255, 0, 128])

    def test_ndarray_round_trip(self):
        """Test numpy arrays keep their dtype"""
        values = np.array([[1, 2], [3, 4]], dtype=np.int32)

        message = unpack_binary(pack_binary({"values": values}))

        assert message["values"].dtype == np.int32
        np.testing.assert_array_equal(message["values"], [1, 2, 3, 4])

    @pytest.mark.parametrize("dtype", [np.int64, np.uint64])
    def test_64_bit_integers_are_exact(self, dtype):
        """Test 64-bit integers above 2**53 keep their value and dtype"""
        values = np.array([2**60 + 1, 7], dtype=dtype)

        message = unpack_binary(pack_binary({"ids": values}))

        assert message["ids"].dtype == dtype
        assert message["ids"].tolist() == [2**60 + 1, 7]

    def test_unsupported_dtype_rejected(self):
        with pytest.raises(TypeError, match="complex128"):
            pack_binary({"values": np.array([1 + 2j])})

    def test_decoded_arrays_are_copies(self, state_update):
        """Test accessors do not alias the input buffer"""
        data = bytearray(pack_binary(state_update))
        message = unpack_binary(data)
        points = message["data"]["updates"][0]["primitives"]["/lidar/points"]["points"][0]["points"]

        data[:] = b"\x00" * len(data)

        assert points.flags.writeable
        np.testing.assert_array_equal(points, [1, 2, 3, 4, 5, 6])

    def test_image_round_trip(self, png_bytes):
        """Test image bytes travel through the image table"""
        message = unpack_binary(pack_binary({"images": [{"data": png_bytes}]}))

        assert message["images"][0]["data"] == png_bytes
        assert message["images"][0]["data"].encoding == "png"

    def test_image_encoding_from_table(self):
        """Test the encoding tag is returned without sniffing the bytes"""
        builder = BinaryBuilder()
        skeleton = {"image": builder.add_image(b"\x01\x02\x03", "jpeg")}

        image = unpack_binary(builder.to_bytes(skeleton))["image"]

        assert image == b"\x01\x02\x03"
        assert image.encoding == "jpeg"
        assert unpack_binary(pack_binary({"image": image}))["image"].encoding == "jpeg"

    def test_non_image_bytes_become_uint8(self):
        """Test arbitrary bytes become a uint8 accessor"""
        message = unpack_binary(pack_binary({"blob": b"\x01\x02\x03"}))

        assert message["blob"].dtype == np.uint8
        np.testing.assert_array_equal(message["blob"], [1, 2, 3])

    def test_pointer_like_strings_are_escaped(self):
        """Test literal strings that look like pointers survive"""
        message = {"a": "#/accessors/0", "b": "##/images/1", "c": "plain"}

        assert unpack_binary(pack_binary(message)) == message

    def test_invalid_magic(self, state_update):
        """Test wrong magic bytes are rejected"""
        data = b"XXXX" + pack_binary(state_update)[4:]

        with pytest.raises(MalformedContainerError, match="Invalid magic bytes"):
            unpack_binary(data)

    def test_unsupported_version(self, state_update):
        """Test unknown container version is rejected"""
        data = bytearray(pack_binary(state_update))
        struct.pack_into("<I", data, 4, 99)

        with pytest.raises(MalformedContainerError, match="Unsupported version"):
            unpack_binary(bytes(data))

    def test_truncated_container(self, state_update):
        """Test a buffer shorter than its declared length is rejected"""
        data = pack_binary(state_update)

        with pytest.raises(MalformedContainerError, match="Container size mismatch"):
            unpack_binary(data[:-4])

    def test_too_short(self):
        """Test data shorter than the header is rejected"""
        with pytest.raises(MalformedContainerError, match="too short"):
            unpack_binary(b"XVIZ")

    def test_pointer_out_of_range(self):
        """Test pointers beyond the table are rejected"""
        data = BinaryBuilder().to_bytes({"points": "#/accessors/3"})

        with pytest.raises(MalformedContainerError, match="out of range"):
            unpack_binary(data)

    def test_invalid_pointer_grammar(self):
        """Test pointers with leading zeros are rejected"""
        builder = BinaryBuilder()
        builder.add_accessor(np.zeros(3, dtype=np.float32), 3)
        data = builder.to_bytes({"points": "#/accessors/00"})

        with pytest.raises(MalformedContainerError, match="Invalid pointer"):
            unpack_binary(data)

    def test_malformed_container_is_value_error(self):
        """Test callers catching ValueError still see codec errors"""
        with pytest.raises(ValueError):
            unpack_binary(b"XVIZ" + b"\x00" * 4)


class TestFlattening:
    """Tests for the array flattening helpers"""

    def test_short_records_are_padded(self):
        """Test 2-D vertices get z = 0"""
        result = flatten_to_array([[1, 2], [3, 4, 5]], 3, np.float32)

        np.testing.assert_array_equal(result, [1, 2, 0, 3, 4, 5])

    def test_uint8_is_clipped(self):
        """Test color components are clipped into byte range"""
        result = flatten_to_array([[300, -5, 10]], 3, np.uint8)

        np.testing.assert_array_equal(result, [255, 0, 10])

    @pytest.mark.parametrize(
        "colors, expected",
        [
            ([[1, 2, 3, 4], [5, 6, 7]], 4),
            ([[1, 2, 3], [5, 6, 7, 8]], 3),
            ([], 3),
        ],
    )
    def test_color_stride_from_first_record(self, colors, expected):
        """Test stride is taken from the first color record"""
        assert color_stride(colors) == expected
