"""
Tests for XVIZData representation detection and envelope handling.
"""
import json

import pytest

from xviz.core.errors import XVIZDataError
from xviz.services.io.data import XVIZData, sniff_message_type, unpack_envelope
from xviz.services.io.formats import XVIZFormat
from xviz.services.io.protocol.binary import pack_binary


@pytest.fixture
def metadata_message():
    return {"type": "xviz/metadata", "data": {"version": "2.0.0", "log_info": {"start_time": 1.0, "end_time": 2.0}}}


class TestFormatDetection:
    """Test suite for XVIZData format detection"""

    def test_object(self, metadata_message):
        assert XVIZData(metadata_message).format == XVIZFormat.OBJECT

    def test_json_string(self, metadata_message):
        assert XVIZData(json.dumps(metadata_message)).format == XVIZFormat.JSON_STRING

    def test_json_buffer(self, metadata_message):
        assert XVIZData(json.dumps(metadata_message).encode("utf-8")).format == XVIZFormat.JSON_BUFFER

    def test_binary(self, metadata_message):
        assert XVIZData(pack_binary(metadata_message)).format == XVIZFormat.BINARY

    def test_unknown_type(self):
        """Test unsupported inputs raise TypeError"""
        with pytest.raises(TypeError, match="Unknown XVIZ data type"):
            XVIZData(42)

    @pytest.mark.parametrize(
        "make",
        [
            lambda m: m,
            lambda m: json.dumps(m),
            lambda m: "  \n" + json.dumps(m) + "\n ",
            lambda m: json.dumps(m).encode("utf-8"),
            lambda m: pack_binary(m),
        ],
    )
    def test_every_representation_gives_same_message(self, metadata_message, make):
        """Test each representation decodes to the same envelope"""
        msg = XVIZData(make(metadata_message)).message()

        assert msg.namespace == "xviz"
        assert msg.type == "metadata"
        assert msg.data["version"] == "2.0.0"


class TestMessage:
    """Test suite for lazy message materialization"""

    def test_message_is_lazy(self, metadata_message):
        data = XVIZData(json.dumps(metadata_message))

        assert not data.has_message()
        data.message()
        assert data.has_message()

    def test_message_is_cached(self, metadata_message):
        data = XVIZData(json.dumps(metadata_message))

        assert data.message() is data.message()

    def test_object_input_not_mutated(self, metadata_message):
        snapshot = json.dumps(metadata_message, sort_keys=True)

        XVIZData(metadata_message).message()

        assert json.dumps(metadata_message, sort_keys=True) == snapshot

    def test_bare_payload_type_is_sniffed(self):
        msg = XVIZData({"updates": []}).message()

        assert not msg.enveloped
        assert msg.type == "state_update"

    def test_invalid_json(self):
        with pytest.raises(XVIZDataError, match="Failed to parse XVIZ JSON"):
            XVIZData("{not json").message()

    def test_invalid_utf8(self):
        with pytest.raises(XVIZDataError, match="not UTF-8"):
            XVIZData(b"\xff\xfe\xfd").message()


class TestEnvelope:
    """Test suite for envelope splitting"""

    @pytest.mark.parametrize(
        "full_type, namespace, sub_type",
        [
            ("foo", "foo", ""),
            ("", "", ""),
            ("foo/bar", "foo", "bar"),
            ("/foo/bar", "", "foo/bar"),
            ("xviz/state_update", "xviz", "state_update"),
        ],
    )
    def test_unpack_envelope(self, full_type, namespace, sub_type):
        envelope = unpack_envelope({"type": full_type, "data": {"a": 1}})

        assert envelope.namespace == namespace
        assert envelope.type == sub_type
        assert envelope.data == {"a": 1}

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"log_info": {}}, "metadata"),
            ({"version": "2.0.0"}, "metadata"),
            ({"updates": []}, "state_update"),
            ({"state_updates": []}, "state_update"),
            ({"something": 1}, None),
            ([1, 2], None),
        ],
    )
    def test_sniff_message_type(self, payload, expected):
        assert sniff_message_type(payload) == expected
