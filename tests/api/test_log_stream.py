"""
Tests for the status endpoint and the /ws/log streaming endpoint
"""
import json

import pytest
from fastapi.testclient import TestClient

from xviz.app import create_app
from xviz.services.io.protocol.binary import unpack_binary


class TestStatusEndpoint:
    """Test suite for /api/v1/status"""

    def test_status_with_provider(self, client):
        response = client.get("/api/v1/status")

        assert response.status_code == 200
        data = response.json()
        assert data["provider"] is True
        assert data["supported_versions"] == [1, 2]

    def test_status_without_provider(self):
        response = TestClient(create_app()).get("/api/v1/status")

        assert response.status_code == 200
        assert response.json()["provider"] is False


class TestLogStreamEndpoint:
    """Test suite for /api/v1/ws/log"""

    def test_stream_json(self, client):
        """Test metadata, every frame and done arrive in order"""
        with client.websocket_connect("/api/v1/ws/log?format=JSON_STRING") as websocket:
            messages = [json.loads(websocket.receive_text()) for _ in range(5)]

        assert [m["type"] for m in messages] == [
            "xviz/metadata",
            "xviz/state_update",
            "xviz/state_update",
            "xviz/state_update",
            "xviz/transform_log_done",
        ]
        assert [m["data"]["updates"][0]["timestamp"] for m in messages[1:4]] == [1000.0, 1001.0, 1002.0]

    def test_stream_binary_by_default(self, client):
        with client.websocket_connect("/api/v1/ws/log") as websocket:
            metadata = unpack_binary(websocket.receive_bytes())
            frame = unpack_binary(websocket.receive_bytes())

        assert metadata["type"] == "xviz/metadata"
        assert frame["data"]["updates"][0]["primitives"]["/lidar/points"]["points"][0]["points"].shape == (6,)

    def test_stream_time_range(self, client):
        with client.websocket_connect("/api/v1/ws/log?format=json_string&start_time=1001&end_time=1002") as websocket:
            messages = [json.loads(websocket.receive_text()) for _ in range(4)]

        assert [m["data"]["updates"][0]["timestamp"] for m in messages[1:3]] == [1001.0, 1002.0]
        assert messages[3]["type"] == "xviz/transform_log_done"

    def test_no_provider_sends_error(self):
        client = TestClient(create_app())

        with client.websocket_connect("/api/v1/ws/log") as websocket:
            message = json.loads(websocket.receive_text())

        assert message["type"] == "xviz/error"
        assert "provider" in message["data"]["message"]

    @pytest.mark.parametrize("format", ["OBJECT", "XML"])
    def test_unsendable_format_sends_error(self, client, format):
        with client.websocket_connect(f"/api/v1/ws/log?format={format}") as websocket:
            message = json.loads(websocket.receive_text())

        assert message["type"] == "xviz/error"
