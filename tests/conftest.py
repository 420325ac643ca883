import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image


@pytest.fixture
def png_bytes():
    """A tiny 4x2 PNG image"""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 2), (255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def v2_metadata():
    return {
        "version": "2.0.0",
        "log_info": {"start_time": 1000.0, "end_time": 1002.0},
        "streams": {
            "/vehicle_pose": {"category": "POSE"},
            "/lidar/points": {"category": "PRIMITIVE", "primitive_type": "POINT"},
        },
    }


@pytest.fixture
def v2_state_update():
    return {
        "update_type": "SNAPSHOT",
        "updates": [
            {
                "timestamp": 1001.0,
                "poses": {
                    "/vehicle_pose": {
                        "timestamp": 1001.0,
                        "map_origin": {"longitude": 8.4, "latitude": 49.0, "altitude": 0.0},
                        "position": [1.0, 2.0, 0.0],
                        "orientation": [0.0, 0.0, 1.5],
                    }
                },
                "primitives": {
                    "/lidar/points": {
                        "points": [
                            {
                                "base": {"object_id": "cloud-1"},
                                "points": [[1, 2, 3], [4, 5, 6]],
                                "colors": [[255, 0, 0], [0, 255, 0]],
                            }
                        ]
                    }
                },
            }
        ],
    }


@pytest.fixture
def v1_timeslice():
    return {
        "timestamp": 1001.1,
        "vehicle_pose": {
            "time": 1001.2,
            "latitude": 49.0,
            "longitude": 8.4,
            "altitude": 0.0,
            "x": 1.0,
            "y": 2.0,
            "z": 0.0,
            "roll": 0.0,
            "pitch": 0.0,
            "yaw": 1.5,
        },
        "state_updates": [
            {
                "primitives": {
                    "/lidar/points": [
                        {"type": "points3d", "id": 1234, "vertices": [[1, 2, 3], [4, 5, 6]], "color": [255, 0, 0]}
                    ]
                }
            }
        ],
    }


@pytest.fixture
def memory_provider(v2_metadata, v2_state_update):
    """Provider over one metadata message and three v2 frames"""
    from xviz.services.io.provider import MemoryReader, XVIZBaseProvider

    reader = MemoryReader({"type": "xviz/metadata", "data": v2_metadata})
    for timestamp in (1000.0, 1001.0, 1002.0):
        frame = {"updates": [dict(v2_state_update["updates"][0], timestamp=timestamp)]}
        reader.add_frame(timestamp, {"type": "xviz/state_update", "data": frame})

    provider = XVIZBaseProvider(reader)
    provider.init()
    return provider


@pytest.fixture
def client(memory_provider):
    from xviz.app import create_app

    with TestClient(create_app(memory_provider)) as test_client:
        yield test_client
