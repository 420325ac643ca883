"""
XVIZ Stream Server

Streams an XVIZ log to websocket clients at /api/v1/ws/log.

Environment Variables:
    HOST: Server host address (default: 0.0.0.0)
    PORT: Server port (default: 3000)
    DEBUG: Enable debug mode with auto-reload (default: false)
    XVIZ_SUPPORTED_VERSIONS: Accepted major versions (default: 1,2)
    XVIZ_MAJOR_VERSION: Version assumed for messages without one (default: 1)
    XVIZ_PRIMARY_POSE_STREAM: Stream holding the vehicle pose (default: /vehicle_pose)
    XVIZ_SOCKET_FORMAT: Wire format when data must be encoded (default: BINARY)
    XVIZ_FRAME_DELAY: Seconds to wait between frames (default: 0)
    XVIZ_LOG_DIR: Directory of the rotating log file (default: xviz/config/logs)
    XVIZ_LOG_LEVEL: Log level (default: INFO, DEBUG when DEBUG=true)

CLI Usage:
    python main.py

    # Send JSON text instead of binary containers
    XVIZ_SOCKET_FORMAT=JSON_STRING python main.py
"""

import uvicorn

from xviz.core.config import settings

if __name__ == "__main__":
    port = settings.PORT
    host = settings.HOST

    print(f"Starting {settings.PROJECT_NAME} on {host}:{port}")

    reload_enabled = bool(settings.DEBUG)
    reload_dirs = None
    if reload_enabled:
        from pathlib import Path

        reload_dirs = [str(Path(__file__).resolve().parent / "xviz")]

    uvicorn.run(
        "xviz.app:app",
        host=host,
        port=port,
        reload=reload_enabled,
        reload_dirs=reload_dirs,
    )
