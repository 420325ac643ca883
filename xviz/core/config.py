import os


class Settings:
    # API Settings
    PROJECT_NAME: str = "XVIZ Stream Server"
    VERSION: str = "0.1.0"
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", 3000))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Protocol Settings
    XVIZ_SUPPORTED_VERSIONS: str = os.getenv("XVIZ_SUPPORTED_VERSIONS", "1,2")
    XVIZ_MAJOR_VERSION: int = int(os.getenv("XVIZ_MAJOR_VERSION", 1))
    XVIZ_PRIMARY_POSE_STREAM: str = os.getenv("XVIZ_PRIMARY_POSE_STREAM", "/vehicle_pose")

    # Transport Settings
    XVIZ_SOCKET_FORMAT: str = os.getenv("XVIZ_SOCKET_FORMAT", "BINARY")  # "BINARY", "JSON_STRING" or "JSON_BUFFER"
    XVIZ_FRAME_DELAY: float = float(os.getenv("XVIZ_FRAME_DELAY", 0.0))

    # Logging Settings
    XVIZ_LOG_DIR: str = os.getenv("XVIZ_LOG_DIR", "")
    XVIZ_LOG_LEVEL: str = os.getenv("XVIZ_LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

    @property
    def supported_versions(self) -> set[int]:
        return {int(v) for v in self.XVIZ_SUPPORTED_VERSIONS.split(",") if v.strip()}


settings = Settings()
