from __future__ import annotations

from pathlib import Path

from streamviewer.util.paths import platform_default_data_dir

APP_NAME = "Stream Viewer"
APP_VERSION = 1
API_VERSION = "0.1.0"
DEFAULT_BIND = "0.0.0.0"
DEFAULT_PORT = 9090
DEFAULT_LOG_LEVEL = "info"
DEFAULT_PROTOCOL = "mse"

DEFAULT_LOG_CAPACITY = 500
DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS = 10.0
DEFAULT_STREAM_TIMEOUT_SECONDS = 30.0
DEFAULT_RECOVERY_SETTLE_SECONDS = 1.0
DEFAULT_LOAD_ERROR_RETRY_SECONDS = 5.0
DEFAULT_BURN_IN_INTERVAL_SECONDS = 7200
DEFAULT_BURN_IN_DURATION_SECONDS = 60
DEFAULT_DISCOVERY_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_DISCOVERY_READ_TIMEOUT_SECONDS = 5.0

NS_CAMERAS = "cameras"
NS_APP_PREFS = "app_prefs"
NS_STREAM_SETTINGS = "stream_settings"
KEY_CAMERA_LIST = "camera_list"
KEY_BURN_IN_PROTECTION = "burn_in_protection"
KEY_INITIALIZED = "initialized"
KEY_DEFAULT_STREAM = "default_stream"
KEY_SERVER_URL = "go2rtc_url"


def default_data_dir() -> Path:
    return platform_default_data_dir()
