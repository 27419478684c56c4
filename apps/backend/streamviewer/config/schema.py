from __future__ import annotations

from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .defaults import (
    APP_VERSION,
    DEFAULT_BIND,
    DEFAULT_BURN_IN_DURATION_SECONDS,
    DEFAULT_BURN_IN_INTERVAL_SECONDS,
    DEFAULT_DISCOVERY_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_DISCOVERY_READ_TIMEOUT_SECONDS,
    DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS,
    DEFAULT_LOAD_ERROR_RETRY_SECONDS,
    DEFAULT_LOG_CAPACITY,
    DEFAULT_PORT,
    DEFAULT_PROTOCOL,
    DEFAULT_RECOVERY_SETTLE_SECONDS,
    DEFAULT_STREAM_TIMEOUT_SECONDS,
)

StreamProtocol = Literal["mse", "webrtc"]


def new_camera_id() -> str:
    return f"cam-{uuid4().hex[:12]}"


class CameraEntry(BaseModel):
    """One camera source. Serialized with the camelCase keys the web UI uses."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_camera_id)
    name: str = ""
    stream_name: str = Field(default="", alias="streamName")
    enabled: bool = True
    protocol: StreamProtocol = DEFAULT_PROTOCOL
    order: int | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AppSettings(BaseModel):
    version: int = APP_VERSION
    data_dir: str
    bind: str = DEFAULT_BIND
    port: int = DEFAULT_PORT
    log_capacity: int = DEFAULT_LOG_CAPACITY
    health_check_interval_seconds: float = DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS
    stream_timeout_seconds: float = DEFAULT_STREAM_TIMEOUT_SECONDS
    recovery_settle_seconds: float = DEFAULT_RECOVERY_SETTLE_SECONDS
    load_error_retry_seconds: float = DEFAULT_LOAD_ERROR_RETRY_SECONDS
    burn_in_interval_seconds: int = DEFAULT_BURN_IN_INTERVAL_SECONDS
    burn_in_duration_seconds: int = DEFAULT_BURN_IN_DURATION_SECONDS
    discovery_connect_timeout_seconds: float = DEFAULT_DISCOVERY_CONNECT_TIMEOUT_SECONDS
    discovery_read_timeout_seconds: float = DEFAULT_DISCOVERY_READ_TIMEOUT_SECONDS

    @field_validator("data_dir")
    @classmethod
    def data_dir_not_empty(cls, value: str) -> str:
        if not value.strip():
            msg = "data_dir cannot be empty"
            raise ValueError(msg)
        return value

    @field_validator(
        "log_capacity",
        "health_check_interval_seconds",
        "stream_timeout_seconds",
        "burn_in_interval_seconds",
        "burn_in_duration_seconds",
        "discovery_connect_timeout_seconds",
        "discovery_read_timeout_seconds",
    )
    @classmethod
    def positive(cls, value: float) -> float:
        if value <= 0:
            msg = "value must be positive"
            raise ValueError(msg)
        return value

    @field_validator("recovery_settle_seconds", "load_error_retry_seconds")
    @classmethod
    def non_negative_delay(cls, value: float) -> float:
        return max(0.0, value)
