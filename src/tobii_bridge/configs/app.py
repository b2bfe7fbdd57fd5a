import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, PositiveInt, model_validator

from .utils import LoggingConfig

logger = logging.getLogger(__name__)


class NetworkSettings(BaseModel):
    """Listener ports and broadcast targets. Port 0 binds an ephemeral port."""
    host: str = Field("0.0.0.0", description="Interface the WebSocket and discovery listeners bind to.")
    websocket_port: int = Field(8080, ge=0, le=65535)
    udp_port: int = Field(4242, ge=0, le=65535, description="Legacy (OpenTrack) head-pose datagram port.")
    discovery_port: int = Field(8083, ge=0, le=65535)
    config_port: int = Field(8081, ge=0, le=65535, description="Advertised in announcements only.")
    discovery_response_port: int = Field(
        8084, ge=0, le=65535, description="Port clients listen on for replies to discovery requests."
    )
    broadcast_address: str = "255.255.255.255"
    advertised_host: Optional[str] = Field(None, description="Host included in announcements, if set.")
    respond_to_discovery_requests: bool = True


class TimingSettings(BaseModel):
    update_interval_ms: PositiveInt = Field(16, description="Acquisition cadence, ~60 Hz by default.")
    discovery_interval_s: float = Field(5.0, gt=0)
    heartbeat_interval_s: float = Field(2.0, ge=0, description="0 disables WebSocket heartbeats.")
    shutdown_timeout_s: float = Field(5.0, gt=0)


class DummyProviderConfig(BaseModel):
    radius: float = 0.2
    center: tuple[float, float] = (0.5, 0.5)
    speed: float = Field(0.25, description="Revolutions per second of the simulated gaze path.")
    head_amplitude_deg: float = 15.0


class TobiiProviderConfig(BaseModel):
    address: Optional[str] = Field(None, description="Tracker address; the first tracker found if unset.")
    stale_after_ms: PositiveInt = 100


class BridgeSettings(BaseSettings):
    """
    Bridge settings, loaded from environment variables, `.env` and defaults.
    """
    # Provider
    use_dummy_mode: bool = False
    dummy: DummyProviderConfig = Field(default_factory=DummyProviderConfig)
    tobii: TobiiProviderConfig = Field(default_factory=TobiiProviderConfig)

    # Transports
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    timing: TimingSettings = Field(default_factory=TimingSettings)

    # Logging
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="TOBII_BRIDGE__",
        env_file=".env",
        env_nested_delimiter='__',
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode='after')
    def validate_ports(self) -> "BridgeSettings":
        net = self.network
        fixed = [p for p in (net.websocket_port, net.udp_port, net.discovery_port) if p != 0]
        if len(fixed) != len(set(fixed)):
            raise ValueError("WebSocket, UDP and discovery ports must be distinct.")
        return self
