"""Configuration model using Pydantic for validation."""
import re
from typing import List, Literal
from pydantic import BaseModel, Field, field_validator


class ExporterConfig(BaseModel):
    """Runtime settings for the exporter.

    Built in code with its defaults; components receive it explicitly so
    tests can construct their own.
    """
    tailscale_bin: str = "tailscale"
    status_args: List[str] = Field(default_factory=lambda: ["status", "--json"])
    command_timeout_s: float = 10.0

    listen_port: int = 9995
    namespace: str = "tailscale"

    watchdog_interval_s: float = 20.0
    watchdog_max_failures: int = 20

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator('command_timeout_s', 'watchdog_interval_s')
    @classmethod
    def validate_positive_seconds(cls, v):
        """Durations must be positive."""
        if v <= 0:
            raise ValueError("Durations must be greater than zero")
        return v

    @field_validator('watchdog_max_failures')
    @classmethod
    def validate_max_failures(cls, v):
        if v < 1:
            raise ValueError("watchdog_max_failures must be at least 1")
        return v

    @field_validator('listen_port')
    @classmethod
    def validate_port(cls, v):
        if not 0 < v < 65536:
            raise ValueError(f"Invalid listen port: {v}")
        return v

    @field_validator('namespace')
    @classmethod
    def validate_namespace(cls, v):
        """Namespace becomes a metric name prefix."""
        if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', v):
            raise ValueError(f"Invalid metric namespace: {v!r}")
        return v

    def status_command(self) -> List[str]:
        """Full argv of the status command."""
        return [self.tailscale_bin, *self.status_args]
