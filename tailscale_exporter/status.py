"""Tailscale status snapshot models and the status command fetcher."""
import logging
import subprocess
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tailscale_exporter.config import ExporterConfig
from tailscale_exporter.errors import CommandFailure, DecodeFailure, FetchTimeout, MissingAddress

logger = logging.getLogger(__name__)

# Amount of raw stdout carried by a DecodeFailure
SNIPPET_CHARS = 200


def given_name(dns_name: str) -> str:
    """First dot-separated segment of a MagicDNS name.

    >>> given_name("host1.tailnetxyz.ts.net.")
    'host1'
    """
    return dns_name.split(".", 1)[0]


class _StatusModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class NodeStatus(_StatusModel):
    """One node of the tailnet as reported by `tailscale status --json`."""
    id: str = Field(default="", alias="ID")
    host_name: str = Field(default="", alias="HostName")
    dns_name: str = Field(default="", alias="DNSName")
    os: str = Field(default="", alias="OS")
    user_id: int = Field(default=0, alias="UserID")
    tailscale_ips: List[str] = Field(default_factory=list, alias="TailscaleIPs")
    rx_bytes: int = Field(default=0, alias="RxBytes")
    tx_bytes: int = Field(default=0, alias="TxBytes")
    online: bool = Field(default=False, alias="Online")
    active: bool = Field(default=False, alias="Active")
    exit_node: bool = Field(default=False, alias="ExitNode")

    @field_validator('tailscale_ips', mode='before')
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v

    @property
    def given_name(self) -> str:
        return given_name(self.dns_name)

    def primary_address(self) -> str:
        """First tailnet address of the node.

        Raises:
            MissingAddress: the node reports no addresses
        """
        if not self.tailscale_ips:
            raise MissingAddress(self.host_name or self.id)
        return self.tailscale_ips[0]


class PeerStatus(NodeStatus):
    """A peer entry; same shape as the self node."""
    pass


class UserProfile(_StatusModel):
    id: int = Field(default=0, alias="ID")
    login_name: str = Field(default="", alias="LoginName")
    display_name: str = Field(default="", alias="DisplayName")


class TailnetInfo(_StatusModel):
    name: str = Field(default="", alias="Name")
    magic_dns_suffix: str = Field(default="", alias="MagicDNSSuffix")
    magic_dns_enabled: bool = Field(default=False, alias="MagicDNSEnabled")


class TailscaleStatus(_StatusModel):
    """Immutable snapshot decoded from one status fetch."""
    version: str = Field(default="", alias="Version")
    backend_state: str = Field(default="", alias="BackendState")
    tailscale_ips: List[str] = Field(default_factory=list, alias="TailscaleIPs")
    self_node: NodeStatus = Field(alias="Self")
    peers: Dict[str, PeerStatus] = Field(default_factory=dict, alias="Peer")
    users: Dict[str, UserProfile] = Field(default_factory=dict, alias="User")
    magic_dns_suffix: str = Field(default="", alias="MagicDNSSuffix")
    current_tailnet: Optional[TailnetInfo] = Field(default=None, alias="CurrentTailnet")

    @field_validator('tailscale_ips', 'peers', 'users', mode='before')
    @classmethod
    def null_as_empty(cls, v, info):
        if v is None:
            return [] if info.field_name == 'tailscale_ips' else {}
        return v


def _text(output) -> str:
    """Decode captured process output for diagnostics."""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output or ""


def decode_status(raw) -> TailscaleStatus:
    """Decode the JSON document printed by the status command.

    Accepts the raw bytes captured from the command (or an already decoded
    string). Invalid UTF-8 is a DecodeFailure like any other malformed output.
    """
    snippet = _text(raw[:SNIPPET_CHARS])
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeFailure(f"error on unmarshal: output is not UTF-8: {e}", snippet=snippet) from e

    try:
        return TailscaleStatus.model_validate_json(raw)
    except ValidationError as e:
        raise DecodeFailure(
            f"error on unmarshal: {e.error_count()} validation error(s), "
            f"first: {e.errors()[0]['msg']}",
            snippet=snippet,
        ) from e


class StatusFetcher:
    """Runs the status command and decodes its output.

    Every call to fetch() is an independent invocation; nothing is cached
    and nothing is retried here.
    """

    def __init__(self, config: ExporterConfig, runner: Optional[Callable] = None):
        self.config = config
        self._runner = runner or subprocess.run

    def fetch(self) -> TailscaleStatus:
        """Fetch a fresh status snapshot.

        Raises:
            FetchTimeout: command exceeded the configured timeout
            CommandFailure: command could not run, exited non-zero or wrote to stderr
            DecodeFailure: stdout is not a valid status document
        """
        command = self.config.status_command()
        timeout = self.config.command_timeout_s

        # Output is captured as bytes; decoding happens in decode_status
        try:
            result = self._runner(
                command,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise FetchTimeout(timeout) from None
        except OSError as e:
            raise CommandFailure(f"failed to run {command[0]}: {e}") from e

        stderr = _text(result.stderr)
        if result.returncode != 0:
            raise CommandFailure(
                f"{' '.join(command)} exited with status {result.returncode}",
                stderr=stderr,
                returncode=result.returncode,
            )
        if stderr.strip():
            raise CommandFailure(
                f"{' '.join(command)} wrote diagnostics",
                stderr=stderr,
                returncode=result.returncode,
            )

        status = decode_status(result.stdout or b"")
        logger.debug(f"Fetched tailscale status: {len(status.peers)} peers")
        return status
