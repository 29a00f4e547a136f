"""Shared fixtures: sample status documents and fake status sources."""
import copy
import json
import subprocess

import pytest

from tailscale_exporter.config import ExporterConfig
from tailscale_exporter.status import TailscaleStatus

SELF_IP = "100.64.0.1"
PEER_IP = "100.64.0.2"

SAMPLE_STATUS = {
    "Version": "1.62.0-t1234567",
    "BackendState": "Running",
    "TailscaleIPs": [SELF_IP, "fd7a:115c:a1e0::1"],
    "Self": {
        "ID": "nSelf1CNTRL",
        "PublicKey": "nodekey:aaaa",
        "HostName": "host1",
        "DNSName": "host1.tailnetxyz.ts.net.",
        "OS": "linux",
        "UserID": 1,
        "TailscaleIPs": [SELF_IP, "fd7a:115c:a1e0::1"],
        "RxBytes": 0,
        "TxBytes": 0,
        "Online": True,
    },
    "MagicDNSSuffix": "tailnetxyz.ts.net",
    "CurrentTailnet": {
        "Name": "example.com",
        "MagicDNSSuffix": "tailnetxyz.ts.net",
        "MagicDNSEnabled": True,
    },
    "Peer": {
        "nodekey:bbbb": {
            "ID": "p1",
            "PublicKey": "nodekey:bbbb",
            "HostName": "peer-one",
            "DNSName": "p1.tailnetxyz.ts.net.",
            "OS": "linux",
            "UserID": 5,
            "TailscaleIPs": [PEER_IP],
            "RxBytes": 10,
            "TxBytes": 20,
            "Online": True,
            "LastSeen": "0001-01-01T00:00:00Z",
        },
    },
    "User": {
        "5": {"ID": 5, "LoginName": "alice@example.com", "DisplayName": "Alice"},
    },
    "ClientVersion": None,
}


def make_peer(index: int, ips=None, rx=0, tx=0, user_id=5) -> dict:
    return {
        "ID": f"peer{index}",
        "HostName": f"peer-{index}",
        "DNSName": f"peer{index}.tailnetxyz.ts.net.",
        "UserID": user_id,
        "TailscaleIPs": [f"100.64.1.{index}"] if ips is None else ips,
        "RxBytes": rx,
        "TxBytes": tx,
    }


@pytest.fixture
def status_doc():
    """A mutable deep copy of the sample status document."""
    return copy.deepcopy(SAMPLE_STATUS)


@pytest.fixture
def make_status():
    """Build a TailscaleStatus, optionally overriding the self addresses or peers."""
    def _make(self_ips=None, peers=None) -> TailscaleStatus:
        doc = copy.deepcopy(SAMPLE_STATUS)
        if self_ips is not None:
            doc["Self"]["TailscaleIPs"] = self_ips
        if peers is not None:
            doc["Peer"] = peers
        return TailscaleStatus.model_validate(doc)
    return _make


class FakeRunner:
    """Stands in for subprocess.run and records the calls it receives.

    Output is returned as bytes, as subprocess.run does without text=True.
    """

    def __init__(self, stdout=b"", stderr=b"", returncode=0, raises=None):
        self.stdout = stdout.encode() if isinstance(stdout, str) else stdout
        self.stderr = stderr.encode() if isinstance(stderr, str) else stderr
        self.returncode = returncode
        self.raises = raises
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append((args, kwargs))
        if self.raises is not None:
            raise self.raises
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


@pytest.fixture
def fake_runner():
    """Factory for FakeRunner; defaults to printing the sample document."""
    def _make(**kwargs):
        kwargs.setdefault("stdout", json.dumps(SAMPLE_STATUS))
        return FakeRunner(**kwargs)
    return _make


class ScriptedFetcher:
    """Returns (or raises) the queued results, one per fetch()."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    def fetch(self):
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def scripted_fetcher():
    return ScriptedFetcher


@pytest.fixture
def config():
    return ExporterConfig()
