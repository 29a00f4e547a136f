"""Tests for the /metrics HTTP endpoint."""
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from tailscale_exporter.collector import PeerTrafficCollector
from tailscale_exporter.errors import FetchTimeout
from tailscale_exporter.server import MetricsServer
from tailscale_exporter.status import StatusFetcher


def make_client(fetcher):
    registry = CollectorRegistry()
    registry.register(PeerTrafficCollector(fetcher))
    return TestClient(MetricsServer(registry, host="127.0.0.1", port=9995).app)


def test_metrics_endpoint_serves_exposition(make_status, scripted_fetcher):
    client = make_client(scripted_fetcher([make_status()]))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'peer_ip="100.64.0.2"' in response.text
    assert "tailscale_peer_tx_total" in response.text


def test_failed_fetch_fails_scrape(scripted_fetcher):
    client = make_client(scripted_fetcher([FetchTimeout(10)]))

    response = client.get("/metrics")

    assert response.status_code == 503
    assert "timed out" in response.json()["detail"]


def test_scrape_failure_does_not_break_later_scrapes(make_status, scripted_fetcher):
    client = make_client(scripted_fetcher([make_status(self_ips=[]), make_status()]))

    assert client.get("/metrics").status_code == 503
    assert client.get("/metrics").status_code == 200


def test_only_metrics_route_exposed(make_status, scripted_fetcher):
    client = make_client(scripted_fetcher([]))

    assert client.get("/").status_code == 404
    assert client.get("/docs").status_code == 404


def test_listen_formats_ipv6():
    server = MetricsServer(CollectorRegistry(), host="fd7a:115c:a1e0::1", port=9995)
    assert server.listen == "[fd7a:115c:a1e0::1]:9995"


def test_undecodable_output_fails_scrape(config, fake_runner):
    client = make_client(StatusFetcher(config, runner=fake_runner(stdout=b"\xff\xfe{")))

    response = client.get("/metrics")

    assert response.status_code == 503
    assert "not UTF-8" in response.json()["detail"]
