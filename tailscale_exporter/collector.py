"""Prometheus collector turning a status snapshot into per-peer counters."""
import logging
from typing import Iterable, List, NamedTuple, Tuple

from prometheus_client.core import CounterMetricFamily

from tailscale_exporter.status import NodeStatus, PeerStatus, StatusFetcher, TailscaleStatus

logger = logging.getLogger(__name__)


class LabelSet(NamedTuple):
    """Label values of one peer sample, in exposition order."""
    id: str
    name: str
    given_name: str
    ip: str
    peer_name: str
    peer_given_name: str
    peer_ip: str
    peer_user_id: str


LABEL_NAMES: Tuple[str, ...] = LabelSet._fields


def self_label_prefix(node: NodeStatus) -> Tuple[str, str, str, str]:
    """Labels shared by every sample of one scrape.

    Raises:
        MissingAddress: the self node has no tailnet address
    """
    return (node.id, node.host_name, node.given_name, node.primary_address())


def peer_label_set(prefix: Tuple[str, str, str, str], peer: PeerStatus) -> LabelSet:
    """Complete a self prefix with one peer's labels.

    Raises:
        MissingAddress: the peer has no tailnet address
    """
    return LabelSet(
        *prefix,
        peer_name=peer.host_name,
        peer_given_name=peer.given_name,
        peer_ip=peer.primary_address(),
        peer_user_id=str(peer.user_id),
    )


def build_label_sets(status: TailscaleStatus) -> List[Tuple[LabelSet, PeerStatus]]:
    """Derive the label set of every peer in a snapshot.

    All label sets are derived up front, so an inconsistent snapshot fails
    before any sample is emitted.
    """
    prefix = self_label_prefix(status.self_node)
    return [(peer_label_set(prefix, peer), peer) for peer in status.peers.values()]


class PeerTrafficCollector:
    """Custom collector emitting rx/tx byte counters for every peer.

    Families are named ``<namespace>_peer_rx`` and ``<namespace>_peer_tx``;
    prometheus_client renders counter samples and the TYPE line with a
    ``_total`` suffix, so the exposition shows ``tailscale_peer_rx_total``.

    Each scrape triggers its own status fetch; the collector keeps no state
    between scrapes. Fetch and label errors propagate to the caller so the
    scrape fails as a whole.
    """

    def __init__(self, fetcher: StatusFetcher, namespace: str = "tailscale"):
        self.fetcher = fetcher
        self.rx_name = f"{namespace}_peer_rx"
        self.tx_name = f"{namespace}_peer_tx"

    def _families(self) -> Tuple[CounterMetricFamily, CounterMetricFamily]:
        rx = CounterMetricFamily(
            self.rx_name,
            "Bytes received from the peer, as reported by tailscale",
            labels=LABEL_NAMES,
        )
        tx = CounterMetricFamily(
            self.tx_name,
            "Bytes transmitted to the peer, as reported by tailscale",
            labels=LABEL_NAMES,
        )
        return rx, tx

    def describe(self) -> Iterable[CounterMetricFamily]:
        # Registration must not run the status command
        return list(self._families())

    def collect(self) -> Iterable[CounterMetricFamily]:
        status = self.fetcher.fetch()
        rows = build_label_sets(status)

        rx, tx = self._families()
        for labels, peer in rows:
            rx.add_metric(list(labels), float(peer.rx_bytes))
            tx.add_metric(list(labels), float(peer.tx_bytes))

        logger.debug(f"Collected traffic counters for {len(rows)} peers")
        yield rx
        yield tx
