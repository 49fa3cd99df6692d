import logging
from typing import Optional

from reconciler.errors import CommandError, UnreachableError
from reconciler.models import MembershipSnapshot, PeerRef, parse_cluster_nodes

logger = logging.getLogger(__name__)


class PeerClient:
    """Typed access to the cluster commands the reconciler needs"""

    def __init__(self, transport, password: Optional[str]):
        self.transport = transport
        self.password = password

    def read_snapshot(self, peer: PeerRef) -> MembershipSnapshot:
        """CLUSTER NODES as seen by `peer`. Raises UnreachableError."""
        success, output = self.transport.execute(peer, self.password, ["CLUSTER", "NODES"])
        if not success:
            raise UnreachableError(peer.name, output.strip() or "no output")
        if not output.strip():
            raise UnreachableError(peer.name, "empty CLUSTER NODES reply")

        snapshot = parse_cluster_nodes(output)
        logger.debug(f"📋 {peer.name} reports {len(snapshot)} cluster nodes")
        return snapshot

    def forget(self, peer: PeerRef, node_id: str):
        self._run(peer, ["CLUSTER", "FORGET", node_id])

    def meet(self, peer: PeerRef, address: str, port: int):
        self._run(peer, ["CLUSTER", "MEET", address, str(port)])

    def _run(self, peer: PeerRef, args):
        success, output = self.transport.execute(peer, self.password, args)
        if not success:
            raise CommandError(peer.name, ' '.join(args), output.strip() or "no output")
        return output
