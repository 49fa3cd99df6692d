#!/usr/bin/env python3
"""
Consistency Checker.

Pod 0's CLUSTER NODES view is the reference. Every pod must know every
reference node id at the same IP. Nodes a pod knows about that the
reference does not are ignored.
"""

import logging
from typing import List, Optional

from reconciler.errors import UnreachableError
from reconciler.models import (
    ADDRESS_MISMATCH, MISSING, UNREACHABLE,
    CheckReport, Discrepancy, MembershipSnapshot, PeerRef,
)

logger = logging.getLogger(__name__)


def compare_snapshots(peer_name: str, reference: MembershipSnapshot,
                      snapshot: MembershipSnapshot) -> List[Discrepancy]:
    """Discrepancies of one pod's snapshot against the reference"""
    discrepancies = []
    for expected in reference:
        actual = snapshot.get(expected.node_id)
        if actual is None:
            discrepancies.append(Discrepancy(
                peer_name, expected.node_id, MISSING,
                expected_address=expected.address,
            ))
        elif actual.address != expected.address:
            discrepancies.append(Discrepancy(
                peer_name, expected.node_id, ADDRESS_MISMATCH,
                expected_address=expected.address,
                actual_address=actual.address,
            ))
    return discrepancies


class ConsistencyChecker:
    def __init__(self, client):
        self.client = client

    def check(self, reference: MembershipSnapshot, peers: List[PeerRef], phase: str = "CHECK") -> CheckReport:
        report = CheckReport(phase, reference_count=len(reference))

        for peer in peers:
            try:
                snapshot = self.client.read_snapshot(peer)
            except UnreachableError as e:
                logger.error(f"   ❌ {peer.name}: unreachable ({e.reason})")
                report.discrepancies.append(Discrepancy(peer.name, None, UNREACHABLE))
                continue

            report.checked_peers.append(peer.name)
            found = compare_snapshots(peer.name, reference, snapshot)
            report.discrepancies.extend(found)
            self._log_peer(peer, found)

        self._log_summary(report)
        return report

    def verify(self, peers: List[PeerRef], phase: str = "CHECK") -> CheckReport:
        """Take the reference from the first peer, then check every peer against it"""
        reference_peer = peers[0]
        logger.info(f"🔍 [{phase}] Building reference node id -> IP map from {reference_peer.name}")

        reference = self.read_reference(reference_peer)
        if reference is None:
            report = CheckReport(phase)
            report.discrepancies.append(Discrepancy(reference_peer.name, None, UNREACHABLE))
            self._log_summary(report)
            return report

        logger.info(f"   Reference map has {len(reference)} nodes")
        return self.check(reference, peers, phase=phase)

    def read_reference(self, peer: PeerRef) -> Optional[MembershipSnapshot]:
        try:
            return self.client.read_snapshot(peer)
        except UnreachableError as e:
            logger.error(f"❌ Could not read reference snapshot from {peer.name}: {e.reason}")
            return None

    def _log_peer(self, peer: PeerRef, found: List[Discrepancy]):
        if not found:
            logger.info(f"   ✅ {peer.name}: fully consistent")
            return

        for d in found:
            if d.kind == MISSING:
                logger.warning(f"   ❌ {peer.name}: missing node {d.node_id}")
            else:
                logger.warning(f"   ❌ {peer.name}: node {d.node_id} IP mismatch "
                               f"(reference: {d.expected_address}, {peer.name}: {d.actual_address})")

    def _log_summary(self, report: CheckReport):
        if report.healthy:
            logger.info(f"✅ [{report.phase}] All pods agree on the node mapping")
            return

        inconsistent = report.inconsistent_peers()
        if inconsistent:
            logger.warning(f"❌ [{report.phase}] {len(inconsistent)} pod(s) inconsistent: {' '.join(inconsistent)}")
        if report.unreachable_peers:
            logger.warning(f"❌ [{report.phase}] Unreachable: {' '.join(report.unreachable_peers)}")
