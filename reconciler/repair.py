#!/usr/bin/env python3
"""
Repair Engine.

For each pod: CLUSTER FORGET every node whose IP no longer belongs to any
current pod, then CLUSTER MEET every current pod. Forgets always come first
so a stale node id is gone before a new node is introduced at a recycled IP.
"""

import logging
from typing import List

from reconciler.errors import CommandError, UnreachableError
from reconciler.models import PeerRef, RepairResult

logger = logging.getLogger(__name__)


class RepairEngine:
    def __init__(self, client, port: int = 6379, dry_run: bool = False):
        self.client = client
        self.port = port
        self.dry_run = dry_run

    def repair_peer(self, peer: PeerRef, peers: List[PeerRef]) -> RepairResult:
        """Purge stale members from `peer` and re-introduce the current pod set.

        Raises UnreachableError if the pod's table cannot be read. Individual
        FORGET/MEET failures are logged and counted, never raised.
        """
        result = RepairResult(peer.name, dry_run=self.dry_run)
        snapshot = self.client.read_snapshot(peer)
        valid_ips = {p.address for p in peers}

        for entry in snapshot:
            if entry.is_myself or entry.address in valid_ips:
                continue

            logger.info(f"   🗑️ FORGET stale node: {entry.node_id} (old IP: {entry.address})")
            result.forgotten_count += 1
            if self.dry_run:
                logger.info(f"      [DRY RUN] redis-cli -a *** cluster forget {entry.node_id}")
                continue
            try:
                self.client.forget(peer, entry.node_id)
            except CommandError as e:
                result.failed_commands += 1
                logger.warning(f"   ⚠️ {e}")

        logger.info(f"   🔗 CLUSTER MEET {len(peers)} pods...")
        for target in peers:
            if self.dry_run:
                logger.info(f"      [DRY RUN] redis-cli -a *** cluster meet {target.address} {self.port}")
                result.introduced_count += 1
                continue
            try:
                self.client.meet(peer, target.address, self.port)
                result.introduced_count += 1
            except CommandError as e:
                result.failed_commands += 1
                logger.warning(f"   ⚠️ {e}")

        summary = f"FORGET {result.forgotten_count} stale node(s) + MEET {result.introduced_count}/{len(peers)} pods"
        if result.failed_commands:
            logger.warning(f"   ⚠️ {summary}, {result.failed_commands} command(s) failed on {peer.name}")
        else:
            logger.info(f"   ✅ {summary}")

        return result

    def repair_all(self, peers: List[PeerRef]) -> List[RepairResult]:
        """Repair every pod in ordinal order, one at a time"""
        results = []
        for peer in peers:
            logger.info(f"🔧 --- Repairing {peer.name} ---")
            try:
                results.append(self.repair_peer(peer, peers))
            except UnreachableError as e:
                logger.error(f"❌ Could not connect to {peer.name}: {e.reason}")
                skipped = RepairResult(peer.name, dry_run=self.dry_run)
                skipped.skipped = True
                results.append(skipped)

        return results
