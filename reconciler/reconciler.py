#!/usr/bin/env python3
import time
import logging
from typing import List, Optional

from reconciler.checker import ConsistencyChecker
from reconciler.client import PeerClient
from reconciler.config import ReconcilerConfig
from reconciler.directory import PeerDirectory
from reconciler.errors import CredentialError, ResolutionError, UnreachableError
from reconciler.models import CheckReport, ConvergenceResult, PeerRef, RepairResult
from reconciler.repair import RepairEngine
from reconciler.transport import build_transport
from reconciler.waiter import wait_for_convergence

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1

BANNER = "═" * 60


class ClusterReconciler:
    """Scan, repair, wait, re-verify for one Redis Cluster StatefulSet"""

    def __init__(self, config: ReconcilerConfig, directory: Optional[PeerDirectory] = None,
                 transport=None, sleep=time.sleep):
        self.config = config
        self.directory = directory or PeerDirectory.from_kube_config(config.namespace)
        self.transport = transport or build_transport(config)
        self.sleep = sleep
        self.client: Optional[PeerClient] = None

    def run(self) -> int:
        try:
            return self._run()
        except (ResolutionError, CredentialError) as e:
            logger.error(f"❌ {e}")
            return EXIT_FAILED

    def _run(self) -> int:
        cfg = self.config
        if cfg.num_pods is not None:
            self.directory.ensure_namespace()

        peers = self.directory.resolve_peers(cfg.pod_prefix, cfg.num_pods)
        password = cfg.redis_password or self.directory.get_credential(cfg.pod_prefix)
        self.client = PeerClient(self.transport, password)
        checker = ConsistencyChecker(self.client)

        self.log_header(len(peers))

        logger.info("=== PART 0: Scan (BEFORE) ===")
        before = checker.verify(peers, phase="BEFORE")
        if before.healthy and cfg.skip_if_healthy:
            logger.info("✅ Cluster is already healthy, nothing to repair")
            return EXIT_OK

        if not before.healthy:
            logger.warning("⚠️ Problems detected, starting repair...")

        logger.info("=== PART 1: Repair ===")
        # Addresses may have moved while we were scanning
        peers = self.directory.resolve_peers(cfg.pod_prefix, len(peers))
        for peer in peers:
            logger.info(f"   {peer.name}: {peer.address}")

        engine = RepairEngine(self.client, port=cfg.redis_port, dry_run=cfg.dry_run)
        results = engine.repair_all(peers)
        skipped = [r.peer_name for r in results if r.skipped]
        if skipped:
            logger.warning(f"⚠️ Skipped unreachable pods: {' '.join(skipped)}")

        convergence = None
        if cfg.dry_run:
            logger.info("🐛 DRY RUN: skipping the wait, going straight to verification")
        else:
            convergence = wait_for_convergence(
                self.client, peers[0], len(peers),
                max_wait_seconds=cfg.max_wait_seconds,
                poll_interval_seconds=cfg.poll_interval_seconds,
                sleep=self.sleep,
            )

        logger.info("=== PART 2: Verify (AFTER) ===")
        after = checker.verify(peers, phase="AFTER")
        return self.finish(after, peers, results, convergence)

    def log_header(self, num_pods: int):
        cfg = self.config
        logger.info(BANNER)
        logger.info("  Redis Cluster repair + verification")
        if cfg.dry_run:
            logger.info("  🐛 DRY RUN (no commands will be executed)")
        logger.info(BANNER)
        logger.info(f"🔧 Namespace: {cfg.namespace}")
        logger.info(f"🔧 Pod prefix: {cfg.pod_prefix}")
        logger.info(f"🔧 Pods: {num_pods}")
        logger.info(f"🔧 Transport: {self.transport.name}")

    def finish(self, report: CheckReport, peers: List[PeerRef], results: List[RepairResult],
               convergence: Optional[ConvergenceResult]) -> int:
        logger.info(BANNER)
        if report.healthy:
            logger.info("  ✅ Repair succeeded, all pods are in sync")
            self.log_summary(results, convergence)
            logger.info(BANNER)
            self.log_final_tables(peers)
            return EXIT_OK

        logger.error("  ❌ Problems remain after repair, please investigate")
        self.log_summary(results, convergence)
        logger.info(BANNER)
        return EXIT_FAILED

    def log_summary(self, results: List[RepairResult], convergence: Optional[ConvergenceResult]):
        """Totals from the repair pass and the outcome of the wait"""
        for result in results:
            logger.debug(f"Repair result: {result.to_dict()}")

        forgotten = sum(r.forgotten_count for r in results)
        introduced = sum(r.introduced_count for r in results)
        attempted = sum(len(results) for r in results if not r.skipped)
        failed = sum(r.failed_commands for r in results)
        totals = f"FORGET {forgotten} stale node(s), MEET {introduced}/{attempted}"
        if failed:
            logger.warning(f"  ⚠️ Repair: {totals}, {failed} command(s) failed")
        else:
            logger.info(f"  📊 Repair: {totals}")

        skipped = [r.peer_name for r in results if r.skipped]
        if skipped:
            logger.warning(f"  ⚠️ Skipped pods: {' '.join(skipped)}")

        if convergence is None:
            logger.info("  📊 Convergence: skipped (dry run)")
        elif convergence.converged:
            logger.info(f"  📊 Convergence: reached after {convergence.elapsed_seconds}s")
        else:
            logger.warning(f"  ⚠️ Convergence: timed out after {convergence.elapsed_seconds}s "
                           f"(connected {convergence.connected}/{len(results)}, failing {convergence.failed})")

    def log_final_tables(self, peers: List[PeerRef]):
        """Each pod's membership table, sorted by IP"""
        for peer in peers:
            logger.info(f"📋 --- {peer.name} ---")
            try:
                snapshot = self.client.read_snapshot(peer)
            except UnreachableError as e:
                logger.warning(f"   ⚠️ Could not read {peer.name}: {e.reason}")
                continue
            for entry in snapshot.sorted_by_address():
                logger.info(f"   {entry.node_id} {entry.address}:{entry.port} "
                            f"{','.join(sorted(entry.flags))} {entry.link_state}")
