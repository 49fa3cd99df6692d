#!/usr/bin/env python3
"""
Command line entry point.

    reconcile <namespace> [pod_prefix] [num_pods]

Examples:
    reconcile default                     # pod_prefix=redis-cluster, pod count auto-detected
    reconcile redis-i32 my-redis 6        # custom prefix, 6 pods
    DEBUG=1 reconcile default             # preview only, nothing is executed
"""

import sys
import logging
import argparse

from reconciler.config import TRANSPORTS, ReconcilerConfig
from reconciler.errors import ReconcilerError
from reconciler.reconciler import EXIT_FAILED, ClusterReconciler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reconcile",
        description="Repair stale node IPs in a Redis Cluster on Kubernetes and verify all pods agree.",
    )
    parser.add_argument("namespace", nargs="?", help="Kubernetes namespace (default: $RECONCILE_NAMESPACE or redis-i4)")
    parser.add_argument("pod_prefix", nargs="?", help="StatefulSet pod name prefix (default: redis-cluster)")
    parser.add_argument("num_pods", nargs="?", type=int, help="Number of pods (default: auto-detect)")
    parser.add_argument("--dry-run", action="store_true", default=None,
                        help="Log intended FORGET/MEET commands without executing them (same as DEBUG=1)")
    parser.add_argument("--always-repair", action="store_true",
                        help="Repair even if the first check finds the cluster healthy")
    parser.add_argument("--max-wait", type=int, dest="max_wait_seconds",
                        help="Seconds to wait for the cluster to settle (default: 900)")
    parser.add_argument("--poll-interval", type=int, dest="poll_interval_seconds",
                        help="Seconds between convergence polls (default: 5)")
    parser.add_argument("--port", type=int, dest="redis_port", help="Redis port used for CLUSTER MEET (default: 6379)")
    parser.add_argument("--transport", choices=TRANSPORTS,
                        help="kubectl: redis-cli via kubectl exec; direct: connect to pod IPs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args) -> ReconcilerConfig:
    return ReconcilerConfig(
        namespace=args.namespace,
        pod_prefix=args.pod_prefix,
        num_pods=args.num_pods,
        dry_run=args.dry_run,
        skip_if_healthy=False if args.always_repair else None,
        redis_port=args.redis_port,
        max_wait_seconds=args.max_wait_seconds,
        poll_interval_seconds=args.poll_interval_seconds,
        transport=args.transport,
        log_level="DEBUG" if args.verbose else None,
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = config_from_args(args)
    except ReconcilerError as e:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
        logger.error(f"❌ {e}")
        return EXIT_FAILED

    logging.basicConfig(level=cfg.log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        reconciler = ClusterReconciler(cfg)
    except ReconcilerError as e:
        logger.error(f"❌ {e}")
        return EXIT_FAILED

    return reconciler.run()


if __name__ == "__main__":
    sys.exit(main())
