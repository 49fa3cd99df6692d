import time
import logging
from typing import Callable, Tuple, Type

from reconciler.errors import ConvergenceTimeout, UnreachableError
from reconciler.models import LINK_CONNECTED, LINK_FAIL, LINK_HANDSHAKE, ConvergenceResult, PeerRef

logger = logging.getLogger(__name__)


def wait_until(predicate: Callable[[], bool], timeout: int, interval: int,
               sleep: Callable[[float], None] = time.sleep, description: str = "condition",
               retry_on: Tuple[Type[BaseException], ...] = ()) -> int:
    """Poll `predicate` every `interval` seconds until it holds.

    Elapsed time is the number of intervals slept, so a 10s timeout with a 5s
    interval means two polls. Exceptions in `retry_on` count as "not yet".
    Returns the elapsed seconds, or raises ConvergenceTimeout.
    """
    elapsed = 0
    while elapsed < timeout:
        try:
            if predicate():
                return elapsed
        except retry_on as e:
            logger.debug(f"Poll for {description} failed, retrying: {e}")

        sleep(interval)
        elapsed += interval

    raise ConvergenceTimeout(description, elapsed)


def wait_for_convergence(client, reference_peer: PeerRef, expected_count: int,
                         max_wait_seconds: int = 900, poll_interval_seconds: int = 5,
                         sleep: Callable[[float], None] = time.sleep) -> ConvergenceResult:
    """Wait until the reference pod sees every pod connected and none failing"""
    logger.info("⏳ Waiting for the cluster to settle (checking link state of all nodes)...")
    last = {"connected": 0, "failed": 0, "elapsed": 0}

    def converged():
        snapshot = client.read_snapshot(reference_peer)
        connected = snapshot.count_link_state(LINK_CONNECTED)
        failed = snapshot.count_link_state(LINK_FAIL, LINK_HANDSHAKE)
        last.update(connected=connected, failed=failed)

        if connected == expected_count and failed == 0:
            return True

        logger.info(f"   ⏳ Waiting... (connected: {connected}/{expected_count}, failing: {failed}) [{last['elapsed']}s]")
        return False

    def tracked_sleep(seconds):
        sleep(seconds)
        last["elapsed"] += seconds

    try:
        elapsed = wait_until(
            converged,
            timeout=max_wait_seconds,
            interval=poll_interval_seconds,
            sleep=tracked_sleep,
            description=f"{expected_count} connected nodes",
            retry_on=(UnreachableError,),
        )
    except ConvergenceTimeout as e:
        logger.error(f"❌ {e}")
        logger.warning(f"   Inspect manually: kubectl exec pod/{reference_peer.name} -- redis-cli -a *** cluster nodes")
        return ConvergenceResult(False, e.elapsed_seconds, last["connected"], last["failed"])

    logger.info(f"✅ All {expected_count} nodes connected (took {elapsed}s)")
    return ConvergenceResult(True, elapsed, last["connected"], last["failed"])
