#!/usr/bin/env python3
"""
Ways of sending redis-cli style commands to a single cluster peer.

Transports keep a (success, output) return convention; interpreting the
failure is left to PeerClient.
"""

import logging
import subprocess
from typing import List, Optional, Tuple

import redis

from reconciler.models import PeerRef

logger = logging.getLogger(__name__)

AUTH_ERROR_MARKERS = ("NOAUTH", "WRONGPASS", "invalid password", "Authentication required")


def kubectl_exec(pod_name: str, namespace: str, argv: List[str], timeout: int = 30) -> Tuple[bool, str]:
    """Run a command inside a pod via kubectl exec"""
    full_cmd = ["kubectl", "exec", pod_name, "-n", namespace, "--"] + argv
    try:
        result = subprocess.run(full_cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        return False, f"timed out after {timeout}s"
    except OSError as e:
        return False, str(e)

    return result.returncode == 0, result.stdout + result.stderr


class KubectlExecTransport:
    """redis-cli executed inside the peer's own pod"""

    name = "kubectl"

    def __init__(self, namespace: str, timeout: int = 30):
        self.namespace = namespace
        self.timeout = timeout

    def execute(self, peer: PeerRef, password: Optional[str], args: List[str]) -> Tuple[bool, str]:
        if password:
            redis_cmd = ["redis-cli", "-a", password, "--no-auth-warning"] + list(args)
        else:
            redis_cmd = ["redis-cli"] + list(args)

        logger.debug(f"Executing: kubectl exec {peer.name} -n {self.namespace} -- redis-cli [auth] {' '.join(args)}")

        success, output = kubectl_exec(peer.name, self.namespace, redis_cmd, timeout=self.timeout)

        # redis-cli exits 0 even when the server rejects the command
        if any(marker in output for marker in AUTH_ERROR_MARKERS):
            logger.error(f"Authentication failed for pod {peer.name}")
            return False, "Authentication failed"
        if success and output.startswith("ERR"):
            return False, output.strip()

        return success, output


class DirectRedisTransport:
    """Talks to the peer's pod IP directly; for runs from inside the cluster"""

    name = "direct"

    def __init__(self, port: int = 6379, timeout: int = 30):
        self.port = port
        self.timeout = timeout

    def connect(self, peer: PeerRef, password: Optional[str]) -> redis.Redis:
        return redis.Redis(
            host=peer.address,
            port=self.port,
            password=password,
            decode_responses=True,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
        )

    def execute(self, peer: PeerRef, password: Optional[str], args: List[str]) -> Tuple[bool, str]:
        logger.debug(f"Executing on {peer.address}:{self.port}: [auth] {' '.join(args)}")
        conn = self.connect(peer, password)
        try:
            # Passing "CLUSTER" and "NODES" as separate words bypasses redis-py's reply callbacks
            reply = conn.execute_command(*args)
        except redis.exceptions.AuthenticationError:
            logger.error(f"Authentication failed for pod {peer.name}")
            return False, "Authentication failed"
        except redis.exceptions.RedisError as e:
            return False, str(e)
        finally:
            conn.close()

        if isinstance(reply, bytes):
            reply = reply.decode()
        return True, reply if isinstance(reply, str) else str(reply)


def build_transport(config):
    if config.transport == "direct":
        return DirectRedisTransport(port=config.redis_port, timeout=config.command_timeout)
    return KubectlExecTransport(config.namespace, timeout=config.command_timeout)
