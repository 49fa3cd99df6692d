#!/usr/bin/env python3
"""
Peer Directory: the expected set of Redis pods and where they live right now.

Pods are StatefulSet members named <prefix>-<ordinal>. Their IPs change on
restart, so everything here is read fresh from the Kubernetes API.
"""

import re
import logging
from typing import List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from reconciler.errors import CredentialError, ResolutionError
from reconciler.models import PeerRef
from reconciler.transport import kubectl_exec

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "REDIS_PASSWORD"


def load_kube_config():
    """In-cluster service account first, then the operator's kubeconfig"""
    try:
        config.load_incluster_config()
        logger.info("✅ Connected to Kubernetes (in-cluster)")
    except ConfigException:
        try:
            config.load_kube_config()
        except ConfigException as e:
            raise ResolutionError(f"Kubernetes connection failed: {e}")
        logger.info("✅ Connected to Kubernetes (kubeconfig)")


def pod_name(prefix: str, ordinal: int) -> str:
    return f"{prefix}-{ordinal}"


class PeerDirectory:
    def __init__(self, core_api, namespace: str, exec_fn=kubectl_exec):
        self.k8s_core = core_api
        self.namespace = namespace
        self.exec_fn = exec_fn

    @classmethod
    def from_kube_config(cls, namespace: str):
        load_kube_config()
        return cls(client.CoreV1Api(), namespace)

    def ensure_namespace(self):
        try:
            self.k8s_core.read_namespace(name=self.namespace)
        except ApiException as e:
            if e.status == 404:
                raise ResolutionError(f"Namespace '{self.namespace}' does not exist")
            raise ResolutionError(f"Could not read namespace '{self.namespace}': {e.reason}")
        except HTTPError as e:
            raise ResolutionError(f"Kubernetes API unreachable while reading namespace '{self.namespace}': {e}")

    def count_peers(self, prefix: str) -> int:
        """Count pods named <prefix>-<n> in the namespace"""
        pattern = re.compile(rf"^{re.escape(prefix)}-\d+$")
        try:
            all_pods = self.k8s_core.list_namespaced_pod(namespace=self.namespace)
        except ApiException as e:
            raise ResolutionError(f"Could not list pods in '{self.namespace}': {e.reason}")
        except HTTPError as e:
            raise ResolutionError(f"Kubernetes API unreachable while listing pods in '{self.namespace}': {e}")

        return sum(1 for pod in all_pods.items if pattern.match(pod.metadata.name))

    def get_address(self, name: str) -> str:
        try:
            pod = self.k8s_core.read_namespaced_pod(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                raise ResolutionError(f"Pod '{name}' not found in namespace '{self.namespace}'")
            raise ResolutionError(f"Could not read pod '{name}': {e.reason}")
        except HTTPError as e:
            raise ResolutionError(f"Kubernetes API unreachable while reading pod '{name}': {e}")

        ip = pod.status.pod_ip if pod.status else None
        if not ip:
            raise ResolutionError(f"Pod '{name}' has no IP yet (phase: {getattr(pod.status, 'phase', None)})")
        return ip

    def resolve_peers(self, prefix: str, count: Optional[int] = None) -> List[PeerRef]:
        """PeerRefs for ordinals 0..count-1, in ordinal order"""
        if count is None:
            count = self.count_peers(prefix)
        if count == 0:
            raise ResolutionError(f"No pods matching '{prefix}-*' in namespace '{self.namespace}'")

        peers = []
        for i in range(count):
            name = pod_name(prefix, i)
            peers.append(PeerRef(ordinal=i, name=name, address=self.get_address(name)))

        return peers

    def get_credential(self, prefix: str) -> str:
        """Read REDIS_PASSWORD from the runtime environment of pod 0"""
        name = pod_name(prefix, 0)
        success, output = self.exec_fn(name, self.namespace, ["env"])
        if not success:
            raise CredentialError(f"Could not read environment of {name}: {output.strip()}")

        for line in output.splitlines():
            key, sep, value = line.partition('=')
            if sep and key == PASSWORD_ENV_VAR and value:
                return value

        raise CredentialError(f"{PASSWORD_ENV_VAR} is not set in {name}")
