"""Repair and verify node-address consistency in a Redis Cluster on Kubernetes."""

__version__ = "0.1.0"
