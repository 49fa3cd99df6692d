"""Exceptions raised by the reconciler"""


class ReconcilerError(Exception):
    """Base class for all reconciler failures"""


class ConfigError(ReconcilerError):
    pass


class ResolutionError(ReconcilerError):
    """Peers or their addresses could not be enumerated. Fatal."""


class CredentialError(ReconcilerError):
    """The shared Redis password could not be obtained. Fatal."""


class UnreachableError(ReconcilerError):
    """A peer could not be queried (refused, timed out, auth failure)"""

    def __init__(self, peer_name: str, reason: str):
        super().__init__(f"{peer_name}: {reason}")
        self.peer_name = peer_name
        self.reason = reason


class CommandError(ReconcilerError):
    """A single mutating cluster command failed on a peer"""

    def __init__(self, peer_name: str, command: str, reason: str):
        super().__init__(f"{peer_name}: '{command}' failed: {reason}")
        self.peer_name = peer_name
        self.command = command
        self.reason = reason


class ConvergenceTimeout(ReconcilerError):
    """Advisory: the awaited condition did not hold before the deadline"""

    def __init__(self, description: str, elapsed_seconds: int):
        super().__init__(f"Timed out after {elapsed_seconds}s waiting for {description}")
        self.description = description
        self.elapsed_seconds = elapsed_seconds
