"""Failure taxonomy for agent provisioning and sessions."""


class BridgeError(Exception):
    """Base error raised by the agent communication layer."""

    def __init__(self, code: str, message: str) -> None:
        """Initialize with a machine-readable code and a human-readable message.

        Args:
            code: Machine-readable error code (e.g. "invalid_json").
            message: Human-readable error description.

        """
        super().__init__(message)
        self.code = code


class TransportError(BridgeError):
    """Device unreachable, disconnected mid-session, or a remote filesystem operation failed."""


class ProtocolError(BridgeError):
    """Malformed frame, unknown message type, or the agent exited non-zero."""


class AgentError(BridgeError):
    """The agent itself reported a failure (error log with no later result, or no response)."""


class ProvisioningError(BridgeError):
    """Agent download exhausted its retries or the upload timed out."""
