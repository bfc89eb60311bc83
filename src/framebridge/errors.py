"""Custom error types for framebridge."""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for all framebridge errors."""


class ObjectNotFoundError(BridgeError):
    """Raised on the handling side when no channel can resolve an instance id."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"The registered object {instance_id} could not be found.")


class MethodNotFoundError(BridgeError):
    """Raised on the handling side when a registered object lacks the method."""

    def __init__(self, method_name: str) -> None:
        self.method_name = method_name
        super().__init__(f"RPC method not found: {method_name}")


class ChannelClosedError(BridgeError):
    """Raised for requests that were still in flight when their channel closed."""


class RequestTimeoutError(BridgeError, TimeoutError):
    """Raised when a request's optional timeout elapses before a response."""


class RemoteInvocationError(BridgeError):
    """Raised on the calling side when the remote context answers with an error.

    The remote side sends whatever error value it likes. Exceptions raised by a
    Python peer arrive as ``{"name", "message", "stack"}`` mappings; any other
    value is kept untouched on :attr:`error`.
    """

    error: Any
    remote_type_name: str
    remote_message: str
    remote_traceback: str

    def __init__(self, error: Any) -> None:
        """Wrap a deserialized remote error value.

        :param error: Error payload as received from the remote context.
        """
        self.error = error
        if isinstance(error, dict):
            self.remote_type_name = str(error.get("name") or "Error")
            self.remote_message = str(error.get("message") or "")
            self.remote_traceback = str(error.get("stack") or "")
        else:
            self.remote_type_name = type(error).__name__
            self.remote_message = str(error)
            self.remote_traceback = ""
        formatted = f"Remote side raised {self.remote_type_name}: {self.remote_message}"
        if self.remote_traceback:
            formatted += f"\nRemote traceback:\n{self.remote_traceback}"
        super().__init__(formatted)


class ResponseDecodeError(BridgeError):
    """Raised on the calling side when a response payload cannot be decoded."""

    def __init__(self, request_id: int) -> None:
        self.request_id = request_id
        super().__init__(f"response to request {request_id} could not be decoded")
