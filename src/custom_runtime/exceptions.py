"""
custom_runtime.exceptions — Errors reported to, or raised by, the Runtime API bridge.
"""

from __future__ import annotations

import traceback
from typing import Any

# Classification applied to any handler error that is not already a LambdaRuntimeError.
UNKNOWN_REASON = "Extension.UnknownReason"

GET_EVENT_ERROR = "Initialize.GetEvent"
MARSHAL_ERROR = "Runtime.MarshalError"
HANDLER_NOT_FOUND = "Runtime.HandlerNotFound"
IMPORT_MODULE_ERROR = "Runtime.ImportModuleError"
USER_CODE_SYNTAX_ERROR = "Runtime.UserCodeSyntaxError"


class LambdaRuntimeError(Exception):
    """
    Structured error in the shape the Runtime API expects on its error endpoints.

    Handlers may raise this directly to control the reported errorType and
    stackTrace; it is then forwarded unchanged. Any other exception is wrapped
    by from_exception() under the UNKNOWN_REASON classification.

    Attributes:
        error_message: Human-readable message; also str(exc).
        error_type:    Classification tag, e.g. "Initialize.GetEvent".
        stack_trace:   Ordered stack trace lines, possibly empty.
    """

    def __init__(
        self,
        error_message: str,
        error_type: str = UNKNOWN_REASON,
        stack_trace: list[str] | None = None,
    ) -> None:
        self.error_message = error_message
        self.error_type = error_type
        self.stack_trace = list(stack_trace or [])
        super().__init__(error_message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "errorMessage": self.error_message,
            "errorType": self.error_type,
            "stackTrace": self.stack_trace,
        }

    @classmethod
    def from_exception(cls, exc: BaseException) -> LambdaRuntimeError:
        if isinstance(exc, LambdaRuntimeError):
            return exc
        return cls(
            str(exc),
            UNKNOWN_REASON,
            "".join(traceback.format_tb(exc.__traceback__)).splitlines(),
        )


class ControlPlaneError(RuntimeError):
    """Raised when a request to the Runtime API cannot be sent or read.

    Attributes:
        url: The Runtime API endpoint that was being called.
    """

    def __init__(self, message: str, *, url: str) -> None:
        self.url = url
        super().__init__(message)
