"""
custom_runtime.protocols — Structural contracts supplied by the embedder.

Neither contract requires inheritance: any object with matching methods
satisfies it. requests.Session is a valid Transport as-is.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from custom_runtime.models import InvocationContext, RuntimeEnvironment


class Handler(Protocol):
    """User logic hosted by the runtime. Failure is signalled by raising."""

    def setup(self, env: RuntimeEnvironment) -> None:
        """Called once before the first event is fetched."""

    def invoke(self, event: bytes, context: InvocationContext) -> Any:
        """Handle one event and return the result to send back.

        str and bytes results are sent unchanged; anything else is JSON-encoded.
        """

    def cleanup(self, env: RuntimeEnvironment) -> None:
        """Called after a bounded run finishes without error."""


class TransportResponse(Protocol):
    @property
    def content(self) -> bytes: ...

    @property
    def headers(self) -> Mapping[str, str]: ...


class Transport(Protocol):
    def request(
        self,
        method: str,
        url: str,
        *,
        data: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> TransportResponse: ...
