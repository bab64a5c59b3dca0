"""
custom_runtime.client — RuntimeAPIClient, the HTTP side of the Runtime API protocol.

Builds endpoint URLs, fetches the next invocation, and posts results and
errors back. Transport failures surface as ControlPlaneError; response
status codes are not inspected.

Endpoints (base = AWS_LAMBDA_RUNTIME_API):
    GET  http://{base}/2018-06-01/runtime/invocation/next
    POST http://{base}/2018-06-01/runtime/invocation/{requestId}/response
    POST http://{base}/2018-06-01/runtime/invocation/{requestId}/error
    POST http://{base}/2018-06-01/runtime/init/error
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from aws_lambda_powertools import Logger

from custom_runtime.exceptions import (
    GET_EVENT_ERROR,
    MARSHAL_ERROR,
    ControlPlaneError,
    LambdaRuntimeError,
)
from custom_runtime.models import HEADER_FUNCTION_ERROR_TYPE
from custom_runtime.protocols import Transport

logger = Logger(service="custom-runtime")

API_VERSION = "2018-06-01"


# ---------------------------------------------------------------------------
# Result encoding
# ---------------------------------------------------------------------------


def encode_result(value: Any) -> bytes:
    """Encode a handler result as a response body.

    Text is sent byte-for-byte; everything else is compact JSON.
    Raises LambdaRuntimeError (Runtime.MarshalError) if JSON encoding fails.
    """
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bytes | bytearray):
        return bytes(value)
    try:
        return json.dumps(
            value, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        ).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise LambdaRuntimeError(f"Unable to marshal response: {exc}", MARSHAL_ERROR) from exc


class RuntimeAPIClient:
    """Thin wrapper over a Transport that speaks the Runtime API."""

    def __init__(self, runtime_api: str, transport: Transport) -> None:
        self._base_url = f"http://{runtime_api}/{API_VERSION}/runtime"
        self._transport = transport

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    @property
    def next_invocation_url(self) -> str:
        return f"{self._base_url}/invocation/next"

    @property
    def init_error_url(self) -> str:
        return f"{self._base_url}/init/error"

    def response_url(self, request_id: str) -> str:
        return f"{self._base_url}/invocation/{request_id}/response"

    def invocation_error_url(self, request_id: str) -> str:
        return f"{self._base_url}/invocation/{request_id}/error"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def next_invocation(self) -> tuple[bytes, Mapping[str, str]]:
        """Block until the next event is available and return (body, headers).

        Raises LambdaRuntimeError (Initialize.GetEvent) if the request cannot be
        sent or its body cannot be read.
        """
        url = self.next_invocation_url
        try:
            response = self._transport.request("GET", url)
        except Exception as exc:
            raise LambdaRuntimeError(f"failed to get event data: {exc}", GET_EVENT_ERROR) from exc
        try:
            body = response.content
        except Exception as exc:
            raise LambdaRuntimeError(f"failed to read event data: {exc}", GET_EVENT_ERROR) from exc
        return body, response.headers

    def post_response(self, request_id: str, body: bytes) -> None:
        url = self.response_url(request_id)
        try:
            self._transport.request("POST", url, data=body)
        except Exception as exc:
            raise ControlPlaneError(f"failed to send response data: {exc}", url=url) from exc
        logger.debug("Response posted", extra={"url": url, "body_bytes": len(body)})

    def post_init_error(self, error: BaseException) -> LambdaRuntimeError:
        return self._post_error(self.init_error_url, error)

    def post_invocation_error(self, request_id: str, error: BaseException) -> LambdaRuntimeError:
        return self._post_error(self.invocation_error_url(request_id), error)

    def _post_error(self, url: str, error: BaseException) -> LambdaRuntimeError:
        """POST the structured form of error to url and return what was sent.

        Raises ControlPlaneError if the report itself cannot be delivered.
        """
        runtime_error = LambdaRuntimeError.from_exception(error)
        body = json.dumps(runtime_error.to_dict()).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            HEADER_FUNCTION_ERROR_TYPE: runtime_error.error_type,
        }
        try:
            self._transport.request("POST", url, data=body, headers=headers)
        except Exception as exc:
            raise ControlPlaneError(f"failed to send error data: {exc}", url=url) from exc
        logger.info(
            "Error reported to Runtime API",
            extra={"url": url, "error_type": runtime_error.error_type},
        )
        return runtime_error
