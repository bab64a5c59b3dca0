"""
custom_runtime.models — Runtime configuration and per-invocation context.

RuntimeEnvironment is resolved once from the process environment when the
runtime is constructed. InvocationContext is built fresh for every event
returned by the Runtime API and discarded once that event is acknowledged.
"""

from __future__ import annotations

import os
import time
from collections.abc import Mapping
from dataclasses import dataclass

from requests.structures import CaseInsensitiveDict

# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------
ENV_RUNTIME_API = "AWS_LAMBDA_RUNTIME_API"
ENV_TASK_ROOT = "LAMBDA_TASK_ROOT"
ENV_HANDLER = "_HANDLER"
ENV_TRACE_ID = "_X_AMZN_TRACE_ID"

# ---------------------------------------------------------------------------
# Runtime API headers
# ---------------------------------------------------------------------------
HEADER_REQUEST_ID = "Lambda-Runtime-Aws-Request-Id"
HEADER_DEADLINE_MS = "Lambda-Runtime-Deadline-Ms"
HEADER_INVOKED_FUNCTION_ARN = "Lambda-Runtime-Invoked-Function-Arn"
HEADER_TRACE_ID = "Lambda-Runtime-Trace-Id"
HEADER_CLIENT_CONTEXT = "Lambda-Runtime-Client-Context"
HEADER_COGNITO_IDENTITY = "Lambda-Runtime-Cognito-Identity"
HEADER_FUNCTION_ERROR_TYPE = "Lambda-Runtime-Function-Error-Type"


@dataclass(frozen=True)
class RuntimeEnvironment:
    """Configuration a handler needs for setup, invoke and cleanup.

    runtime_api: Runtime API base address as host:port, e.g. "127.0.0.1:9001".
    task_root:   directory holding the function code.
    handler:     handler identifier configured on the function.
    """

    runtime_api: str
    task_root: str
    handler: str

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> RuntimeEnvironment:
        env = os.environ if environ is None else environ
        return cls(
            runtime_api=env.get(ENV_RUNTIME_API, ""),
            task_root=env.get(ENV_TASK_ROOT, ""),
            handler=env.get(ENV_HANDLER, ""),
        )


@dataclass(frozen=True)
class InvocationContext:
    """Context for a single invocation, taken from the next-invocation headers.

    Example values:
        request_id:           "8476a536-e9f4-11e8-9739-2dfe598c3fcd"
        deadline_ms:          "1542409706888"
        invoked_function_arn: "arn:aws:lambda:us-east-2:123456789012:function:custom-runtime"
        trace_id:             "Root=1-5bef4de7-ad49b0e87f6ef6c87fc2e700;Parent=9a9197af755a6419;Sampled=1"

    client_context and cognito_identity are only set for invocations made
    through the AWS Mobile SDK and are passed through as raw JSON strings.
    """

    request_id: str
    deadline_ms: str
    invoked_function_arn: str
    trace_id: str
    client_context: str
    cognito_identity: str
    environment: RuntimeEnvironment

    @classmethod
    def from_headers(
        cls, environment: RuntimeEnvironment, headers: Mapping[str, str]
    ) -> InvocationContext:
        lookup = CaseInsensitiveDict(headers)
        return cls(
            request_id=lookup.get(HEADER_REQUEST_ID, ""),
            deadline_ms=lookup.get(HEADER_DEADLINE_MS, ""),
            invoked_function_arn=lookup.get(HEADER_INVOKED_FUNCTION_ARN, ""),
            trace_id=lookup.get(HEADER_TRACE_ID, ""),
            client_context=lookup.get(HEADER_CLIENT_CONTEXT, ""),
            cognito_identity=lookup.get(HEADER_COGNITO_IDENTITY, ""),
            environment=environment,
        )

    @property
    def aws_request_id(self) -> str:
        return self.request_id

    def get_remaining_time_in_millis(self, now_ms: int | None = None) -> int:
        """Milliseconds left before the deadline; 0 when past or unknown."""
        try:
            deadline = int(self.deadline_ms)
        except ValueError:
            return 0
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return max(deadline - now_ms, 0)
