"""
custom_runtime.runtime — CustomRuntime, the invocation loop.

Lifecycle:
    setup → loop { next event → propagate trace id → invoke → response } → cleanup

Error escalation:
  - setup failure, next-invocation failure  → POST runtime/init/error
  - invoke failure, response-send failure   → POST runtime/invocation/{id}/error
Either path ends the loop and re-raises the triggering exception; the caller
decides whether to exit. cleanup only runs after a bounded run completes.
Failure to deliver an error report is logged and noted on the original
exception, never raised in its place.

Events are processed strictly one at a time: the next poll is only issued once
the previous response or error has been posted.
"""

from __future__ import annotations

import os
from typing import Any, NoReturn

import requests
from aws_lambda_powertools import Logger

from custom_runtime.client import RuntimeAPIClient, encode_result
from custom_runtime.exceptions import ControlPlaneError
from custom_runtime.models import ENV_TRACE_ID, InvocationContext, RuntimeEnvironment
from custom_runtime.protocols import Handler, Transport

logger = Logger(service="custom-runtime")


class CustomRuntime:
    """Hosts a Handler behind the Lambda Runtime API.

    Args:
        handler:     Object implementing setup/invoke/cleanup.
        transport:   HTTP transport; defaults to a requests.Session.
        environment: Resolved configuration; defaults to the process environment.
    """

    def __init__(
        self,
        handler: Handler,
        *,
        transport: Transport | None = None,
        environment: RuntimeEnvironment | None = None,
    ) -> None:
        self.handler = handler
        self.environment = environment or RuntimeEnvironment.from_environ()
        self.transport = transport or requests.Session()
        self.client = RuntimeAPIClient(self.environment.runtime_api, self.transport)

    def run(self, max_iterations: int | None = None) -> None:
        """Run the invocation loop.

        With max_iterations=None the loop never returns normally; it only ends
        by raising. With a bound, returns after that many successful
        invocations, once cleanup has run.
        """
        if max_iterations is not None and max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

        env = self.environment
        logger.info(
            "Custom runtime starting",
            extra={"runtime_api": env.runtime_api, "handler": env.handler},
        )
        try:
            self.handler.setup(env)
        except Exception as exc:
            self._fail_init(exc)

        completed = 0
        while max_iterations is None or completed < max_iterations:
            self._run_once()
            completed += 1

        self.handler.cleanup(env)
        logger.info("Custom runtime finished", extra={"invocations": completed})

    # ---------------------------------------------------------------------------
    # One iteration
    # ---------------------------------------------------------------------------

    def _run_once(self) -> None:
        try:
            event, headers = self.client.next_invocation()
        except Exception as exc:
            self._fail_init(exc)

        context = InvocationContext.from_headers(self.environment, headers)
        _propagate_trace_id(context.trace_id)
        logger.append_keys(request_id=context.request_id)
        try:
            logger.debug("Invocation received", extra={"event_bytes": len(event)})
            try:
                result = self.handler.invoke(event, context)
                self._send_result(context, result)
            except Exception as exc:
                self._fail_invocation(context, exc)
        finally:
            logger.remove_keys(["request_id"])

    def _send_result(self, context: InvocationContext, result: Any) -> None:
        body = encode_result(result)
        self.client.post_response(context.request_id, body)

    # ---------------------------------------------------------------------------
    # Error escalation
    # ---------------------------------------------------------------------------

    def _fail_init(self, exc: Exception) -> NoReturn:
        logger.error("Runtime initialization failed", extra={"error": str(exc)})
        try:
            self.client.post_init_error(exc)
        except ControlPlaneError as report_exc:
            _note_report_failure(exc, report_exc)
        raise exc

    def _fail_invocation(self, context: InvocationContext, exc: Exception) -> NoReturn:
        logger.error("Invocation failed", extra={"error": str(exc)})
        try:
            self.client.post_invocation_error(context.request_id, exc)
        except ControlPlaneError as report_exc:
            _note_report_failure(exc, report_exc)
        raise exc


def _propagate_trace_id(trace_id: str) -> None:
    # Visible to subprocesses started by the handler (e.g. X-Ray aware tooling).
    os.environ[ENV_TRACE_ID] = trace_id


def _note_report_failure(exc: Exception, report_exc: ControlPlaneError) -> None:
    logger.exception("Failed to report error to Runtime API", extra={"url": report_exc.url})
    exc.add_note(f"error report to {report_exc.url} was not delivered: {report_exc}")
