"""
echo-handler — Reference handler for the custom runtime.

Demonstrates the setup/invoke/cleanup contract and both result encodings.
Used for local smoke tests against the mock Runtime API and as the starting
point for new handlers.

Run it locally:
    AWS_LAMBDA_RUNTIME_API=127.0.0.1:9001 LAMBDA_TASK_ROOT=examples/echo-handler \
    _HANDLER=handler:EchoHandler custom-runtime-bootstrap

Request payload schema:
  {
    "prompt": str   — text to echo (required)
    "mode":   str   — "json" | "text" (default: "json")
    "fail":   bool  — raise instead of echoing (optional)
  }

Result:
  json — {"echo": prompt, "requestId": ..., "remainingMs": ...}, JSON-encoded by the runtime
  text — the prompt itself, sent byte-for-byte
"""

import json
from typing import Any

from aws_lambda_powertools import Logger

from custom_runtime import InvocationContext, LambdaRuntimeError, RuntimeEnvironment

logger = Logger(service="echo-handler")


class EchoHandler:
    def __init__(self) -> None:
        self.invocations = 0
        self.ready = False

    def setup(self, env: RuntimeEnvironment) -> None:
        logger.info("echo-handler setup", extra={"task_root": env.task_root})
        self.ready = True

    def invoke(self, event: bytes, context: InvocationContext) -> Any:
        payload = _decode(event)
        mode = payload.get("mode", "json")
        prompt = str(payload.get("prompt", ""))
        self.invocations += 1

        logger.info("echo-handler invoked", extra={"prompt_len": len(prompt), "mode": mode})

        if payload.get("fail"):
            raise LambdaRuntimeError(f"requested failure: {prompt}", "Echo.RequestedFailure")
        if mode == "text":
            return prompt
        return {
            "echo": prompt,
            "requestId": context.request_id,
            "remainingMs": context.get_remaining_time_in_millis(),
        }

    def cleanup(self, env: RuntimeEnvironment) -> None:
        logger.info("echo-handler cleanup", extra={"invocations": self.invocations})
        self.ready = False


def _decode(event: bytes) -> dict[str, Any]:
    """Parse the event body; a non-object body is treated as the prompt itself."""
    try:
        payload = json.loads(event or b"{}")
    except ValueError:
        return {"prompt": event.decode("utf-8", errors="replace")}
    if not isinstance(payload, dict):
        return {"prompt": str(payload)}
    return payload
