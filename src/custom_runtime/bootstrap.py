#!/usr/bin/env python3
"""
custom_runtime.bootstrap — Process entry point for a custom runtime.

Resolves the handler named by _HANDLER (or --handler), runs the invocation
loop, and maps an escalated error to exit status 1 so the platform restarts
the process.

Handler spec:
    module:attribute   or   module.attribute
If the attribute is a class it is instantiated with no arguments.
LAMBDA_TASK_ROOT, when set, is searched first for the module.

Usage:
    custom-runtime-bootstrap
    custom-runtime-bootstrap --handler handler:EchoHandler --max-iterations 1
"""

from __future__ import annotations

import argparse
import importlib
import sys
from dataclasses import replace
from typing import Any

import requests
from aws_lambda_powertools import Logger

from custom_runtime.client import RuntimeAPIClient
from custom_runtime.exceptions import (
    HANDLER_NOT_FOUND,
    IMPORT_MODULE_ERROR,
    UNKNOWN_REASON,
    USER_CODE_SYNTAX_ERROR,
    ControlPlaneError,
    LambdaRuntimeError,
)
from custom_runtime.models import RuntimeEnvironment
from custom_runtime.runtime import CustomRuntime

logger = Logger(service="custom-runtime")


def split_handler_spec(spec: str) -> tuple[str, str]:
    if ":" in spec:
        module_name, _, attribute = spec.partition(":")
    else:
        module_name, _, attribute = spec.rpartition(".")
    if not module_name or not attribute:
        raise LambdaRuntimeError(
            f"Bad handler '{spec}': expected module:attribute", HANDLER_NOT_FOUND
        )
    return module_name, attribute


def load_handler(spec: str, task_root: str = "") -> Any:
    """Import and return the handler object named by spec."""
    module_name, attribute = split_handler_spec(spec)
    if task_root and task_root not in sys.path:
        sys.path.insert(0, task_root)
    try:
        module = importlib.import_module(module_name)
    except SyntaxError as exc:
        raise LambdaRuntimeError(
            f"Syntax error in module '{module_name}': {exc}", USER_CODE_SYNTAX_ERROR
        ) from exc
    except Exception as exc:
        raise LambdaRuntimeError(
            f"Unable to import module '{module_name}': {exc}", IMPORT_MODULE_ERROR
        ) from exc
    try:
        target = getattr(module, attribute)
    except AttributeError as exc:
        raise LambdaRuntimeError(
            f"Handler '{attribute}' missing on module '{module_name}'", HANDLER_NOT_FOUND
        ) from exc
    if not isinstance(target, type):
        return target
    try:
        return target()
    except LambdaRuntimeError:
        raise
    except Exception as exc:
        raise LambdaRuntimeError(
            f"Unable to initialize handler '{attribute}': {exc}", UNKNOWN_REASON
        ) from exc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a handler behind the Lambda Runtime API.")
    parser.add_argument("--handler", help="Handler spec; defaults to $_HANDLER")
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Stop after N successful invocations (default: run forever)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, *, transport: Any = None) -> int:
    args = parse_args(argv)
    environment = RuntimeEnvironment.from_environ()
    if args.handler:
        environment = replace(environment, handler=args.handler)

    try:
        handler = load_handler(environment.handler, environment.task_root)
    except LambdaRuntimeError as exc:
        logger.error("Handler could not be loaded", extra={"handler": environment.handler})
        client = RuntimeAPIClient(environment.runtime_api, transport or requests.Session())
        try:
            client.post_init_error(exc)
        except ControlPlaneError:
            logger.exception("Failed to report error to Runtime API")
        return 1

    runtime = CustomRuntime(handler, transport=transport, environment=environment)
    try:
        runtime.run(max_iterations=args.max_iterations)
    except Exception:
        logger.exception("Custom runtime terminated")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
