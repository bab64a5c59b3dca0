"""
custom_runtime — Host any handler object as an AWS Lambda custom runtime.

Polls the Lambda Runtime API for events, dispatches each one to the handler,
and reports results or structured errors back.
"""

from custom_runtime.exceptions import ControlPlaneError, LambdaRuntimeError
from custom_runtime.models import InvocationContext, RuntimeEnvironment
from custom_runtime.protocols import Handler, Transport
from custom_runtime.runtime import CustomRuntime

__all__ = [
    "ControlPlaneError",
    "CustomRuntime",
    "Handler",
    "InvocationContext",
    "LambdaRuntimeError",
    "RuntimeEnvironment",
    "Transport",
]
