"""Unit tests for custom_runtime.bootstrap."""

from __future__ import annotations

import json
import sys
import uuid
from pathlib import Path
from typing import Any

import pytest
from custom_runtime import bootstrap
from custom_runtime.exceptions import LambdaRuntimeError

_HANDLER_SOURCE = '''
class Handler:
    def __init__(self):
        self.seen = []

    def setup(self, env):
        pass

    def invoke(self, event, context):
        self.seen.append(event)
        return {"echo": event.decode()}

    def cleanup(self, env):
        pass


class BrokenHandler(Handler):
    def setup(self, env):
        raise RuntimeError("setup exploded")


class ExplodingHandler(Handler):
    def __init__(self):
        raise RuntimeError("boom in constructor")


instance = Handler()
'''


class _Response:
    def __init__(self, content: bytes = b"", headers: dict[str, str] | None = None) -> None:
        self.content = content
        self.headers = headers or {}


class _RecordingTransport:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []

    def request(self, method: str, url: str, *, data: Any = None, headers: Any = None) -> _Response:
        self.calls.append((method, url, data))
        if url.endswith("/invocation/next"):
            return _Response(b"hi", {"Lambda-Runtime-Aws-Request-Id": "req-1"})
        return _Response()


@pytest.fixture
def task_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> tuple[Path, str]:
    """Write a uniquely named handler module into a fresh task root."""
    module_name = f"handler_{uuid.uuid4().hex}"
    (tmp_path / f"{module_name}.py").write_text(_HANDLER_SOURCE)
    monkeypatch.setattr(sys, "path", list(sys.path))
    monkeypatch.setenv("AWS_LAMBDA_RUNTIME_API", "127.0.0.1:9001")
    monkeypatch.setenv("LAMBDA_TASK_ROOT", str(tmp_path))
    monkeypatch.setenv("_X_AMZN_TRACE_ID", "")
    return tmp_path, module_name


def _write_module(root: Path, source: str) -> str:
    module_name = f"user_code_{uuid.uuid4().hex}"
    (root / f"{module_name}.py").write_text(source)
    return module_name


# ---------------------------------------------------------------------------
# Handler resolution
# ---------------------------------------------------------------------------


class TestSplitHandlerSpec:
    @pytest.mark.parametrize(
        ("spec", "expected"),
        [
            ("handler:EchoHandler", ("handler", "EchoHandler")),
            ("handler.EchoHandler", ("handler", "EchoHandler")),
            ("pkg.mod:obj", ("pkg.mod", "obj")),
            ("pkg.mod.obj", ("pkg.mod", "obj")),
        ],
    )
    def test_valid(self, spec: str, expected: tuple[str, str]) -> None:
        assert bootstrap.split_handler_spec(spec) == expected

    @pytest.mark.parametrize("spec", ["", "handler", "handler:", ":obj"])
    def test_invalid(self, spec: str) -> None:
        with pytest.raises(LambdaRuntimeError) as exc_info:
            bootstrap.split_handler_spec(spec)
        assert exc_info.value.error_type == "Runtime.HandlerNotFound"


class TestLoadHandler:
    def test_class_is_instantiated(self, task_root: tuple[Path, str]) -> None:
        root, module_name = task_root
        handler = bootstrap.load_handler(f"{module_name}:Handler", str(root))
        assert type(handler).__name__ == "Handler"
        assert handler.seen == []

    def test_instance_is_returned_as_is(self, task_root: tuple[Path, str]) -> None:
        root, module_name = task_root
        handler = bootstrap.load_handler(f"{module_name}.instance", str(root))
        assert handler is sys.modules[module_name].instance

    def test_missing_module(self, task_root: tuple[Path, str]) -> None:
        root, _ = task_root
        with pytest.raises(LambdaRuntimeError) as exc_info:
            bootstrap.load_handler("no_such_module_here:Handler", str(root))
        assert exc_info.value.error_type == "Runtime.ImportModuleError"

    def test_missing_attribute(self, task_root: tuple[Path, str]) -> None:
        root, module_name = task_root
        with pytest.raises(LambdaRuntimeError) as exc_info:
            bootstrap.load_handler(f"{module_name}:Nope", str(root))
        assert exc_info.value.error_type == "Runtime.HandlerNotFound"

    def test_module_raising_at_import(self, task_root: tuple[Path, str]) -> None:
        root, _ = task_root
        module_name = _write_module(root, "raise RuntimeError('boom at import')\n")
        with pytest.raises(LambdaRuntimeError, match="boom at import") as exc_info:
            bootstrap.load_handler(f"{module_name}:Handler", str(root))
        assert exc_info.value.error_type == "Runtime.ImportModuleError"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_module_with_syntax_error(self, task_root: tuple[Path, str]) -> None:
        root, _ = task_root
        module_name = _write_module(root, "def broken(:\n    pass\n")
        with pytest.raises(LambdaRuntimeError) as exc_info:
            bootstrap.load_handler(f"{module_name}:Handler", str(root))
        assert exc_info.value.error_type == "Runtime.UserCodeSyntaxError"

    def test_constructor_raising(self, task_root: tuple[Path, str]) -> None:
        root, module_name = task_root
        with pytest.raises(LambdaRuntimeError, match="boom in constructor") as exc_info:
            bootstrap.load_handler(f"{module_name}:ExplodingHandler", str(root))
        assert exc_info.value.error_type == "Extension.UnknownReason"


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    def test_parse_args(self) -> None:
        args = bootstrap.parse_args(["--handler", "h:H", "--max-iterations", "2"])
        assert args.handler == "h:H"
        assert args.max_iterations == 2
        assert bootstrap.parse_args([]).max_iterations is None

    def test_success_returns_zero(
        self, task_root: tuple[Path, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _, module_name = task_root
        monkeypatch.setenv("_HANDLER", f"{module_name}:Handler")
        transport = _RecordingTransport()

        assert bootstrap.main(["--max-iterations", "1"], transport=transport) == 0

        assert transport.calls[-1] == (
            "POST",
            "http://127.0.0.1:9001/2018-06-01/runtime/invocation/req-1/response",
            b'{"echo":"hi"}',
        )

    def test_handler_flag_overrides_environment(
        self, task_root: tuple[Path, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _, module_name = task_root
        monkeypatch.setenv("_HANDLER", "does_not_exist:Handler")
        transport = _RecordingTransport()

        code = bootstrap.main(
            ["--handler", f"{module_name}:Handler", "--max-iterations", "1"], transport=transport
        )

        assert code == 0

    def test_unloadable_handler_reports_init_error(
        self, task_root: tuple[Path, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("_HANDLER", "no_such_module_here:Handler")
        transport = _RecordingTransport()

        assert bootstrap.main([], transport=transport) == 1

        ((method, url, data),) = transport.calls
        assert (method, url) == ("POST", "http://127.0.0.1:9001/2018-06-01/runtime/init/error")
        assert json.loads(data)["errorType"] == "Runtime.ImportModuleError"

    def test_runtime_failure_returns_one(
        self, task_root: tuple[Path, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _, module_name = task_root
        monkeypatch.setenv("_HANDLER", f"{module_name}:BrokenHandler")
        transport = _RecordingTransport()

        assert bootstrap.main(["--max-iterations", "1"], transport=transport) == 1

        ((method, url, data),) = transport.calls
        assert url.endswith("/runtime/init/error")
        assert json.loads(data)["errorMessage"] == "setup exploded"

    @pytest.mark.parametrize(
        ("source", "error_type"),
        [
            ("raise RuntimeError('boom at import')\n", "Runtime.ImportModuleError"),
            ("def broken(:\n    pass\n", "Runtime.UserCodeSyntaxError"),
        ],
    )
    def test_broken_module_reports_init_error(
        self,
        task_root: tuple[Path, str],
        monkeypatch: pytest.MonkeyPatch,
        source: str,
        error_type: str,
    ) -> None:
        root, _ = task_root
        module_name = _write_module(root, source)
        monkeypatch.setenv("_HANDLER", f"{module_name}:Handler")
        transport = _RecordingTransport()

        assert bootstrap.main([], transport=transport) == 1

        ((method, url, data),) = transport.calls
        assert url.endswith("/runtime/init/error")
        assert json.loads(data)["errorType"] == error_type

    def test_constructor_failure_reports_init_error(
        self, task_root: tuple[Path, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _, module_name = task_root
        monkeypatch.setenv("_HANDLER", f"{module_name}:ExplodingHandler")
        transport = _RecordingTransport()

        assert bootstrap.main([], transport=transport) == 1

        ((method, url, data),) = transport.calls
        assert url.endswith("/runtime/init/error")
        assert "boom in constructor" in json.loads(data)["errorMessage"]
