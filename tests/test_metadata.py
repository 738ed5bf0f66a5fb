# tests/test_metadata.py
import json
import subprocess
from types import SimpleNamespace
from typing import Any

import pytest

from gobundle.context import resolve_build_context
from gobundle.metadata import GoListProvider, LookupFailed, Resolved, Unresolved, parse_go_list_package


# -----------------------------------------------------------------------------
# go list output mapping
# -----------------------------------------------------------------------------

def test_parse_third_party_package() -> None:
    payload = {
        "Dir": "/home/u/go/src/github.com/x/y",
        "ImportPath": "github.com/x/y",
        "Imports": ["fmt", "github.com/x/z"],
    }

    result = parse_go_list_package(payload, identifier="github.com/x/y", origin="/app")

    assert isinstance(result, Resolved)
    assert result.unit.resolved_path == "/home/u/go/src/github.com/x/y"
    assert result.unit.declared_imports == ("fmt", "github.com/x/z")
    assert result.unit.is_platform_provided is False


@pytest.mark.parametrize("flag", ["Goroot", "Standard"])
def test_parse_standard_package(flag: str) -> None:
    payload = {"Dir": "/usr/lib/go/src/fmt", flag: True, "Imports": ["io"]}

    result = parse_go_list_package(payload, identifier="fmt", origin="/app")

    assert isinstance(result, Resolved)
    assert result.unit.is_platform_provided is True


def test_parse_missing_dir_is_unresolved() -> None:
    payload = {"ImportPath": "example.com/nope", "Error": {"Err": "cannot find package"}}

    result = parse_go_list_package(payload, identifier="example.com/nope", origin="/app")

    assert result == Unresolved(identifier="example.com/nope", origin="/app")


def test_parse_error_with_dir_still_resolves() -> None:
    payload = {
        "Dir": "/src/tagged",
        "Error": {"Err": "build constraints exclude all Go files in /src/tagged"},
    }

    result = parse_go_list_package(payload, identifier="tagged", origin="/app")

    assert isinstance(result, Resolved)
    assert result.unit.declared_imports == ()


def test_parse_non_object_fails() -> None:
    result = parse_go_list_package([1, 2], identifier="x", origin="/app")

    assert isinstance(result, LookupFailed)


# -----------------------------------------------------------------------------
# Provider process handling
# -----------------------------------------------------------------------------

@pytest.fixture
def context():
    return resolve_build_context(goos=None, goarch=None, tags="netgo", go_binary="/opt/go/bin/go")


def _fake_run(calls: list[dict[str, Any]], *, returncode: int = 0, stdout: str = "", stderr: str = ""):
    def run(cmd: list[str], **kwargs: Any) -> SimpleNamespace:
        calls.append({"cmd": cmd, **kwargs})
        return SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)

    return run


def test_load_import_invokes_go_list(monkeypatch: pytest.MonkeyPatch, context) -> None:
    calls: list[dict[str, Any]] = []
    out = json.dumps({"Dir": "/src/a", "Imports": ["b"]})
    monkeypatch.setattr(subprocess, "run", _fake_run(calls, stdout=out))

    result = GoListProvider(context=context).load_import("example.com/a", "/app")

    assert isinstance(result, Resolved)
    assert result.unit.import_identifier == "example.com/a"
    assert calls[0]["cmd"] == ["/opt/go/bin/go", "list", "-e", "-json", "example.com/a"]
    assert calls[0]["cwd"] == "/app"
    assert calls[0]["env"]["GOOS"] == "linux"
    assert calls[0]["env"]["GOARCH"] == "amd64"
    assert "-tags=netgo" in calls[0]["env"]["GOFLAGS"]


def test_load_dir_lists_current_directory(monkeypatch: pytest.MonkeyPatch, context) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(subprocess, "run", _fake_run(calls, stdout=json.dumps({"Dir": "/app", "Imports": []})))

    result = GoListProvider(context=context).load_dir("/app")

    assert isinstance(result, Resolved)
    assert calls[0]["cmd"][-1] == "."
    assert calls[0]["cwd"] == "/app"


def test_nonzero_exit_is_lookup_failure(monkeypatch: pytest.MonkeyPatch, context) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(subprocess, "run", _fake_run(calls, returncode=1, stderr="go: no go.mod\n"))

    result = GoListProvider(context=context).load_import("x", "/app")

    assert result == LookupFailed(identifier="x", origin="/app", detail="go: no go.mod")


def test_garbage_output_is_lookup_failure(monkeypatch: pytest.MonkeyPatch, context) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(subprocess, "run", _fake_run(calls, stdout="not json"))

    result = GoListProvider(context=context).load_import("x", "/app")

    assert isinstance(result, LookupFailed)
    assert "unreadable go list output" in result.detail


def test_missing_toolchain_is_lookup_failure(monkeypatch: pytest.MonkeyPatch, context) -> None:
    def run(cmd: list[str], **kwargs: Any) -> SimpleNamespace:
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(subprocess, "run", run)

    result = GoListProvider(context=context).load_import("x", "/app")

    assert isinstance(result, LookupFailed)
    assert "/opt/go/bin/go" in result.detail
