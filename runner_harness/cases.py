from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .models import ConfigurationError, JobRequest, TestCase

LANGUAGE_EXTENSIONS: dict[str, str] = {
    "python": ".py",
    "go": ".go",
    "cpp": ".cpp",
    "java": ".java",
    "javascript": ".js",
}

BASE_DIR = Path(__file__).resolve().parent
SCRIPTS_DIR = BASE_DIR / "scripts"

DIJKSTRA_INPUT = "5 6\n1 2 3\n1 3 4\n2 3 2\n2 4 7\n3 5 1\n4 5 2\n"

CASE_CONFIG: list[dict[str, Any]] = [
    {
        "name": "CPP: Hello World",
        "language": "cpp",
        "script": "hello",
        "expected": "Hello CPP",
    },
    {
        "name": "CPP: Compilation Error",
        "language": "cpp",
        "script": "compile_error",
        "expected_error": "CompilationError",
    },
    {
        "name": "Python: Runtime Error (division by zero)",
        "language": "python",
        "script": "zero_division",
        "expected_error": "RuntimeError",
    },
    {
        "name": "Python: Heavy Loop",
        "language": "python",
        "script": "heavy_loop",
        "expected": "49999995000000",
    },
    {
        "name": "JS: BFS Traversal + Heavy Load",
        "language": "javascript",
        "script": "bfs",
        "expected_contains": "Reachable:",
    },
    {
        "name": "JS: ReferenceError",
        "language": "javascript",
        "script": "reference_error",
        "expected_error": "RuntimeError",
    },
    {
        "name": "Go: Panic Test",
        "language": "go",
        "script": "panic",
        "expected_error": "RuntimeError",
    },
    {
        "name": "Go: Normal Program",
        "language": "go",
        "script": "sum",
        "expected": "55",
    },
    {
        "name": "Java: Dijkstra Shortest Path",
        "language": "java",
        "script": "dijkstra",
        "input": DIJKSTRA_INPUT,
        "expected_contains": "0",
    },
]

# JSON suite files use the service's camelCase field names.
_SUITE_FIELDS: dict[str, str] = {
    "expected": "expected",
    "expectedContains": "expected_contains",
    "expectedError": "expected_error",
}


def load_script_source(language: str, name: str) -> str:
    extension = LANGUAGE_EXTENSIONS[language]
    path = SCRIPTS_DIR / language / f"{name}{extension}"
    return path.read_text(encoding="utf-8")


def build_test_cases() -> list[TestCase]:
    cases: list[TestCase] = []
    for config in CASE_CONFIG:
        body = JobRequest(
            language=config["language"],
            code=load_script_source(config["language"], config["script"]),
            input=config.get("input", ""),
        )
        cases.append(
            TestCase(
                name=config["name"],
                body=body,
                expected=config.get("expected"),
                expected_contains=config.get("expected_contains"),
                expected_error=config.get("expected_error"),
            )
        )
    return cases


def parse_test_case(entry: Any) -> TestCase:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"test case entries must be objects, got {type(entry).__name__}")
    name = entry.get("name")
    if not name:
        raise ConfigurationError("test case is missing a name")
    body = entry.get("body")
    if not isinstance(body, dict) or not body.get("language") or body.get("code") is None:
        raise ConfigurationError(f"test case {name!r} needs a body with language and code")

    expectations = {
        attr: entry[key] for key, attr in _SUITE_FIELDS.items() if entry.get(key) is not None
    }
    return TestCase(
        name=str(name),
        body=JobRequest(
            language=str(body["language"]),
            code=str(body["code"]),
            input=str(body.get("input") or ""),
        ),
        **{attr: str(value) for attr, value in expectations.items()},
    )


def load_test_cases(path: Path | str) -> list[TestCase]:
    """Read a suite file: a JSON list of ``{name, body, expected*}`` objects."""
    suite_path = Path(path)
    try:
        entries = json.loads(suite_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"unable to read test suite {suite_path}: {exc}") from exc
    if not isinstance(entries, list):
        raise ConfigurationError(f"test suite {suite_path} must contain a JSON list")
    return [parse_test_case(entry) for entry in entries]


__all__ = [
    "CASE_CONFIG",
    "LANGUAGE_EXTENSIONS",
    "build_test_cases",
    "load_script_source",
    "load_test_cases",
    "parse_test_case",
]
