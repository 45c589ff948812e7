import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from prometheus_client import CollectorRegistry


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


def assistant_line(
    input_tokens: "int" = 0,
    output_tokens: "int" = 0,
    cache_creation: "int" = 0,
    cache_read: "int" = 0,
    model: "str | None" = "claude-sonnet-4-20250514",
    timestamp: "str | None" = "2025-01-01T10:37:00.000Z",
    session_id: "str | None" = "session-1",
    **extra: "Any",
) -> "str":
    """
    builds one transcript line for an assistant response.
    """
    message: "dict[str, Any]" = {
        "role": "assistant",
        "usage": {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "cache_creation_input_tokens": cache_creation,
            "cache_read_input_tokens": cache_read,
        },
    }
    if model is not None:
        message["model"] = model

    entry: "dict[str, Any]" = {"type": "assistant", "message": message}
    if timestamp is not None:
        entry["timestamp"] = timestamp
    if session_id is not None:
        entry["sessionId"] = session_id
    entry.update(extra)
    return json.dumps(entry)


@pytest.fixture()
def write_log(tmp_path: "Path") -> "Callable[..., Path]":
    """
    writes lines to <tmp>/projects/<project>/<name> and returns the
    file path.
    """

    def _write(
        lines: "list[str]",
        project: "str" = "proj",
        name: "str" = "session.jsonl",
    ) -> "Path":
        project_dir = tmp_path / "projects" / project
        project_dir.mkdir(parents=True, exist_ok=True)
        path = project_dir / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
