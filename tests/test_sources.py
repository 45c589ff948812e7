import os
from pathlib import Path

import pytest

from ccmeter.sources import default_base_dirs, find_log_files


class TestFindLogFiles:
    def test_finds_jsonl_one_level_deep(self, tmp_path: "Path") -> "None":
        primary = tmp_path / "primary"
        fallback = tmp_path / "fallback"
        (primary / "proj-a").mkdir(parents=True)
        (primary / "proj-b").mkdir(parents=True)
        (fallback / "proj-c").mkdir(parents=True)
        (primary / "proj-a" / "one.jsonl").write_text("{}\n")
        (primary / "proj-b" / "two.jsonl").write_text("{}\n")
        (fallback / "proj-c" / "three.jsonl").write_text("{}\n")

        found = find_log_files([primary, fallback])

        assert sorted(f.path.name for f in found) == [
            "one.jsonl",
            "three.jsonl",
            "two.jsonl",
        ]

    def test_skips_other_files_and_depths(self, tmp_path: "Path") -> "None":
        base = tmp_path / "projects"
        nested = base / "proj" / "sub"
        nested.mkdir(parents=True)
        (base / "top-level.jsonl").write_text("{}\n")
        (base / "proj" / "notes.txt").write_text("hi")
        (base / "proj" / "tool.json").write_text("{}")
        (nested / "too-deep.jsonl").write_text("{}\n")
        (base / "proj" / "dir.jsonl").mkdir()

        assert find_log_files([base]) == []

    def test_missing_base_dirs_are_skipped(self, tmp_path: "Path") -> "None":
        base = tmp_path / "projects"
        (base / "proj").mkdir(parents=True)
        (base / "proj" / "a.jsonl").write_text("{}\n")

        found = find_log_files([tmp_path / "absent", base])

        assert [f.path.name for f in found] == ["a.jsonl"]

    def test_reports_modification_time(self, tmp_path: "Path") -> "None":
        base = tmp_path / "projects"
        (base / "proj").mkdir(parents=True)
        path = base / "proj" / "a.jsonl"
        path.write_text("{}\n")
        os.utime(path, (1_700_000_000, 1_700_000_000))

        (found,) = find_log_files([base])

        assert found.mtime.timestamp() == 1_700_000_000
        assert found.mtime.tzinfo is not None

    def test_unsearchable_project_is_skipped(
        self, tmp_path: "Path", monkeypatch: "pytest.MonkeyPatch"
    ) -> "None":
        base = tmp_path / "projects"
        (base / "locked").mkdir(parents=True)
        (base / "open").mkdir(parents=True)
        (base / "locked" / "hidden.jsonl").write_text("{}\n")
        (base / "open" / "visible.jsonl").write_text("{}\n")
        real_is_dir = Path.is_dir

        def is_dir(self: "Path") -> "bool":
            if self.name == "locked":
                raise PermissionError(13, "Permission denied", str(self))
            return real_is_dir(self)

        monkeypatch.setattr(Path, "is_dir", is_dir)

        found = find_log_files([base])

        assert [f.path.name for f in found] == ["visible.jsonl"]

    def test_unsearchable_base_dir_is_skipped(
        self, tmp_path: "Path", monkeypatch: "pytest.MonkeyPatch"
    ) -> "None":
        locked = tmp_path / "locked"
        base = tmp_path / "projects"
        (base / "proj").mkdir(parents=True)
        (base / "proj" / "a.jsonl").write_text("{}\n")
        real_is_dir = Path.is_dir

        def is_dir(self: "Path") -> "bool":
            if self == locked:
                raise PermissionError(13, "Permission denied", str(self))
            return real_is_dir(self)

        monkeypatch.setattr(Path, "is_dir", is_dir)

        found = find_log_files([locked, base])

        assert [f.path.name for f in found] == ["a.jsonl"]


class TestDefaultBaseDirs:
    def test_primary_and_fallback_roots(self) -> "None":
        home = Path.home()
        assert default_base_dirs() == [
            home / ".claude" / "projects",
            home / ".config" / "claude" / "projects",
        ]
