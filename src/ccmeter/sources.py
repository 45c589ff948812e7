import stat
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

import structlog

from ccmeter.models import LogFile

logger = structlog.get_logger()

LOG_SUFFIX = ".jsonl"


def default_base_dirs() -> "list[Path]":
    """
    returns the primary and fallback transcript roots.
    """
    home = Path.home()
    return [
        home / ".claude" / "projects",
        home / ".config" / "claude" / "projects",
    ]


def _iter_dir(path: "Path") -> "list[Path]":
    try:
        return list(path.iterdir())
    except OSError as exc:
        logger.debug("log_dir_unreadable", path=str(path), error=str(exc))
        return []


def _is_dir(path: "Path") -> "bool":
    # Path.is_dir only swallows "not found" errors, EACCES propagates
    try:
        return path.is_dir()
    except OSError as exc:
        logger.debug("log_dir_unreadable", path=str(path), error=str(exc))
        return False


def find_log_files(base_dirs: "Iterable[Path] | None" = None) -> "list[LogFile]":
    """
    finds transcript files laid out as base/<project>/<file>.jsonl.

    Missing roots, directories that can't be listed or searched and
    files that disappear before they can be stat'ed are skipped. The
    returned order is unspecified.
    """
    if base_dirs is None:
        base_dirs = default_base_dirs()

    files: "list[LogFile]" = []
    for base in base_dirs:
        if not _is_dir(base):
            continue

        for project_dir in _iter_dir(base):
            if not _is_dir(project_dir):
                continue

            for candidate in _iter_dir(project_dir):
                if candidate.suffix != LOG_SUFFIX:
                    continue
                try:
                    st = candidate.stat()
                except OSError:
                    continue
                if not stat.S_ISREG(st.st_mode):
                    continue

                files.append(
                    LogFile(
                        path=candidate,
                        mtime=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                    )
                )

    return files
