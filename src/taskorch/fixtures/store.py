from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from taskorch.config.schema import TaskSpec
from taskorch.util.fs import plain_file_problem

logger = logging.getLogger(__name__)


def required_fixtures(tasks: Iterable[TaskSpec]) -> list[str]:
    """Union of fixture names referenced by tasks, in first-seen order."""
    names: dict[str, None] = {}
    for task in tasks:
        for name in task.fixtures:
            names.setdefault(name, None)
    return list(names)


class FixtureStore:
    """Named JSON blobs read from ``<fixtures_dir>/<name>.json``, held for one run."""

    def __init__(self, fixtures_dir: Path) -> None:
        self.fixtures_dir = fixtures_dir
        self._data: dict[str, Any] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __len__(self) -> int:
        return len(self._data)

    def path_for(self, name: str) -> Path:
        return self.fixtures_dir / f"{name}.json"

    def get(self, name: str, default: Any = None) -> Any:
        return self._data.get(name, default)

    def load(self, names: Iterable[str]) -> list[str]:
        """Load each fixture once; missing or unreadable files are warnings.

        Returns the names that are loaded after the call.
        """
        names = list(names)
        logger.info("Loading %d fixtures...", len(names))
        for name in names:
            if name in self._data:
                continue
            path = self.path_for(name)
            problem = plain_file_problem(path)
            if problem == "not found":
                logger.warning("Fixture not found: %s", name)
                continue
            if problem is not None:
                logger.warning("Fixture %s skipped: %s", name, problem)
                continue
            try:
                self._data[name] = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeError, json.JSONDecodeError) as exc:
                logger.warning("Fixture %s could not be loaded: %s", name, exc)
                continue
            logger.info("Loaded fixture: %s", name)
        return [name for name in names if name in self._data]

    def clear(self) -> None:
        self._data.clear()
