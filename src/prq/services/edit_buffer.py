"""
Editable working copy of the project under review.

Edits never touch the reviewed project directly. The buffer holds a deep
clone, and each update dumps it, writes the new value at a path such as
``stages[0].tasks[1].title``, validates the result and swaps it in whole.
A failed update leaves the previous copy in place.

An index past the end of a list grows it. Lists of objects (stages, tasks)
grow with empty objects, so ``stages[3].title`` on a two-stage project adds
two stages that carry no stage_id.
"""

import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from prq.models import Project

PathToken = str | int

_SEGMENT = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)?(?P<indexes>(?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")


class InvalidPathError(ValueError):
    """Raised when an edit path cannot be parsed or applied."""

    pass


class BufferNotOpenError(RuntimeError):
    """Raised when editing while no project is under review."""

    pass


def parse_path(path: str) -> list[PathToken]:
    """
    Split an edit path into keys and list indexes.

    Examples:
        >>> parse_path("stages[0].title")
        ['stages', 0, 'title']
        >>> parse_path("stages.1.tasks[2].status")
        ['stages', 1, 'tasks', 2, 'status']
    """
    if not path or not path.strip():
        raise InvalidPathError("Edit path is empty")

    tokens: list[PathToken] = []
    for segment in path.split("."):
        if segment.isdigit():
            tokens.append(int(segment))
            continue
        match = _SEGMENT.match(segment)
        if not match or not segment:
            raise InvalidPathError(f"Invalid segment {segment!r} in path {path!r}")
        if match.group("name"):
            tokens.append(match.group("name"))
        tokens.extend(int(i) for i in _INDEX.findall(match.group("indexes")))

    if not tokens:
        raise InvalidPathError(f"Invalid path {path!r}")
    return tokens


def _empty_container(next_token: PathToken) -> dict | list:
    return [] if isinstance(next_token, int) else {}


def _pad_list(items: list, index: int, holds_objects: bool) -> None:
    """Grow ``items`` up to ``index``. Lists of objects are padded with empty objects."""
    while len(items) <= index:
        items.append({} if holds_objects else None)


def set_path(data: dict[str, Any], tokens: list[PathToken], value: Any) -> None:
    """Set ``value`` at ``tokens`` inside ``data``, creating containers on the way."""
    current: Any = data
    for position, token in enumerate(tokens):
        last = position == len(tokens) - 1
        if isinstance(token, int):
            if not isinstance(current, list):
                raise InvalidPathError(f"Index [{token}] applied to a non-list")
            holds_objects = any(isinstance(item, dict) for item in current) or (
                not last and not isinstance(tokens[position + 1], int)
            )
            _pad_list(current, token, holds_objects)
            if last:
                current[token] = value
            else:
                if not isinstance(current[token], (dict, list)):
                    current[token] = _empty_container(tokens[position + 1])
                current = current[token]
        else:
            if not isinstance(current, dict):
                raise InvalidPathError(f"Key {token!r} applied to a non-object")
            if last:
                current[token] = value
            else:
                if not isinstance(current.get(token), (dict, list)):
                    current[token] = _empty_container(tokens[position + 1])
                current = current[token]


class EditableProjectBuffer:
    """Deep-cloned, mutable working copy of one project plus a dirty flag."""

    def __init__(self):
        self._project: Project | None = None
        self.dirty = False

    @property
    def project(self) -> Project | None:
        return self._project

    @property
    def is_open(self) -> bool:
        return self._project is not None

    def open(self, project: Project) -> Project:
        """Start editing a clone of ``project``."""
        self._project = project.model_copy(deep=True)
        self.dirty = False
        return self._project

    def update(self, path: str, value: Any) -> Project:
        """
        Set one field of the working copy and mark the buffer dirty.

        Args:
            path: Dotted/indexed path, e.g. ``"stages[0].title"``
            value: New value for the leaf

        Returns:
            The new working copy

        Raises:
            BufferNotOpenError: If no project is being edited
            InvalidPathError: If the path is malformed or the result does not validate
        """
        project = self._require_open()
        data = project.model_dump()
        set_path(data, parse_path(path), value)
        try:
            updated = Project.model_validate(data)
        except ValidationError as e:
            raise InvalidPathError(f"Edit at {path!r} produced an invalid project: {e}") from e

        self._project = updated
        self.dirty = True
        return updated

    def apply(self, change: Callable[[Project], None], mark_dirty: bool = False) -> Project:
        """Run ``change`` on a fresh clone and swap the clone in."""
        clone = self._require_open().model_copy(deep=True)
        change(clone)
        self._project = clone
        if mark_dirty:
            self.dirty = True
        return clone

    def replace(self, project: Project) -> None:
        self._require_open()
        self._project = project.model_copy(deep=True)

    def mark_clean(self) -> None:
        self.dirty = False

    def discard(self) -> None:
        self._project = None
        self.dirty = False

    def _require_open(self) -> Project:
        if self._project is None:
            raise BufferNotOpenError("No project is open for editing")
        return self._project
