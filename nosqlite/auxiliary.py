"""Shared helpers: hashing, JSON access, condition evaluation and path discovery."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence

OPERATORS = frozenset({"==", "!=", ">", "<", ">=", "<="})

_SKIPPED_FILES = frozenset({"header.json", "index.json"})


class NoSQLiteError(Exception):
    """Base error for database operations."""


class CollectionNotFoundError(NoSQLiteError):
    """Raised when a collection does not exist in the database."""

    def __init__(self, name: str) -> None:
        super().__init__(f'Collection: "{name}" does not exist in this database.')
        self.name = name


@dataclass(frozen=True)
class Condition:
    """A single query condition: a nested field path, an operator and a value."""

    field: tuple[str, ...] = ()
    op: str = ""
    value: Any = None

    def __post_init__(self) -> None:
        if isinstance(self.field, str):
            object.__setattr__(self, "field", (self.field,))
        else:
            object.__setattr__(self, "field", tuple(self.field))

    def is_empty(self) -> bool:
        """True when no field, operator or value was given."""
        return not self.field and self.op == "" and self.value is None


def get_last_dir(path: str) -> str:
    """Return the last '/'-separated component of a path."""
    return str(path).split("/")[-1]


def check_path_existence(path: str | Path) -> Path:
    """Return the path if it exists, otherwise raise FileNotFoundError."""
    fs_path = Path(path)
    if not fs_path.exists():
        raise FileNotFoundError(
            f'Path doesn\'t exist. No such file or directory: "{path}"'
        )
    return fs_path


def hash_string(text: str) -> str:
    """Hash a string to a stable 16-character hexadecimal digest."""
    return hashlib.blake2b(text.encode("utf-8"), digest_size=8).hexdigest()


def hash_integer(num: int) -> str:
    """Hash the decimal representation of an integer."""
    return hash_string(str(num))


def dump_json(obj: Any) -> str:
    """Serialise a value compactly with sorted object keys."""
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def hash_json(obj: Any) -> str:
    """Hash the canonical serialisation of a JSON value."""
    return hash_string(dump_json(obj))


def read_and_parse_json(path: str | Path) -> Any:
    """Read and parse a JSON file, raising NoSQLiteError on failure."""
    try:
        with open(path, encoding="utf-8") as handle:
            return json.load(handle)
    except OSError as exc:
        raise NoSQLiteError(f"Failed to open file: {path}.") from exc
    except json.JSONDecodeError as exc:
        raise NoSQLiteError(f"Invalid JSON in the file at: {path}.") from exc


def parse_json_string(content: str) -> Any:
    """Parse a JSON string, raising NoSQLiteError if it is invalid."""
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise NoSQLiteError("Invalid JSON string.") from exc


def access_nested_fields(content: Any, fields: Iterable[str]) -> Any:
    """Follow a chain of object keys; missing keys yield None.

    Raises TypeError when a step passes through a value that is neither an
    object nor null.
    """
    obj = content
    for field in fields:
        if obj is None:
            continue
        if not isinstance(obj, dict):
            raise TypeError(f'Cannot access field "{field}" of a non-object value')
        obj = obj.get(field)
    return obj


def find_nested_field(content: Any, field: Sequence[str]) -> bool:
    """True when every key of the nested field path is present."""
    if not field:
        return False
    obj = content
    for key in field:
        if not isinstance(obj, dict) or key not in obj:
            return False
        obj = obj[key]
    return True


def build_possible_index_names(data: Any, prefix: str = "hash_") -> list[str]:
    """List every index name that the fields of a JSON object could produce."""
    if data is None:
        return []
    if not isinstance(data, dict):
        raise TypeError("Index names can only be built from a JSON object")
    names: list[str] = []
    for key in sorted(data):
        field_name = prefix + key
        names.append(field_name)
        value = data[key]
        if isinstance(value, dict):
            names.extend(build_possible_index_names(value, field_name + "_"))
    return names


def build_index_name(fields: Iterable[str]) -> str:
    """Build the name of a hash index on a nested field path."""
    return "hash" + "".join("_" + field for field in fields)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _json_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_json_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_json_equal(a[k], b[k]) for k in a)
    return type(a) is type(b) and a == b


def compare(value1: Any, op: str, value2: Any) -> bool:
    """Evaluate ``value1 op value2``; arrays match if any element matches."""
    if isinstance(value1, list):
        return any(compare(item, op, value2) for item in value1)
    if op == "==":
        return _json_equal(value1, value2)
    if op == "!=":
        return not _json_equal(value1, value2)
    if op not in OPERATORS or not (_is_number(value1) and _is_number(value2)):
        return False
    if op == ">":
        return value1 > value2
    if op == "<":
        return value1 < value2
    if op == ">=":
        return value1 >= value2
    return value1 <= value2


def collect_paths(collection_path: str | Path) -> list[Path]:
    """Return every document file below a collection directory, sorted."""
    return sorted(
        path
        for path in Path(collection_path).rglob("*.json")
        if path.is_file() and path.name not in _SKIPPED_FILES
    )