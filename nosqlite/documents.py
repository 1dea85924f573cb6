"""Document-level helpers shared by collection operations."""

from __future__ import annotations

import copy
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .auxiliary import (
    Condition,
    NoSQLiteError,
    access_nested_fields,
    compare,
    hash_integer,
    read_and_parse_json,
)

Predicate = Callable[[Any], bool]


def document_path(collection_path: str | Path, doc_id: int) -> Path:
    """Return the file that stores the document with the given id.

    The id is hashed; the first two pairs of hex digits name nested
    directories and the remainder names the file.
    """
    digest = hash_integer(doc_id)
    return Path(collection_path) / digest[:2] / digest[2:4] / f"{digest[4:]}.json"


def satisfies(document: Any, conditions: Iterable[Condition]) -> bool:
    """True when the document meets every condition.

    A condition whose field path runs through a non-object value fails.
    """
    for condition in conditions:
        try:
            actual = access_nested_fields(document, condition.field)
        except TypeError:
            return False
        if not compare(actual, condition.op, condition.value):
            return False
    return True


def _merge_into(target: dict, updated_data: dict) -> None:
    for key, value in updated_data.items():
        if key == "id":
            continue
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_into(current, value)
        else:
            target[key] = copy.deepcopy(value)


def merge_update(document: dict, updated_data: dict) -> dict:
    """Return a copy of the document with the update data merged in.

    Nested objects are merged key by key, other values are replaced, and
    ``id`` keys are never changed. The input document is left untouched.
    """
    if not isinstance(document, dict):
        raise TypeError("Only JSON objects can be updated")
    if not isinstance(updated_data, dict):
        raise TypeError("Update data must be a JSON object")
    merged = copy.deepcopy(document)
    _merge_into(merged, updated_data)
    return merged


def index_field_from_name(name: str) -> list[str]:
    """Recover the nested field path from an index name such as ``hash_a_b``."""
    parts = name.split("_")[1:]
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def _load_matching(path: str | Path, predicate: Optional[Predicate]) -> list[Any]:
    try:
        content = read_and_parse_json(path)
    except NoSQLiteError:
        return []
    if content is None:
        return []
    documents = content if isinstance(content, list) else [content]
    if predicate is None:
        return list(documents)
    return [doc for doc in documents if predicate(doc)]


def read_documents(
    paths: Iterable[str | Path],
    parallel: bool = True,
    predicate: Optional[Predicate] = None,
) -> list[Any]:
    """Read every document in the given files, keeping those the predicate accepts.

    Files that cannot be read are skipped. Results keep the order of the
    paths, whether or not the files are read in parallel.
    """
    path_list = list(paths)
    if parallel and len(path_list) > 1:
        with ThreadPoolExecutor() as executor:
            chunks = list(executor.map(lambda p: _load_matching(p, predicate), path_list))
    else:
        chunks = [_load_matching(p, predicate) for p in path_list]
    return [doc for chunk in chunks for doc in chunk]