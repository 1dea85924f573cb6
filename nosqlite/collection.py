"""A collection of JSON documents stored as hashed files below one directory."""

from __future__ import annotations

import copy
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence

from .auxiliary import (
    Condition,
    NoSQLiteError,
    access_nested_fields,
    build_index_name,
    check_path_existence,
    collect_paths,
    find_nested_field,
    get_last_dir,
    parse_json_string,
    read_and_parse_json,
)
from .documents import (
    document_path,
    index_field_from_name,
    merge_update,
    read_documents,
    satisfies,
)
from .hash_index import HashIndex

_HEADER = "header.json"
_INDEXES = "indexes"

log = logging.getLogger(__name__)


def _write_json(path: Path, obj: Any, indent: Optional[int] = None) -> None:
    if indent is None:
        text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
    else:
        text = json.dumps(obj, indent=indent, ensure_ascii=False)
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.write("\n")
    except OSError as exc:
        raise NoSQLiteError(f"Failed to open file: {path}.") from exc


def _as_id(value: Any) -> Optional[int]:
    """Interpret a JSON value as a document id, or None if it cannot be one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return None


def _field_value(document: Any, field: Sequence[str]) -> Any:
    try:
        return access_nested_fields(document, field)
    except TypeError:
        return None


def _normalise_field(field: Sequence[str] | str) -> list[str]:
    return [field] if isinstance(field, str) else list(field)


class Collection:
    """Documents of one collection, their hash indexes and the header file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.number_of_documents = 0
        self.indexes: dict[str, HashIndex] = {}
        self.parallel_processing = True

    def __repr__(self) -> str:
        return f"Collection({str(self.path)!r})"

    @property
    def name(self) -> str:
        """Name of the collection: the last directory of its path."""
        return get_last_dir(self.path.as_posix())

    # -- header and index bookkeeping -------------------------------------

    def _write_header(self, count: int) -> None:
        _write_json(self.path / _HEADER, {"number_of_documents": count})

    def _indexed_fields(self) -> Iterator[tuple[list[str], HashIndex]]:
        for name in list(self.indexes):
            field = index_field_from_name(name)
            index = self.indexes.get(build_index_name(field))
            if index is not None:
                yield field, index

    def _index_paths(self, conditions: Sequence[Condition]) -> Optional[list[str]]:
        """Files named by the first usable equality index, or None if none applies."""
        for condition in conditions:
            if condition.op != "==":
                continue
            name = build_index_name(condition.field)
            if name in self.indexes:
                return list(dict.fromkeys(self.indexes[name].consult(condition.value)))
        return None

    # -- building ---------------------------------------------------------

    def _import_file(self, file: Path) -> bool:
        try:
            objects = read_and_parse_json(file)
        except NoSQLiteError:
            return False
        if objects is None or objects == {} or objects == []:
            return False
        items = objects if isinstance(objects, list) else [objects]
        success = True
        for obj in items:
            try:
                self.add_document(obj, update_header=False)
            except NoSQLiteError:
                success = False
        return success

    def build_from_scratch(self, path_to_json: str | Path = "") -> list[Path]:
        """Recreate the collection from the JSON files below a directory.

        An empty path creates an empty collection. Returns the files that
        could not be turned into documents.
        """
        if self.path.exists():
            for entry in self.path.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
        else:
            self.path.mkdir(parents=True)
        self.number_of_documents = 0
        self.indexes = {}

        failed: list[Path] = []
        if path_to_json:
            source = check_path_existence(path_to_json)
            files = sorted(p for p in source.rglob("*.json") if not p.is_dir())
            failed = [file for file in files if not self._import_file(file)]
            if failed:
                log.error(
                    "Failed to create database entries for: %s",
                    ", ".join(str(p) for p in failed),
                )

        try:
            self._write_header(self.number_of_documents)
        except NoSQLiteError:
            shutil.rmtree(self.path, ignore_errors=True)
            raise
        return failed

    def build_from_existing(self) -> None:
        """Load the document count and the indexes of a collection on disk."""
        check_path_existence(self.path)
        header = read_and_parse_json(self.path / _HEADER)
        count = header.get("number_of_documents") if isinstance(header, dict) else None
        if _as_id(count) is None:
            raise NoSQLiteError(f'Invalid header for collection "{self.name}".')
        self.number_of_documents = _as_id(count)

        self.indexes = {}
        indexes_dir = self.path / _INDEXES
        if indexes_dir.exists():
            for entry in sorted(indexes_dir.iterdir()):
                if entry.is_dir():
                    self.indexes[entry.name] = HashIndex(entry)

    # -- creating ---------------------------------------------------------

    def add_document(self, document: dict, update_header: bool = True) -> dict:
        """Store a document under the next id and index it; returns the stored copy."""
        if not isinstance(document, dict):
            raise NoSQLiteError("Documents must be JSON objects.")
        doc_id = self.number_of_documents
        stored = copy.deepcopy(document)
        stored["id"] = doc_id

        target = document_path(self.path, doc_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists():
            existing = read_and_parse_json(target)
            if not isinstance(existing, list) or not existing:
                raise NoSQLiteError(f"Invalid document file at: {target}.")
            existing.append(stored)
            _write_json(target, existing)
        else:
            _write_json(target, [stored])

        for field, index in self._indexed_fields():
            if find_nested_field(stored, field):
                index.add_to_index(access_nested_fields(stored, field), target)

        if update_header:
            self._write_header(doc_id + 1)
        self.number_of_documents = doc_id + 1
        return stored

    def add_document_text(self, json_content: str) -> dict:
        """Parse a JSON string and store it as a new document."""
        document = parse_json_string(json_content)
        if document is None or document == {} or document == []:
            raise NoSQLiteError("Empty JSON document.")
        return self.add_document(document, update_header=True)

    def create_document(self, new_document: dict) -> dict:
        """Store a new document; it must be a JSON object."""
        if not isinstance(new_document, dict):
            raise NoSQLiteError("create_document received invalid JSON object.")
        return self.add_document(new_document, update_header=True)

    # -- reading ----------------------------------------------------------

    def read_all(self) -> list[Any]:
        """Return every document of the collection."""
        return read_documents(collect_paths(self.path), self.parallel_processing)

    def read_with_conditions(self, conditions: Iterable[Condition]) -> list[Any]:
        """Return the documents that satisfy every condition.

        An ``id == n`` condition fetches that document directly; otherwise an
        equality condition on an indexed field narrows the files to read.
        """
        conditions = list(conditions)
        for condition in conditions:
            if condition.op == "==" and condition.field == ("id",):
                doc_id = _as_id(condition.value)
                if doc_id is None:
                    return []
                try:
                    return [self.get_document(doc_id)]
                except NoSQLiteError:
                    return []

        paths: Iterable[Any] | None = self._index_paths(conditions)
        if paths is None:
            paths = collect_paths(self.path)
        return read_documents(
            paths, self.parallel_processing, lambda doc: satisfies(doc, conditions)
        )

    def get_document(self, doc_id: int) -> dict:
        """Return the document with the given id."""
        target = document_path(self.path, doc_id)
        if not target.exists():
            raise NoSQLiteError(f'Document with ID "{doc_id}" does not exist.')
        documents = read_and_parse_json(target)
        for doc in documents if isinstance(documents, list) else []:
            if isinstance(doc, dict) and _as_id(doc.get("id")) == doc_id:
                return doc
        raise NoSQLiteError(f'Document with ID "{doc_id}" not found inside file.')

    # -- updating ---------------------------------------------------------

    def update_document_by_id(self, doc_id: int, updated_data: dict) -> dict:
        """Merge update data into one document and return the result.

        Every top-level key of the update must already exist, not null, on
        the document.
        """
        if not updated_data:
            raise NoSQLiteError("No data provided to update.")
        if not isinstance(updated_data, dict):
            raise NoSQLiteError("Update data must be a JSON object.")
        target = document_path(self.path, doc_id)
        if not target.exists():
            raise NoSQLiteError(f'Document with ID "{doc_id}" does not exist.')

        documents = read_and_parse_json(target)
        if not isinstance(documents, list):
            raise NoSQLiteError(f"Invalid document file at: {target}.")
        for position, original in enumerate(documents):
            if isinstance(original, dict) and _as_id(original.get("id")) == doc_id:
                break
        else:
            raise NoSQLiteError(f'Document with ID "{doc_id}" not found in file.')

        missing = [key for key in updated_data if original.get(key) is None]
        if missing:
            raise NoSQLiteError(
                "The following fields do not exist on the document you're accessing: "
                + ", ".join(missing)
            )

        final = merge_update(original, updated_data)
        documents[position] = final
        _write_json(target, documents, indent=4)

        for field, index in self._indexed_fields():
            if find_nested_field(final, field):
                index.update_index(
                    _field_value(original, field),
                    access_nested_fields(final, field),
                    target,
                )
        return final

    def update_documents(
        self, conditions: Iterable[Condition], updated_data: dict
    ) -> list[dict]:
        """Update every document matching the conditions (all, if none are given)."""
        if not updated_data:
            raise NoSQLiteError("No data provided to update.")
        conditions = list(conditions or [])
        matching = (
            self.read_with_conditions(conditions) if conditions else self.read_all()
        )
        if not matching:
            log.info("No documents match the provided conditions.")
            return []

        updated: list[dict] = []
        for doc in matching:
            doc_id = _as_id(doc.get("id")) if isinstance(doc, dict) else None
            if doc_id is None:
                continue
            try:
                updated.append(self.update_document_by_id(doc_id, updated_data))
            except NoSQLiteError as exc:
                log.warning('Failed to update document with ID "%s": %s', doc_id, exc)
        return updated

    # -- indexes ----------------------------------------------------------

    def create_hash_index(self, field: Sequence[str] | str) -> Optional[HashIndex]:
        """Build a hash index on a nested field; an empty field does nothing."""
        field = _normalise_field(field)
        if not field:
            return None
        name = build_index_name(field)
        if name in self.indexes:
            raise NoSQLiteError(f'Index with name "{name}" already exists')
        index = HashIndex(self.path / _INDEXES / name)
        index.build_index(field)
        self.indexes[name] = index
        return index

    def consult_hash_index(self, index_name: str, value: Any) -> list[str]:
        """Return the document files recorded in an index for a value."""
        try:
            index = self.indexes[index_name]
        except KeyError:
            raise NoSQLiteError(f'The index with name "{index_name}" does not exist.') from None
        return index.consult(value)

    def find_index(self, field: Sequence[str] | str) -> bool:
        """True when an index on the field exists."""
        return build_index_name(_normalise_field(field)) in self.indexes

    def delete_hash_index(self, field: Sequence[str] | str) -> None:
        """Remove the index on a field."""
        field = _normalise_field(field)
        name = build_index_name(field)
        index = self.indexes.pop(name, None)
        if index is None:
            raise NoSQLiteError(f'The index with name "{name}" does not exist.')
        index.delete_index()

    # -- deleting ---------------------------------------------------------

    def _delete_from_file(self, file_path: Path, conditions: Sequence[Condition]) -> int:
        try:
            content = read_and_parse_json(file_path)
        except NoSQLiteError:
            return 0
        documents = content if isinstance(content, list) else []

        remaining: list[Any] = []
        removed = 0
        for doc in documents:
            if not satisfies(doc, conditions):
                remaining.append(doc)
                continue
            for field, index in self._indexed_fields():
                if find_nested_field(doc, field):
                    index.remove_from_index(
                        access_nested_fields(doc, field), field, file_path
                    )
            removed += 1

        if removed:
            if remaining:
                _write_json(file_path, remaining)
            else:
                file_path.unlink()
        return removed

    def delete_with_conditions(self, conditions: Iterable[Condition]) -> int:
        """Delete every document satisfying all conditions; returns how many."""
        conditions = list(conditions)
        index_paths = self._index_paths(conditions)
        paths = (
            [Path(p) for p in index_paths]
            if index_paths is not None
            else collect_paths(self.path)
        )
        removed = sum(self._delete_from_file(path, conditions) for path in paths)

        if removed > 0:
            self._write_header(self.number_of_documents - removed)
            self.number_of_documents -= removed
        return removed

    def delete_collection(self) -> None:
        """Remove the whole collection from disk."""
        shutil.rmtree(self.path, ignore_errors=True)
        self.indexes = {}
        self.number_of_documents = 0