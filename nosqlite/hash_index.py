"""On-disk hash index mapping field values to the document files holding them."""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Sequence

from .auxiliary import (
    NoSQLiteError,
    access_nested_fields,
    collect_paths,
    dump_json,
    get_last_dir,
    hash_json,
    hash_string,
    read_and_parse_json,
)

_INDEX_FILE = "index.json"


def _value_hash(value: Any) -> str:
    """Hash an indexed value; null values share a fixed bucket."""
    return hash_string("NULL") if value is None else hash_json(value)


class HashIndex:
    """A hash index stored as a directory tree below ``<collection>/indexes``.

    Each value is hashed; the first two pairs of hex digits select the
    directory, and the rest is the key inside that directory's ``index.json``,
    which maps to the list of document file paths holding the value.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"HashIndex({str(self.path)!r})"

    @property
    def field(self) -> str:
        """Name of the index, taken from the last directory of its path."""
        return get_last_dir(self.path.as_posix())

    def _locate(self, value: Any) -> tuple[Path, str]:
        digest = _value_hash(value)
        return self.path / digest[:2] / digest[2:4] / _INDEX_FILE, digest[4:]

    @staticmethod
    def _load(index_file: Path) -> dict[str, list[str]]:
        if not index_file.exists():
            return {}
        content = read_and_parse_json(index_file)
        if not isinstance(content, dict):
            raise NoSQLiteError(f"Invalid index file at: {index_file}.")
        return content

    @staticmethod
    def _store(index_file: Path, index: dict[str, list[str]]) -> None:
        try:
            index_file.parent.mkdir(parents=True, exist_ok=True)
            with open(index_file, "w", encoding="utf-8") as handle:
                json.dump(index, handle, separators=(",", ":"), ensure_ascii=False)
        except OSError as exc:
            raise NoSQLiteError(f"Failed to open file: {index_file}.") from exc

    def build_index(self, fields: Sequence[str]) -> None:
        """Index every document of the owning collection on a nested field."""
        if self.path.exists():
            for entry in self.path.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
        else:
            self.path.mkdir(parents=True)

        collection_dir = self.path.parent.parent
        pending: dict[Path, dict[str, list[str]]] = {}
        for doc_file in collect_paths(collection_dir):
            try:
                documents = read_and_parse_json(doc_file)
            except NoSQLiteError:
                continue
            if not documents:
                continue
            if isinstance(documents, dict):
                documents = [documents]
            for document in documents:
                value = access_nested_fields(document, fields)
                index_file, key = self._locate(value)
                bucket = pending.setdefault(index_file, {})
                bucket.setdefault(key, []).append(str(doc_file))

        try:
            for index_file, index in pending.items():
                self._store(index_file, index)
        except NoSQLiteError:
            shutil.rmtree(self.path, ignore_errors=True)
            raise

    def consult(self, value: Any) -> list[str]:
        """Return the document file paths recorded for a value."""
        index_file, key = self._locate(value)
        if not index_file.exists():
            return []
        paths = self._load(index_file).get(key)
        return list(paths) if paths else []

    def update_index(
        self, original_value: Any, updated_value: Any, document_path: str | Path
    ) -> None:
        """Move a document's entry from its old value to its new value."""
        document_path = str(document_path)
        index_file, key = self._locate(original_value)
        if not index_file.exists():
            return
        index = self._load(index_file)
        entries = index.get(key) or []
        remaining = [path for path in entries if path != document_path]
        if len(remaining) == len(entries):
            return
        index[key] = remaining
        self._store(index_file, index)
        self.add_to_index(updated_value, document_path)

    def add_to_index(self, new_value: Any, document_path: str | Path) -> None:
        """Record that a document file holds a value."""
        index_file, key = self._locate(new_value)
        index = self._load(index_file)
        index.setdefault(key, []).append(str(document_path))
        self._store(index_file, index)

    def remove_from_index(
        self, value: Any, field: Sequence[str], document_path: str | Path
    ) -> None:
        """Drop a document file from a value's entry.

        The entry is kept when other documents in the same file still hold
        the value.
        """
        document_path = str(document_path)
        try:
            documents = read_and_parse_json(document_path)
        except NoSQLiteError:
            documents = []
        if isinstance(documents, list) and len(documents) > 1:
            target = dump_json(value)
            count = 0
            for document in documents:
                try:
                    if dump_json(access_nested_fields(document, field)) == target:
                        count += 1
                except TypeError:
                    continue
            if count > 1:
                return

        index_file, key = self._locate(value)
        if not index_file.exists():
            return
        index = self._load(index_file)
        index[key] = [path for path in index.get(key) or [] if path != document_path]
        self._store(index_file, index)

    def delete_index(self) -> None:
        """Remove the index and all of its files."""
        shutil.rmtree(self.path, ignore_errors=True)