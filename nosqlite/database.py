"""A database: a directory of collections listed in a header file."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from .auxiliary import (
    CollectionNotFoundError,
    Condition,
    NoSQLiteError,
    check_path_existence,
    read_and_parse_json,
)
from .collection import Collection
from .hash_index import HashIndex

_HEADER = "header.json"

log = logging.getLogger(__name__)


class Database:
    """Collections stored below one directory, with a header naming them."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.collections: dict[str, Collection] = {}

    def __repr__(self) -> str:
        return f"Database({str(self.path)!r})"

    # -- header -----------------------------------------------------------

    @property
    def _header_path(self) -> Path:
        return self.path / _HEADER

    def _write_header(self, names: Sequence[str]) -> None:
        try:
            with open(self._header_path, "w", encoding="utf-8") as handle:
                handle.write(
                    json.dumps(
                        {"collections": list(names)},
                        separators=(",", ":"),
                        ensure_ascii=False,
                    )
                )
                handle.write("\n")
        except OSError as exc:
            raise NoSQLiteError("Failed to update database header file") from exc

    def _header_names(self) -> list[str]:
        header = read_and_parse_json(self._header_path)
        names = header.get("collections") if isinstance(header, dict) else None
        if names is None:
            return []
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise NoSQLiteError("Invalid database header file.")
        return list(names)

    # -- settings ---------------------------------------------------------

    def set_parallel_processing(self, enabled: bool) -> None:
        """Turn parallel reading on or off for every loaded collection."""
        for collection in self.collections.values():
            collection.parallel_processing = bool(enabled)

    # -- building ---------------------------------------------------------

    def build_from_scratch(self, path_to_json: str | Path) -> list[str]:
        """Recreate the database from a directory whose subdirectories are collections.

        Everything already stored at the database path is removed. Returns the
        names of the collections that could not be built.
        """
        source = check_path_existence(path_to_json)

        if self.path.exists():
            for entry in self.path.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
        else:
            self.path.mkdir(parents=True)
        self.collections = {}

        names: list[str] = []
        failed: list[str] = []
        for entry in sorted(source.iterdir()):
            if not entry.is_dir():
                continue
            name = entry.name
            names.append(name)
            collection = Collection(self.path / name)
            try:
                collection.build_from_scratch(entry)
            except (NoSQLiteError, OSError) as exc:
                log.error('Failed to create collection: "%s": %s', name, exc)
                failed.append(name)
            else:
                self.collections[name] = collection

        self._write_header(sorted(names))
        return failed

    def build_from_existing(self) -> None:
        """Load the collections named in the header of a database on disk.

        Collections that cannot be loaded are dropped from the header.
        """
        check_path_existence(self.path)
        self.collections = {}
        loaded: list[str] = []
        for name in self._header_names():
            collection = Collection(self.path / name)
            try:
                collection.build_from_existing()
            except (NoSQLiteError, OSError) as exc:
                log.error('Failed to build collection: "%s": %s', name, exc)
                continue
            self.collections[name] = collection
            loaded.append(name)
        self._write_header(loaded)

    # -- access -----------------------------------------------------------

    def get_collection(self, name: str) -> Collection:
        """Return a loaded collection by name."""
        try:
            return self.collections[name]
        except KeyError:
            raise CollectionNotFoundError(name) from None

    # -- operations -------------------------------------------------------

    def create_hash_index(
        self, col_name: str, field: Sequence[str] | str
    ) -> Optional[HashIndex]:
        """Create a hash index on a nested field of a collection."""
        return self.get_collection(col_name).create_hash_index(field)

    def create_document(self, col_name: str, document: dict) -> dict:
        """Store a document in a collection; returns the stored copy with its id."""
        return self.get_collection(col_name).create_document(document)

    def read(
        self, col_name: str, conditions: Optional[Iterable[Condition]] = None
    ) -> list[Any]:
        """Return the documents of a collection that satisfy every condition."""
        conditions = list(conditions or [])
        collection = self.get_collection(col_name)
        if not conditions:
            return collection.read_all()
        return collection.read_with_conditions(conditions)

    def update(
        self,
        col_name: str,
        conditions: Optional[Iterable[Condition]],
        updated_data: dict,
    ) -> list[dict]:
        """Update the matching documents of a collection; returns them updated."""
        if not updated_data:
            raise NoSQLiteError("No data provided to update.")
        return self.get_collection(col_name).update_documents(
            list(conditions or []), updated_data
        )

    def remove(
        self, col_name: str, conditions: Optional[Iterable[Condition]] = None
    ) -> int:
        """Delete the matching documents of a collection; returns how many."""
        conditions = list(conditions or [])
        if not conditions:
            raise NoSQLiteError("No conditions provided for removal.")
        return self.get_collection(col_name).delete_with_conditions(conditions)

    def delete_collection(self, col_name: str) -> None:
        """Remove a collection from disk and from the header."""
        collection = self.get_collection(col_name)
        collection.delete_collection()
        del self.collections[col_name]
        names = [name for name in self._header_names() if name != col_name]
        self._write_header(names)

    def create_collection(
        self, col_name: str, path_to_files: str | Path = ""
    ) -> Collection:
        """Create a collection from JSON files, or an empty one for an empty path."""
        if col_name in self.collections:
            raise NoSQLiteError(f'Collection with name "{col_name}" already exists.')
        collection = Collection(self.path / col_name)
        collection.build_from_scratch(path_to_files)
        self.collections[col_name] = collection

        names = self._header_names()
        names.append(col_name)
        self._write_header(names)
        return collection

    def delete_hash_index(self, col_name: str, field: Sequence[str] | str) -> None:
        """Remove the index on a field of a collection."""
        self.get_collection(col_name).delete_hash_index(field)