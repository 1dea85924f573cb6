# nosqlite

A small document database that keeps JSON documents as files on disk.

A database is a directory. Each collection is a subdirectory in it, and a
`header.json` file lists the collections. Every document gets a numeric `id`
when it is stored, and its file is placed by the hash of that id. A collection
can have hash indexes on fields, including nested fields. A read or delete with
an `==` condition on an indexed field uses the index and does not scan every
file.

## Installation

```
pip install .
```

## Usage

The main entry point is `nosqlite.database.Database`. Conditions are
`nosqlite.auxiliary.Condition` values.

```python
from nosqlite.database import Database
from nosqlite.auxiliary import Condition

db = Database("db")

# Build "db" from a directory whose subdirectories are collections.
# Anything already stored in "db" is removed first.
failed = db.build_from_scratch("path/to/json")   # names of collections that failed

# Or load a database that already exists on disk.
# db.build_from_existing()

stored = db.create_document("movies", {
    "title": "Memories of Murder",
    "director": "Bong Joon Ho",
    "year": 2003,
    "imdb": {"rating": 8.1},
})
print(stored["id"])

found = db.read("movies", [Condition(["title"], "==", "Memories of Murder")])
everything = db.read("movies")

good = db.read("movies", [
    Condition(["year"], ">=", 2000),
    Condition(["imdb", "rating"], ">=", 7.6),
])

updated = db.update("movies", [Condition(["title"], "==", "The Avengers")], {"runtime": 42})
removed = db.remove("movies", [Condition(["title"], "==", "Memories of Murder")])

db.create_hash_index("movies", ["year"])
db.delete_hash_index("movies", ["year"])

db.create_collection("series")               # empty collection
db.create_collection("shorts", "path/to/more/json")
db.delete_collection("series")

db.set_parallel_processing(False)            # read files in a single thread
```

### Conditions

A `Condition` has a field path, an operator and a value. A plain string is
accepted as a one-element field path. The operators are `==`, `!=`, `>`, `<`,
`>=` and `<=`. The ordering operators only match numbers. When the field holds
an array, the condition matches if any element matches. A read with an
`id == n` condition fetches that document directly.

### Updates

`Database.update` merges the update data into every matching document. With no
conditions, it updates every document in the collection. Nested objects are
merged key by key. Other values are replaced, and `id` is never changed. Each
top-level key of the update must already exist, with a non-null value, on the
document. A document that fails this check is skipped and a warning is logged.

### Source files

When a database or collection is built from a directory, every `.json` file
below it may hold one object or an array of objects.

### Working with one collection

`Database.get_collection(name)` returns a `nosqlite.collection.Collection`.
It also offers `get_document(id)`, `add_document_text(json_string)`,
`update_document_by_id(id, data)`, `read_all()` and `find_index(field)`.

### Errors

Failures raise `nosqlite.auxiliary.NoSQLiteError`. An unknown collection raises
`CollectionNotFoundError`, which is a subclass of it. A source directory that
does not exist raises `FileNotFoundError`. Some cases are errors: a remove
without conditions, an update with no data, and creating an index or collection
that already exists.

## What it does not do

The package is a Python library only. It installs no command-line program and
has no server. There is no chained query builder. Every operation is a direct
method call on `Database` or `Collection`. Writes are not locked against other
processes that use the same directory.