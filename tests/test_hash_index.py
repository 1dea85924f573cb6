import json
from pathlib import Path

import pytest

from nosqlite.auxiliary import hash_json, hash_string
from nosqlite.hash_index import HashIndex


def _write_docs(path: Path, docs):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(docs), encoding="utf-8")
    return path


@pytest.fixture
def collection(tmp_path):
    col = tmp_path / "movies"
    col.mkdir()
    (col / "header.json").write_text('{"number_of_documents": 4}', encoding="utf-8")
    files = {
        "murder": _write_docs(
            col / "aa" / "bb" / "one.json",
            [{"id": 0, "title": "Memories of Murder", "year": 2003,
              "imdb": {"rating": 8.1}}],
        ),
        "avengers": _write_docs(
            col / "cc" / "dd" / "two.json",
            [{"id": 1, "title": "The Avengers", "year": 2012,
              "imdb": {"rating": 8.0}}],
        ),
        "pair": _write_docs(
            col / "ee" / "ff" / "three.json",
            [{"id": 2, "title": "A", "year": 1999},
             {"id": 3, "title": "B", "year": 1999}],
        ),
        "untitled": _write_docs(col / "11" / "22" / "four.json", [{"id": 4}]),
    }
    return col, files


def _index(col, name):
    return HashIndex(col / "indexes" / name)


def test_field_is_last_directory(collection):
    col, _ = collection
    assert _index(col, "hash_year").field == "hash_year"


def test_build_and_consult(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    assert index.consult(2003) == [str(files["murder"])]
    assert index.consult(2012) == [str(files["avengers"])]


def test_consult_unknown_value_is_empty(collection):
    col, _ = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    assert index.consult(1800) == []


def test_build_records_each_document(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    assert index.consult(1999) == [str(files["pair"]), str(files["pair"])]


def test_missing_field_indexed_under_null(collection):
    col, files = collection
    index = _index(col, "hash_title")
    index.build_index(["title"])
    assert index.consult(None) == [str(files["untitled"])]


def test_nested_field(collection):
    col, files = collection
    index = _index(col, "hash_imdb_rating")
    index.build_index(["imdb", "rating"])
    assert index.consult(8.1) == [str(files["murder"])]


def test_index_file_layout(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    digest = hash_json(2003)
    stored = json.loads(
        (index.path / digest[:2] / digest[2:4] / "index.json").read_text()
    )
    assert stored[digest[4:]] == [str(files["murder"])]


def test_null_bucket_layout(collection):
    col, files = collection
    index = _index(col, "hash_title")
    index.build_index(["title"])
    digest = hash_string("NULL")
    assert (index.path / digest[:2] / digest[2:4] / "index.json").is_file()


def test_rebuild_clears_previous_entries(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    index.add_to_index(1800, "elsewhere.json")
    index.build_index(["year"])
    assert index.consult(1800) == []
    assert index.consult(2003) == [str(files["murder"])]


def test_add_to_index(collection):
    col, _ = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    index.add_to_index(2003, "new.json")
    assert "new.json" in index.consult(2003)
    assert len(index.consult(2003)) == 2


def test_add_to_index_creates_directories(tmp_path):
    index = HashIndex(tmp_path / "col" / "indexes" / "hash_x")
    index.add_to_index({"a": 1}, "doc.json")
    assert index.consult({"a": 1}) == ["doc.json"]


def test_update_index_moves_entry(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    index.update_index(2003, 2004, files["murder"])
    assert index.consult(2003) == []
    assert index.consult(2004) == [str(files["murder"])]


def test_update_index_ignores_unknown_path(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    index.update_index(2003, 2004, "unknown.json")
    assert index.consult(2003) == [str(files["murder"])]
    assert index.consult(2004) == []


def test_update_index_without_original_entry(tmp_path):
    index = HashIndex(tmp_path / "col" / "indexes" / "hash_year")
    index.update_index(1, 2, "doc.json")
    assert index.consult(2) == []


def test_remove_from_index(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    index.remove_from_index(2003, ["year"], files["murder"])
    assert index.consult(2003) == []
    assert index.consult(2012) == [str(files["avengers"])]


def test_remove_kept_while_file_still_holds_value(collection):
    col, files = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    before = index.consult(1999)
    index.remove_from_index(1999, ["year"], files["pair"])
    assert index.consult(1999) == before


def test_remove_for_missing_document_file(tmp_path):
    index = HashIndex(tmp_path / "col" / "indexes" / "hash_year")
    index.add_to_index(5, "gone.json")
    index.add_to_index(5, "other.json")
    index.remove_from_index(5, ["year"], "gone.json")
    assert index.consult(5) == ["other.json"]


def test_delete_index(collection):
    col, _ = collection
    index = _index(col, "hash_year")
    index.build_index(["year"])
    index.delete_index()
    assert not index.path.exists()
    assert index.consult(2003) == []


def test_build_ignores_header_and_index_files(collection):
    col, files = collection
    index = _index(col, "hash_number_of_documents")
    index.build_index(["number_of_documents"])
    assert index.consult(4) == []
    assert len(index.consult(None)) == 5