"""CLI integration smoke tests."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from adchroma import __version__
from adchroma.cli import app

runner = CliRunner()


def _invoke(*args: str):
    return runner.invoke(app, list(args))


@pytest.fixture
def docs(override_settings) -> None:
    result = _invoke("collection", "create", "docs", "--dimensions", "3")
    assert result.exit_code == 0, result.output
    for identifier, vector, document_id in (
        ("a", "[1, 0, 0]", "d1"),
        ("b", "[0, 1, 0]", "d1"),
        ("c", "[0, 0, 1]", "d2"),
    ):
        result = _invoke(
            "embedding", "add", "docs", vector, "--id", identifier, "--document-id", document_id
        )
        assert result.exit_code == 0, result.output
        assert result.stdout.strip() == identifier


def _query(vector: str, *extra: str) -> list[dict]:
    result = _invoke("embedding", "query", "docs", vector, "--json", *extra)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_version() -> None:
    result = _invoke("--version")

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_heartbeat(override_settings) -> None:
    result = _invoke("heartbeat")

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"db": 1}
    assert override_settings.get_db_path().exists()


def test_query_delete_query(docs) -> None:
    hits = _query("[0.9, 0.1, 0]")
    assert [hit["id"] for hit in hits] == ["a"]
    assert hits[0]["document_id"] == "d1"

    result = _invoke("embedding", "delete", "docs", "a")
    assert result.exit_code == 0, result.output

    assert [hit["id"] for hit in _query("[0.9, 0.1, 0]")] == ["b"]


def test_query_with_filter(docs) -> None:
    hits = _query("[1, 0, 0]", "-k", "3", "--document-id", "d2")

    assert [hit["id"] for hit in hits] == ["c"]


def test_list_and_count(docs) -> None:
    listed = _invoke("collection", "list", "--json")
    assert listed.exit_code == 0, listed.output
    (collection,) = json.loads(listed.stdout)
    assert collection["name"] == "docs"
    assert collection["metadata"]["dimensions"] == 3

    counted = _invoke("collection", "count", "docs")
    assert counted.exit_code == 0, counted.output
    assert counted.stdout.strip() == "3"


def test_get_by_document_id(docs) -> None:
    result = _invoke("embedding", "get", "docs", "--document-id", "d1", "--json")

    assert result.exit_code == 0, result.output
    assert [row["id"] for row in json.loads(result.stdout)] == ["a", "b"]


def test_update_embedding_vector(docs) -> None:
    result = _invoke("embedding", "update", "docs", "b", "--embedding", "[1, 0, 0.1]")
    assert result.exit_code == 0, result.output

    hits = _query("[0.9, 0, 0.1]", "-k", "2")
    assert [hit["id"] for hit in hits] == ["b", "a"]


def test_update_collection(docs) -> None:
    result = _invoke("collection", "update", "docs", "--new-name", "papers", "--ef-search", "40")
    assert result.exit_code == 0, result.output

    listed = json.loads(_invoke("collection", "list", "--json").stdout)
    assert listed[0]["name"] == "papers"
    assert listed[0]["metadata"]["ef_search"] == 40


def test_duplicate_collection_exits_with_error(docs) -> None:
    result = _invoke("collection", "create", "docs", "--dimensions", "3")

    assert result.exit_code == 1
    assert "already exists" in result.output

    again = _invoke("collection", "create", "docs", "--dimensions", "3", "--get-or-create")
    assert again.exit_code == 0, again.output


def test_unknown_collection_exits_with_error(override_settings) -> None:
    result = _invoke("embedding", "add", "missing", "[1, 0, 0]")

    assert result.exit_code == 1
    assert "non-existent collection" in result.output


def test_wrong_dimension_exits_with_error(docs) -> None:
    result = _invoke("embedding", "add", "docs", "[1, 0]")

    assert result.exit_code == 1
    assert "does not match index dimension" in result.output


def test_malformed_vector_is_usage_error(docs) -> None:
    result = _invoke("embedding", "add", "docs", "[1, oops]")

    assert result.exit_code == 2


def test_invalid_metadata_is_usage_error(override_settings) -> None:
    result = _invoke("collection", "create", "docs", "--dimensions", "0")

    assert result.exit_code == 2
    assert "Invalid input" in result.output


def test_drop_and_rebuild_index(docs) -> None:
    dropped = _invoke("collection", "drop-index", "docs")
    assert dropped.exit_code == 0, dropped.output

    failed = _invoke("embedding", "query", "docs", "[1, 0, 0]")
    assert failed.exit_code == 1
    assert "Index not created" in failed.output

    rebuilt = _invoke("collection", "rebuild-index", "docs")
    assert rebuilt.exit_code == 0, rebuilt.output
    assert "3 embeddings" in rebuilt.stdout

    assert [hit["id"] for hit in _query("[0, 0, 1]")] == ["c"]
