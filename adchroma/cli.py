"""adchroma CLI application with Typer."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError

from adchroma import __version__
from adchroma.bootstrap import ApplicationContainer, bootstrap_application
from adchroma.config import get_settings, set_settings
from adchroma.errors import AdChromaError

app = typer.Typer(
    name="adchroma",
    help="Embedded vector database: named collections of embeddings with HNSW search",
    add_completion=True,
    no_args_is_help=True,
)
collection_app = typer.Typer(help="Create, inspect and maintain collections", no_args_is_help=True)
embedding_app = typer.Typer(help="Add, update, delete and search embeddings", no_args_is_help=True)
app.add_typer(collection_app, name="collection")
app.add_typer(embedding_app, name="embedding")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"adchroma version {__version__}")
        raise typer.Exit()


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Map typed failures to exit code 1 and invalid input to exit code 2."""
    try:
        yield
    except AdChromaError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except ValidationError as exc:
        typer.secho(f"Invalid input: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc


def _parse_vector(raw: str, param_hint: str) -> list[float]:
    try:
        values = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"not valid JSON: {exc.msg}", param_hint=param_hint) from exc

    if not isinstance(values, list) or not all(
        isinstance(value, int | float) and not isinstance(value, bool) for value in values
    ):
        raise typer.BadParameter("expected a JSON array of numbers", param_hint=param_hint)
    return [float(value) for value in values]


def _where(
    document_id: str | None,
    ids: list[str] | None,
    arg1: str | None,
    arg2: str | None,
    arg3: str | None,
) -> dict[str, Any]:
    return {
        "document_id": document_id,
        "embedding_ids": ids or None,
        "arg1": arg1,
        "arg2": arg2,
        "arg3": arg3,
    }


def _open(collection_name: str | None = None) -> ApplicationContainer:
    """Bootstrap and, when named, load the collection's index into the cache."""
    container = bootstrap_application()
    if collection_name is not None:
        container.collection_store.get_collection(collection_name)
    return container


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Override data directory"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log at DEBUG level"),
    ] = False,
) -> None:
    """adchroma - embedded vector database."""
    settings = get_settings()
    if data_dir:
        settings.data_dir = data_dir
    set_settings(settings)

    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def heartbeat() -> None:
    """Check that the record store is reachable."""
    with _handle_errors():
        container = _open()
        container.records.list_collections()
    _echo_json({"db": 1})


# Collection subcommands


@collection_app.command("create")
def collection_create(
    name: Annotated[str, typer.Argument(help="Unique collection name")],
    dimensions: Annotated[int, typer.Option("--dimensions", "-d", help="Vector length")],
    max_elements: Annotated[
        int | None,
        typer.Option("--max-elements", help="Starting index capacity"),
    ] = None,
    ef_search: Annotated[
        int | None,
        typer.Option("--ef-search", help="Size of the dynamic nearest-neighbour list"),
    ] = None,
    resize_factor: Annotated[
        float,
        typer.Option("--resize-factor", help="Capacity growth multiplier"),
    ] = 1.0,
    get_or_create: Annotated[
        bool,
        typer.Option("--get-or-create", help="Return the existing collection instead of failing"),
    ] = False,
) -> None:
    """Create a collection."""
    with _handle_errors():
        container = _open()
        row = container.collection_store.create_collection(
            name,
            {
                "dimensions": dimensions,
                "max_elements": max_elements,
                "ef_search": ef_search,
                "resize_factor": resize_factor,
            },
            get_or_create=get_or_create,
        )
    typer.secho(f"Collection {row.name} ready (id {row.id})", fg=typer.colors.GREEN)


@collection_app.command("list")
def collection_list(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List collections in creation order."""
    with _handle_errors():
        rows = _open().collection_store.list_collections()

    if json_output:
        _echo_json([row.model_dump(mode="json") for row in rows])
        return

    if not rows:
        typer.echo("No collections.")
        return
    for row in rows:
        typer.echo(f"{row.name}\t{row.id}\tdim={row.metadata.dimensions}")


@collection_app.command("update")
def collection_update(
    name: Annotated[str, typer.Argument(help="Current collection name")],
    new_name: Annotated[str | None, typer.Option("--new-name", help="Rename to")] = None,
    dimensions: Annotated[int | None, typer.Option("--dimensions", "-d")] = None,
    max_elements: Annotated[int | None, typer.Option("--max-elements")] = None,
    ef_search: Annotated[int | None, typer.Option("--ef-search")] = None,
    resize_factor: Annotated[float | None, typer.Option("--resize-factor")] = None,
) -> None:
    """Rename a collection and/or change its index parameters."""
    with _handle_errors():
        row = _open().collection_store.update_collection(
            name,
            new_name=new_name,
            new_metadata={
                "dimensions": dimensions,
                "max_elements": max_elements,
                "ef_search": ef_search,
                "resize_factor": resize_factor,
            },
        )
    typer.secho(f"Collection {row.name} updated", fg=typer.colors.GREEN)


@collection_app.command("drop-index")
def collection_drop_index(
    name: Annotated[str, typer.Argument(help="Collection name")],
) -> None:
    """Delete the collection's persisted index; stored rows are kept."""
    with _handle_errors():
        _open(name).collection_store.drop_collection_index(name)
    typer.secho(f"Index of {name} dropped", fg=typer.colors.YELLOW)


@collection_app.command("rebuild-index")
def collection_rebuild_index(
    name: Annotated[str, typer.Argument(help="Collection name")],
) -> None:
    """Recreate the index from stored rows, reclaiming deleted labels."""
    with _handle_errors():
        count = _open().collection_store.rebuild_collection_index(name)
    typer.secho(f"Rebuilt index of {name} with {count} embeddings", fg=typer.colors.GREEN)


@collection_app.command("count")
def collection_count(
    name: Annotated[str, typer.Argument(help="Collection name")],
) -> None:
    """Print the number of stored embeddings."""
    with _handle_errors():
        count = _open().collection_store.count_embeddings_by_collection_name(name)
    typer.echo(str(count))


# Embedding subcommands


@embedding_app.command("add")
def embedding_add(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    vector: Annotated[str, typer.Argument(help="Embedding as a JSON array")],
    embedding_id: Annotated[str | None, typer.Option("--id", help="Explicit embedding id")] = None,
    document: Annotated[str | None, typer.Option("--document")] = None,
    document_id: Annotated[str | None, typer.Option("--document-id")] = None,
    arg1: Annotated[str | None, typer.Option("--arg1")] = None,
    arg2: Annotated[str | None, typer.Option("--arg2")] = None,
    arg3: Annotated[str | None, typer.Option("--arg3")] = None,
) -> None:
    """Add one embedding and print its id."""
    embedding = _parse_vector(vector, "VECTOR")
    with _handle_errors():
        new_id = _open(collection).collection_store.add_embedding_to_collection(
            {
                "collection_name": collection,
                "embedding": embedding,
                "id": embedding_id,
                "document": document,
                "document_id": document_id,
                "arg1": arg1,
                "arg2": arg2,
                "arg3": arg3,
            }
        )
    typer.echo(new_id)


@embedding_app.command("update")
def embedding_update(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    embedding_id: Annotated[str, typer.Argument(help="Embedding id")],
    vector: Annotated[
        str | None,
        typer.Option("--embedding", help="Replacement embedding as a JSON array"),
    ] = None,
    document: Annotated[str | None, typer.Option("--document")] = None,
    document_id: Annotated[str | None, typer.Option("--document-id")] = None,
    arg1: Annotated[str | None, typer.Option("--arg1")] = None,
    arg2: Annotated[str | None, typer.Option("--arg2")] = None,
    arg3: Annotated[str | None, typer.Option("--arg3")] = None,
) -> None:
    """Replace an embedding's vector and/or document fields."""
    payload: dict[str, Any] = {"collection_name": collection, "embedding_id": embedding_id}
    if vector is not None:
        payload["embedding"] = _parse_vector(vector, "--embedding")
    fields = {
        "document": document,
        "document_id": document_id,
        "arg1": arg1,
        "arg2": arg2,
        "arg3": arg3,
    }
    payload.update({key: value for key, value in fields.items() if value is not None})

    with _handle_errors():
        _open(collection).collection_store.update_embedding(payload)
    typer.secho(f"Embedding {embedding_id} updated", fg=typer.colors.GREEN)


@embedding_app.command("delete")
def embedding_delete(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    embedding_id: Annotated[str, typer.Argument(help="Embedding id")],
) -> None:
    """Delete one embedding."""
    with _handle_errors():
        _open(collection).collection_store.delete_embedding(collection, embedding_id)
    typer.secho(f"Embedding {embedding_id} deleted", fg=typer.colors.YELLOW)


@embedding_app.command("get")
def embedding_get(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    ids: Annotated[list[str] | None, typer.Option("--id", help="Restrict to ids")] = None,
    document_id: Annotated[str | None, typer.Option("--document-id")] = None,
    arg1: Annotated[str | None, typer.Option("--arg1")] = None,
    arg2: Annotated[str | None, typer.Option("--arg2")] = None,
    arg3: Annotated[str | None, typer.Option("--arg3")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List embeddings matching every given filter."""
    with _handle_errors():
        rows = _open().collection_store.get(
            {
                "collection_name": collection,
                "where": _where(document_id, ids, arg1, arg2, arg3),
            }
        )

    if json_output:
        _echo_json([row.model_dump(mode="json") for row in rows])
        return
    for row in rows:
        typer.echo(f"{row.id}\t{row.document_id or '-'}\t{row.document or ''}")


@embedding_app.command("query")
def embedding_query(
    collection: Annotated[str, typer.Argument(help="Collection name")],
    vector: Annotated[str, typer.Argument(help="Query embedding as a JSON array")],
    k: Annotated[int, typer.Option("--k", "-k", help="Nearest neighbours to return", min=1)] = 1,
    ids: Annotated[list[str] | None, typer.Option("--id", help="Restrict to ids")] = None,
    document_id: Annotated[str | None, typer.Option("--document-id")] = None,
    arg1: Annotated[str | None, typer.Option("--arg1")] = None,
    arg2: Annotated[str | None, typer.Option("--arg2")] = None,
    arg3: Annotated[str | None, typer.Option("--arg3")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Return the nearest embeddings, closest first."""
    search_embedding = _parse_vector(vector, "VECTOR")
    with _handle_errors():
        results = _open(collection).collection_store.get_nearest_neighbors(
            {
                "collection_name": collection,
                "search_embedding": search_embedding,
                "nearest_neighbors": k,
                "where": _where(document_id, ids, arg1, arg2, arg3),
            }
        )

    if json_output:
        _echo_json([asdict(result) for result in results])
        return
    for result in results:
        typer.echo(f"{result.id}\t{result.distance:.6f}\t{result.document or ''}")


if __name__ == "__main__":
    app()
