"""Main CLI entry point for gitobj."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import click
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from gitobj.constants import (
    COPY_CHUNK_SIZE,
    DEFAULT_HEAD,
    EXIT_DATA_ERROR,
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    GIT_DIR,
    GIT_DIR_ENV,
    HEAD_FILE,
    OBJECTS_DIR,
    REFS_DIR,
)
from gitobj.core import default_signature, snapshot_directory
from gitobj.errors import GitObjError, ObjectCorruptedError
from gitobj.storage import (
    CommitBuilder,
    ObjectKind,
    ObjectNotFoundError,
    ObjectStore,
    StoreWriteError,
)
from gitobj.storage.tree_codec import format_tree_entry, iter_tree_entries

console = Console()
err_console = Console(stderr=True, soft_wrap=True)
app = typer.Typer(
    name="gitobj",
    help="Content-addressable object store compatible with Git loose objects",
    add_completion=False,
)


def _fail(message: str, code: int = EXIT_USER_ERROR) -> None:
    err_console.print(f"[bold red]fatal:[/bold red] {escape(message)}")
    raise typer.Exit(code)


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Turn library errors into a single ``fatal:`` line and exit code."""
    try:
        yield
    except ObjectNotFoundError as e:
        _fail(str(e), EXIT_USER_ERROR)
    except ObjectCorruptedError as e:
        _fail(str(e), EXIT_DATA_ERROR)
    except StoreWriteError as e:
        _fail(str(e), EXIT_SYSTEM_ERROR)
    except (GitObjError, ValueError) as e:
        _fail(str(e), EXIT_USER_ERROR)
    except OSError as e:
        _fail(str(e), EXIT_SYSTEM_ERROR)


def _git_dir(ctx: typer.Context) -> Path:
    return ctx.obj["git_dir"]


def _open_store(ctx: typer.Context) -> ObjectStore:
    objects_dir = _git_dir(ctx) / OBJECTS_DIR
    if not objects_dir.is_dir():
        _fail(f"not a gitobj repository (no {objects_dir} directory)")
    return ObjectStore(objects_dir)


@app.callback()
def main_options(
    ctx: typer.Context,
    git_dir: Path = typer.Option(
        Path(GIT_DIR),
        "--git-dir",
        envvar=GIT_DIR_ENV,
        help="Path to the repository directory",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log object store activity to stderr",
    ),
) -> None:
    """Content-addressable object store compatible with Git loose objects."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )
    ctx.obj = {"git_dir": git_dir}


@app.command()
def version() -> None:
    """Show gitobj version."""
    from gitobj import __version__
    typer.echo(f"gitobj version {__version__}")


@app.command()
def init(
    ctx: typer.Context,
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress output except errors",
    ),
) -> None:
    """Create an empty repository directory."""
    git_dir = _git_dir(ctx)

    if git_dir.exists():
        _fail(f"repository already exists at {git_dir}")

    with _reporting_errors():
        git_dir.mkdir(parents=True)
        (git_dir / OBJECTS_DIR).mkdir()
        (git_dir / REFS_DIR).mkdir()
        (git_dir / HEAD_FILE).write_text(DEFAULT_HEAD, encoding="utf-8")

    if not quiet:
        console.print(
            Panel(
                f"[bold green]✓[/bold green] Initialized empty repository\n\n"
                f"[dim]Object store:[/dim] {escape(str(git_dir / OBJECTS_DIR))}",
                border_style="green",
                title="gitobj",
            )
        )


@app.command("cat-file")
def cat_file(
    ctx: typer.Context,
    object_hash: str = typer.Argument(..., metavar="HASH", help="Object hash (40 hex digits)"),
    pretty_print: bool = typer.Option(
        False, "-p", help="Pretty-print the object's content"
    ),
    show_type: bool = typer.Option(False, "-t", help="Show the object's kind"),
    show_size: bool = typer.Option(False, "-s", help="Show the object's size"),
) -> None:
    """Show the content, kind or size of an object."""
    if sum((pretty_print, show_type, show_size)) != 1:
        _fail("exactly one of -p, -t or -s is required")

    store = _open_store(ctx)
    with _reporting_errors():
        with store.open_object(object_hash) as stream:
            if show_type:
                typer.echo(stream.kind.value)
            elif show_size:
                typer.echo(str(stream.size))
            elif stream.kind is ObjectKind.TREE:
                for entry in iter_tree_entries(stream):
                    typer.echo(format_tree_entry(entry))
            else:
                stdout = click.get_binary_stream("stdout")
                while True:
                    chunk = stream.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    stdout.write(chunk)
                stdout.flush()


@app.command("hash-object")
def hash_object(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="File to hash"),
    write: bool = typer.Option(
        False, "-w", help="Write the object into the object store"
    ),
    kind: str = typer.Option("blob", "-t", help="Object kind: blob, tree or commit"),
) -> None:
    """Compute an object address for a file, optionally storing it."""
    with _reporting_errors():
        object_kind = ObjectKind.from_name(kind)
        if write:
            address = _open_store(ctx).write_file(file, object_kind)
        else:
            address = ObjectStore.hash_file(file, object_kind)
    typer.echo(str(address))


@app.command("ls-tree")
def ls_tree(
    ctx: typer.Context,
    tree_hash: str = typer.Argument(..., metavar="HASH", help="Tree hash (40 hex digits)"),
    name_only: bool = typer.Option(
        False, "--name-only", help="List only entry names"
    ),
) -> None:
    """List the entries of a tree object."""
    store = _open_store(ctx)
    with _reporting_errors():
        with store.open_object(tree_hash) as stream:
            if stream.kind is not ObjectKind.TREE:
                _fail("not a tree object")
            for entry in iter_tree_entries(stream):
                if name_only:
                    typer.echo(entry.name)
                else:
                    typer.echo(format_tree_entry(entry))


@app.command("write-tree")
def write_tree(
    ctx: typer.Context,
    path: Path = typer.Option(
        Path("."), "--path", help="Directory to snapshot (default: current directory)"
    ),
) -> None:
    """Snapshot a directory into tree objects and print the root tree hash."""
    store = _open_store(ctx)
    ignore = [GIT_DIR, _git_dir(ctx).name]
    with _reporting_errors():
        address = snapshot_directory(store, path, ignore=ignore)
    typer.echo(str(address))


@app.command("commit-tree")
def commit_tree(
    ctx: typer.Context,
    tree_hash: str = typer.Argument(..., metavar="TREE", help="Tree hash (40 hex digits)"),
    parents: Optional[List[str]] = typer.Option(
        None, "-p", help="Parent commit hash (repeatable)"
    ),
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Commit message (required)"
    ),
    author_name: Optional[str] = typer.Option(None, "--author-name", help="Override author name"),
    author_email: Optional[str] = typer.Option(None, "--author-email", help="Override author email"),
) -> None:
    """Create a commit object for a tree and print its hash."""
    if message is None:
        _fail("commit message is required (use -m)")

    store = _open_store(ctx)
    with _reporting_errors():
        author = default_signature(author_name, author_email)
        address = CommitBuilder(store).build_commit(
            tree_hash, parents or [], author, author, message
        )
    typer.echo(str(address))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
