"""dtree CLI - typer application for working with exported graph files."""

from __future__ import annotations

import asyncio
import atexit
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from dtree.config import load_config
from dtree.export.builder import build_export, export_filename
from dtree.export.files import read_text, save_json
from dtree.export.importer import load_nodes, parse_payload
from dtree.export.payload import PayloadSummary
from dtree.graph.algorithms import collect_subtree, edge_pairs, has_cycle, root_ids
from dtree.graph.errors import DtreeError
from dtree.ids import IdGenerator
from dtree.observability import close_file_logging, configure_logging, get_logger
from dtree.workspace.registry import WorkspaceRegistry
from dtree.workspace.workbench import Workbench

if TYPE_CHECKING:
    from dtree.workspace.workbench import Outcome

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="dtree",
    help="dtree: inspect, merge and slice exported story graphs.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_enabled: Annotated[
        bool,
        typer.Option("--log", help="Enable file logging (debug.jsonl in --log-dir)."),
    ] = False,
    log_dir: Annotated[
        Path,
        typer.Option("--log-dir", help="Directory for log files.", envvar="DTREE_LOG_DIR"),
    ] = Path("logs"),
) -> None:
    """dtree: inspect, merge and slice exported story graphs."""
    configure_logging(verbosity=verbose, log_to_file=log_enabled, log_dir=log_dir)
    if log_enabled:
        atexit.register(close_file_logging)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _read(path: Path) -> str:
    try:
        return asyncio.run(read_text(path))
    except DtreeError as e:
        raise _fail(str(e)) from e


def _load(path: Path) -> dict[str, Any]:
    """Read and validate a graph file, exiting with status 1 on failure."""
    text = _read(path)
    try:
        return parse_payload(text)
    except DtreeError as e:
        raise _fail(str(e)) from e


def _target(out: Path, label: str) -> Path:
    return out / export_filename(label) if out.is_dir() else out


def _unwrap(outcome: Outcome[Any]) -> Any:
    if not outcome.ok:
        raise _fail(outcome.message)
    return outcome.value


@app.command()
def version() -> None:
    """Show version information."""
    from dtree import __version__

    console.print(f"dtree v{__version__}")


@app.command()
def validate(
    file: Annotated[Path, typer.Argument(help="Graph file (*.dtree.json) to check.")],
) -> None:
    """Check that a file is a valid graph export."""
    summary = PayloadSummary.from_payload(_load(file))
    console.print(
        f"[green]✓[/green] {file.name}: [bold]{summary.label}[/bold] "
        f"({summary.node_count} nodes, {summary.edge_count} edges)"
    )


@app.command()
def inspect(
    file: Annotated[Path, typer.Argument(help="Graph file (*.dtree.json) to inspect.")],
) -> None:
    """List the nodes of a graph file with their outgoing edges."""
    payload = _load(file)
    nodes = load_nodes(payload)
    roots = set(root_ids(nodes))

    table = Table(title=f"{payload.get('label') or file.name}")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Type", style="dim")
    table.add_column("Children")
    for nid, node in nodes.items():
        marker = " [green](root)[/green]" if nid in roots else ""
        table.add_row(f"{nid}{marker}", node.title, node.type, ", ".join(node.children) or "-")

    console.print()
    console.print(table)
    console.print(
        f"{len(nodes)} nodes, {len(edge_pairs(nodes))} edges, "
        f"{len(roots)} roots" + (", [yellow]contains cycles[/yellow]" if has_cycle(nodes) else "")
    )


@app.command()
def merge(
    base: Annotated[Path, typer.Argument(help="Graph file to merge into.")],
    incoming: Annotated[Path, typer.Argument(help="Graph file to merge in.")],
    out: Annotated[Path, typer.Option("--out", "-o", help="Output file or directory.")],
    offset_x: Annotated[
        float | None, typer.Option("--offset-x", help="Horizontal shift of merged nodes.")
    ] = None,
    offset_y: Annotated[
        float | None, typer.Option("--offset-y", help="Vertical shift of merged nodes.")
    ] = None,
) -> None:
    """Merge one graph file into another and write the combined graph.

    Merged nodes get fresh ids, so the result never has id collisions.
    """
    config = load_config()
    bench = Workbench(
        WorkspaceRegistry(config, ids=IdGenerator(config.id_seed), seed_demo=False)
    )
    default_x, default_y = config.layout.merge_offset
    shift = (
        default_x if offset_x is None else offset_x,
        default_y if offset_y is None else offset_y,
    )

    ws = _unwrap(bench.import_workspace(_read(base)))
    merged = _unwrap(bench.import_nodes(_read(incoming), shift))
    payload = _unwrap(bench.export_nodes(label=ws.title))
    target = save_json(payload, _target(out, ws.title))
    log.info("cli_merge", base=str(base), incoming=str(incoming), out=str(target))
    console.print(
        f"[green]✓[/green] Merged {len(merged)} nodes into {ws.title!r} → {target} "
        f"({payload['nodeCount']} nodes, {payload['edgeCount']} edges)"
    )


@app.command()
def extract(
    file: Annotated[Path, typer.Argument(help="Graph file to slice.")],
    roots: Annotated[
        list[str], typer.Option("--root", "-r", help="Subtree root id (repeatable).")
    ],
    out: Annotated[Path, typer.Option("--out", "-o", help="Output file or directory.")],
    label: Annotated[str | None, typer.Option("--label", help="Label for the new file.")] = None,
) -> None:
    """Write the subtree reachable from one or more roots to a new file."""
    payload = _load(file)
    nodes = load_nodes(payload)
    missing = [r for r in roots if r not in nodes]
    if missing:
        raise _fail(f"Node(s) not found: {', '.join(missing)}")

    label = label or str(payload.get("label") or "subtree")
    sliced = build_export(nodes, collect_subtree(nodes, roots), label)
    target = save_json(sliced, _target(out, label))
    console.print(
        f"[green]✓[/green] Extracted {sliced['nodeCount']} nodes, "
        f"{sliced['edgeCount']} edges → {target}"
    )
