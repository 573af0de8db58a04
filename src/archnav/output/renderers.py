"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console backed by StringIO; the caller
extracts the text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from archnav.output.console import create_console, get_output, style_for_type

if TYPE_CHECKING:
    from rich.console import Console

    from archnav.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()
    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)
    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Minimal output for ``--quiet``: one id per line, or a status line."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    for key in ("items", "nodes", "clusters"):
        rows = result.data.get(key)
        if rows and isinstance(rows, list):
            return "\n".join(i for i in (_extract_id(r) for r in rows) if i)
    if "generation_version" in result.data:
        return str(result.data["generation_version"])
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("id", "domain_id", "generation_version"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="nav.ok"), Text(f"  {result.op}", style="nav.op"))


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="nav.key")
    if isinstance(value, (dict, list)):
        v = Text(_json.dumps(value, separators=(",", ":")))
    elif key == "id" or key.endswith("_id"):
        v = Text(str(value), style="nav.id")
    elif key == "name":
        v = Text(str(value), style="nav.name")
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)
    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _table(*columns: str) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    for col in columns:
        table.add_column(col)
    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="nav.error"), Text(f"  {result.op}{code}", style="nav.op"), ": ", msg
    )
    if err is None or not err.detail:
        return
    # Field-level reasons are always shown; the rest only when verbose.
    for problem in err.detail.get("errors", []):
        console.print(f"  {problem.get('field')}: {problem.get('reason')}")
    if verbose:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            if k != "errors":
                console.print(f"    {k}: {v}")


# ── Ingestion and rollup ──────────────────────────────────────────────


def _render_fields(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Scalar fields of a mutation result."""
    _status_line(console, result)
    for key, value in result.data.items():
        if not isinstance(value, list):
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


def _render_rebuild(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "workspace_id", d.get("workspace_id"))
    _field(console, "generation_version", d.get("generation_version"))
    _field(console, "previous_version", d.get("previous_version"))
    _field(console, "relation_count", d.get("relation_count"))
    for level, count in (d.get("edge_counts") or {}).items():
        console.print(f"    {level}: {count}")
    if verbose:
        _render_meta(console, result)


def _render_generations(
    result: ServiceResult, console: Console, *, verbose: bool = False
) -> None:
    table = _table("Version", "Status", "Edges", "Created", "Activated")
    for item in result.data.get("items", []):
        status = str(item.get("status", ""))
        table.add_row(
            str(item.get("generation_version")),
            Text(status, style="nav.ok" if status == "ACTIVE" else ""),
            str(item.get("edge_count", 0)),
            str(item.get("created", "")),
            str(item.get("activated") or ""),
        )
    console.print(table)
    console.print(f"\nactive: {result.data.get('active_version')}")


# ── Inference ─────────────────────────────────────────────────────────


def _candidate_table(items: list[dict[str, Any]]) -> Table:
    table = _table("ID", "Object", "Primary", "Purity", "Secondary", "Status")
    for item in items:
        table.add_row(
            Text(str(item.get("id", "")), style="nav.id"),
            str(item.get("object_id", "")),
            str(item.get("primary_domain_id", "")),
            Text(f"{float(item.get('purity', 0.0)):.3f}", style="nav.score"),
            ", ".join(item.get("secondary_domain_ids", [])),
            str(item.get("status", "")),
        )
    return table


def _render_seeded(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    for key in ("run_id", "profile_id", "seed_count", "scanned_count", "candidate_count"):
        _field(console, key, d.get(key))
    if d.get("replaced_count"):
        _field(console, "replaced_count", d["replaced_count"])
    if d.get("items"):
        console.print()
        console.print(_candidate_table(d["items"]))
    if verbose:
        _render_meta(console, result)


def _render_candidates(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    console.print(_candidate_table(items))
    console.print(f"\n{result.data.get('count', len(items))} candidates")


def _render_discover(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "run_id", d.get("run_id"))
    _field(console, "generation_version", d.get("generation_version"))
    stats = d.get("graph_stats") or {}
    nodes, edges = stats.get("node_count", 0), stats.get("edge_count", 0)
    _field(console, "graph", f"{nodes} nodes, {edges} edges")
    console.print(f"[bold]{d.get('cluster_count', 0)} clusters[/bold]")
    for cluster in d.get("clusters", []):
        console.print(
            f"\n[bold]{cluster['cluster_id']}[/bold] [nav.id]{cluster['domain_id']}[/nav.id] "
            f"({cluster['size']} members)"
        )
        for member in cluster.get("members", []):
            console.print(f"  {member}")
    if verbose:
        _render_meta(console, result)


def _render_profiles(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = _table("ID", "Name", "Default", "Overrides")
    for item in result.data.get("items", []):
        table.add_row(
            Text(str(item["id"]), style="nav.id"),
            str(item["name"]),
            "yes" if item.get("is_default") else "",
            _json.dumps(item.get("overrides", {}), separators=(",", ":")),
        )
    console.print(table)


# ── Queries ───────────────────────────────────────────────────────────


def _render_query(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    console.print(
        f"[nav.op]{d.get('query_type')}[/nav.op] at [bold]{d.get('level')}[/bold]"
        + (f"  (generation {result.meta['generation_version']})" if _pinned(result) else "")
    )

    paths = d.get("paths")
    if paths is not None:
        if not paths:
            console.print("No path found.")
        for rank, path in enumerate(paths, start=1):
            chain = " → ".join(f"[nav.id]{n}[/nav.id]" for n in path["nodes"])
            console.print(
                f"  {rank}. {chain}  [nav.score]score={path['score']:.4f}[/nav.score] "
                f"hops={path['hops']}"
            )
    else:
        nodes = d.get("nodes", [])
        table = _table("ID", "Name", "Type", "Depth")
        for node in nodes:
            otype = node.get("object_type") or ""
            extra = node.get("depth")
            if extra is None and "affinity" in node:
                extra = f"{node['affinity']:.2f}"
            table.add_row(
                Text(str(node["id"]), style="nav.id"),
                str(node.get("name") or ""),
                Text(otype, style=style_for_type(otype)),
                "" if extra is None else str(extra),
            )
        console.print(table)
        console.print(f"\n{len(nodes)} nodes, {len(d.get('edges', []))} edges")

    if d.get("truncated"):
        console.print(
            Text(f"truncated: {d.get('truncation_reason')}", style="nav.warning")
        )
    if verbose:
        for key, value in (d.get("summary") or {}).items():
            _field(console, key, value)
        _render_meta(console, result)


def _pinned(result: ServiceResult) -> bool:
    return bool(result.meta and result.meta.get("generation_version") is not None)


# ── Upgrade ───────────────────────────────────────────────────────────


def _render_upgrade(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    for key in ("applied_count", "pending_count", "current", "head", "backup_path", "message"):
        if key in d:
            _field(console, key, d[key])
    if verbose and d.get("pending"):
        console.print()
        for p in d["pending"]:
            console.print(f"  {p['revision']}: {p['description']}")


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    # Store
    "init": _render_fields,
    "load": _render_fields,
    "upgrade": _render_upgrade,
    # Rollup
    "rebuild": _render_rebuild,
    "generations": _render_generations,
    "prune": _render_fields,
    # Inference
    "infer_seeded": _render_seeded,
    "candidates": _render_candidates,
    "review_candidate": _render_fields,
    "discover": _render_discover,
    "set_profile": _render_fields,
    "list_profiles": _render_profiles,
    # Query
    "query": _render_query,
}
