"""Command group: bounded graph queries."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from archnav.commands._base import ArchnavGroup, workspace_option
from archnav.domain.types import Direction, ObjectType, RelationType, ScopeLevel, VisibilityFilter

if TYPE_CHECKING:
    from collections.abc import Callable

    from archnav.commands._context import AppContext

_QUERY_EXAMPLES = """\
  archnav query impact svc_orders -w acme --max-hops 2
  archnav query path svc_web svc_billing -w acme --top-k 3
  archnav query usage tbl_orders -w acme --level SERVICE_TO_DATABASE
  archnav query domain dom_payments -w acme
  archnav query run requests.json"""


def _choice(enum: type[Any]) -> click.Choice:
    return click.Choice([m.value for m in enum], case_sensitive=False)


def scope_options[F: Callable[..., Any]](func: F) -> F:
    """Shared scope and budget options for traversal commands."""
    options = [
        click.option(
            "--level",
            type=_choice(ScopeLevel),
            default=None,
            help="Graph to traverse (default: RELATION).",
        ),
        click.option(
            "--relation-type",
            "relation_types",
            type=_choice(RelationType),
            multiple=True,
            help="Only follow these relation types (repeatable).",
        ),
        click.option(
            "--object-type",
            "object_types",
            type=_choice(ObjectType),
            multiple=True,
            help="Only visit these object types (repeatable).",
        ),
        click.option("--include-hidden", is_flag=True, help="Traverse HIDDEN objects too."),
        click.option("--max-hops", type=int, default=None),
        click.option("--max-visited", type=int, default=None),
        click.option("--timeout-ms", type=int, default=None),
        click.option("--hub-degree", "hub_degree_threshold", type=int, default=None),
        click.option(
            "--generation", "generation_version", type=int, default=None, help="Default: active."
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _options(
    *,
    level: str | None,
    relation_types: tuple[str, ...],
    object_types: tuple[str, ...],
    include_hidden: bool,
    **rest: Any,
) -> dict[str, Any]:
    """Translate CLI option values into QueryService keyword options."""
    options: dict[str, Any] = dict(rest)
    if level:
        options["level"] = level.upper()
    if relation_types:
        options["relation_types"] = [t.lower() for t in relation_types]
    if object_types:
        options["object_types"] = [t.lower() for t in object_types]
    if include_hidden:
        options["visibility"] = VisibilityFilter.INCLUDE_HIDDEN
    return options


@click.group(cls=ArchnavGroup, examples=_QUERY_EXAMPLES)
@click.pass_obj
def query(app: AppContext) -> None:
    """Run bounded graph queries."""


@query.command(
    examples="""\
  archnav query impact svc_orders -w acme
  archnav query impact svc_orders -w acme --direction BOTH --max-hops 3
  archnav --json query impact svc_orders -w acme --level SERVICE_TO_SERVICE"""
)
@click.argument("object_id")
@workspace_option
@click.option("--direction", type=_choice(Direction), default=None, help="Default: DOWNSTREAM.")
@scope_options
@click.pass_obj
def impact(
    app: AppContext, object_id: str, workspace_id: str, direction: str | None, **kwargs: Any
) -> None:
    """What OBJECT_ID can affect (or is affected by, with --direction)."""
    from archnav.services.query import QueryService

    options = _options(**kwargs)
    if direction:
        options["direction"] = direction.upper()
    app.emit(QueryService(app.inventory).impact(workspace_id, object_id, **options))


@query.command(
    examples="""\
  archnav query path svc_web svc_billing -w acme
  archnav query path svc_web tbl_invoices -w acme --top-k 5 --max-hops 6"""
)
@click.argument("from_id")
@click.argument("to_id")
@workspace_option
@click.option("--direction", type=_choice(Direction), default=None, help="Default: DOWNSTREAM.")
@click.option("--top-k", type=int, default=None, help="Number of paths to return.")
@scope_options
@click.pass_obj
def path(
    app: AppContext,
    from_id: str,
    to_id: str,
    workspace_id: str,
    direction: str | None,
    top_k: int | None,
    **kwargs: Any,
) -> None:
    """Best-scoring paths from FROM_ID to TO_ID."""
    from archnav.services.query import QueryService

    options = _options(**kwargs)
    options["top_k"] = top_k
    if direction:
        options["direction"] = direction.upper()
    app.emit(QueryService(app.inventory).path(workspace_id, from_id, to_id, **options))


@query.command(
    examples="""\
  archnav query usage tbl_orders -w acme
  archnav query usage db_main -w acme --level SERVICE_TO_DATABASE"""
)
@click.argument("object_id")
@workspace_option
@scope_options
@click.pass_obj
def usage(app: AppContext, object_id: str, workspace_id: str, **kwargs: Any) -> None:
    """Who uses OBJECT_ID (upstream traversal)."""
    from archnav.services.query import QueryService

    app.emit(QueryService(app.inventory).usage(workspace_id, object_id, **_options(**kwargs)))


@query.command(
    examples="""\
  archnav query domain dom_payments -w acme
  archnav query domain dom_payments -w acme --generation 4"""
)
@click.argument("domain_id")
@workspace_option
@click.option(
    "--generation", "generation_version", type=int, default=None, help="Default: active."
)
@click.option("--include-hidden", is_flag=True, help="Include HIDDEN members.")
@click.pass_obj
def domain(
    app: AppContext,
    domain_id: str,
    workspace_id: str,
    generation_version: int | None,
    include_hidden: bool,
) -> None:
    """Members and rollup edges of DOMAIN_ID."""
    from archnav.services.query import QueryService

    options: dict[str, Any] = {"generation_version": generation_version}
    if include_hidden:
        options["visibility"] = VisibilityFilter.INCLUDE_HIDDEN
    app.emit(QueryService(app.inventory).domain_summary(workspace_id, domain_id, **options))


@query.command(
    examples="""\
  archnav query run request.json
  cat requests.json | archnav --json query run -"""
)
@click.argument("request_file", type=click.File("r", encoding="utf-8"))
@click.pass_obj
def run(app: AppContext, request_file: Any) -> None:
    """Run raw query request(s) from a JSON file ('-' for stdin).

    The file holds one request object or a list of them; a list runs in
    parallel and results are printed in input order.
    """
    from archnav.services.query import QueryService

    try:
        payload = json.load(request_file)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="REQUEST_FILE") from exc

    service = QueryService(app.inventory)
    if isinstance(payload, list):
        app.emit_many(service.execute_many(payload))
    elif isinstance(payload, dict):
        app.emit(service.execute(payload))
    else:
        raise click.BadParameter("expected a request object or a list", param_hint="REQUEST_FILE")
