"""Admin CLI for approval requests.

This module provides human-facing admin tooling for operators to:
- Submit approval requests on behalf of a user
- List requests, optionally those relevant to one user
- Inspect a single request with its recipient decisions
- Cast a decision on behalf of a recipient

Complements the HTTP API, which serves end users.
"""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.table import Table

from capstone_approvals.api.serializers import to_view
from capstone_approvals.config import Settings, load_settings_from_file
from capstone_approvals.domain.exceptions import (
    ApprovalValidationError,
    DomainError,
)
from capstone_approvals.domain.services.approval import ApprovalService
from capstone_approvals.infra.db.session import get_session_factory

console = Console()

T = TypeVar("T")


def load_settings(config_path: str | None) -> Settings:
    """Load settings from config file or environment.

    Args:
        config_path: Optional path to config file

    Returns:
        Settings instance
    """
    if config_path:
        return load_settings_from_file(Path(config_path))
    return Settings()


async def _with_service(
    settings: Settings, work: Callable[[ApprovalService], Awaitable[T]]
) -> T:
    """Run ``work`` with an ApprovalService bound to a fresh session."""
    session_factory = get_session_factory(settings)
    await session_factory.init()
    try:
        if settings.environment == "dev":
            await session_factory.create_all()
        async with session_factory.session() as session:
            return await work(ApprovalService(session, settings))
    finally:
        await session_factory.close()


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def _report_domain_error(error: DomainError) -> None:
    if isinstance(error, ApprovalValidationError) and error.errors:
        for field, messages in error.errors.items():
            for message in messages:
                console.print(f"[red]  {field}: {message}[/red]")
    _fail(error.message)


def _print_request(view: dict[str, Any]) -> None:
    console.print(f"\n[bold]Approval Request #{view['id']}[/bold]")
    console.print(f"  Title: {view['title']}")
    if view.get("description"):
        console.print(f"  Description: {view['description']}")
    console.print(f"  Status: {view['status']}")
    console.print(f"  Requested by: User #{view['requested_by']}")
    console.print(f"  Action: {view['action_key']}")
    if view.get("resolved_at"):
        console.print(f"  Resolved: {view['resolved_decision']} at {view['resolved_at']}")
    if view.get("pending_decision") is not None:
        console.print(f"  Pending decision: {'yes' if view['pending_decision'] else 'no'}")

    table = Table(title="Recipients")
    table.add_column("User", style="cyan")
    table.add_column("Decision", style="yellow")
    table.add_column("Decided At", style="blue")
    table.add_column("Comment", style="white")

    for recipient in view["recipients"]:
        table.add_row(
            f"User #{recipient['user_id']}",
            recipient["decision"] or "-",
            recipient["decision_at"] or "-",
            recipient["comment"] or "",
        )

    console.print(table)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=str),
    help="Path to configuration file (YAML or TOML)",
)
@click.pass_context
def admin(ctx: click.Context, config: str | None) -> None:
    """Capstone Approvals Admin CLI - Approval request management."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@admin.group()
def request() -> None:
    """Manage approval requests."""
    pass


@request.command("create")
@click.argument("title")
@click.argument("requester", type=int)
@click.option("--action-key", default="noop", show_default=True, help="Registered action key")
@click.option("--description", help="Long description of the request")
@click.option(
    "--recipient",
    "recipients",
    multiple=True,
    type=int,
    help="Recipient user id (repeatable; defaults to the requester)",
)
@click.option("--payload", help="JSON object handed to the action handler")
@click.pass_context
def request_create(
    ctx: click.Context,
    title: str,
    requester: int,
    action_key: str,
    description: str | None,
    recipients: tuple[int, ...],
    payload: str | None,
) -> None:
    """Submit an approval request on behalf of REQUESTER."""
    settings = load_settings(ctx.obj["config"])

    action_payload: dict[str, Any] | None = None
    if payload:
        try:
            action_payload = json.loads(payload)
        except json.JSONDecodeError as e:
            _fail(f"Invalid JSON for --payload: {e}")
        if not isinstance(action_payload, dict):
            _fail("--payload must be a JSON object")

    recipient_ids = list(recipients) or [requester]

    async def _create(service: ApprovalService) -> dict[str, Any]:
        created = await service.submit(
            title=title,
            description=description,
            action_key=action_key,
            action_payload=action_payload,
            requested_by=requester,
            recipient_ids=recipient_ids,
        )
        return to_view(created).model_dump(mode="json")

    try:
        view = asyncio.run(_with_service(settings, _create))
    except DomainError as e:
        _report_domain_error(e)
        return

    labels = ", ".join(f"User #{recipient['user_id']}" for recipient in view["recipients"])
    console.print(f"[green]✓ Approval request #{view['id']} created[/green]")
    console.print(f"  Recipients: {labels}")


@request.command("list")
@click.option("--relevant-to", type=int, help="Only requests created by or addressed to this user")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="Output format",
)
@click.pass_context
def request_list(ctx: click.Context, relevant_to: int | None, output_format: str) -> None:
    """List approval requests, newest first."""
    settings = load_settings(ctx.obj["config"])

    async def _list(service: ApprovalService) -> list[dict[str, Any]]:
        if relevant_to is None:
            requests = await service.list_requests()
        else:
            requests = await service.list_relevant_to(relevant_to)
        return [to_view(item, relevant_to).model_dump(mode="json") for item in requests]

    views = asyncio.run(_with_service(settings, _list))

    if output_format == "json":
        click.echo(json.dumps(views, indent=2))
        return

    if not views:
        console.print("[yellow]No approval requests found[/yellow]")
        return

    table = Table(title="Approval Requests")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Status", style="yellow")
    table.add_column("Requested By", style="magenta")
    table.add_column("Decided", style="green")
    if relevant_to is not None:
        table.add_column("Pending", style="blue")

    for view in views:
        decided = sum(1 for r in view["recipients"] if r["decision"] is not None)
        row = [
            str(view["id"]),
            view["title"],
            view["status"],
            f"User #{view['requested_by']}",
            f"{decided}/{len(view['recipients'])}",
        ]
        if relevant_to is not None:
            pending = view["pending_decision"]
            row.append("-" if pending is None else ("yes" if pending else "no"))
        table.add_row(*row)

    console.print(table)


@request.command("show")
@click.argument("request_id", type=int)
@click.option("--viewer", type=int, help="Compute pending_decision for this user")
@click.pass_context
def request_show(ctx: click.Context, request_id: int, viewer: int | None) -> None:
    """Show one approval request with its recipient decisions."""
    settings = load_settings(ctx.obj["config"])

    async def _show(service: ApprovalService) -> dict[str, Any]:
        found = await service.get_request(request_id)
        return to_view(found, viewer).model_dump(mode="json")

    try:
        view = asyncio.run(_with_service(settings, _show))
    except DomainError as e:
        _report_domain_error(e)
        return

    _print_request(view)


@request.command("vote")
@click.argument("request_id", type=int)
@click.argument("voter", type=int)
@click.argument(
    "decision",
    type=click.Choice(["approved", "rejected"], case_sensitive=False),
)
@click.option("--comment", help="Note stored with the decision")
@click.pass_context
def request_vote(
    ctx: click.Context,
    request_id: int,
    voter: int,
    decision: str,
    comment: str | None,
) -> None:
    """Cast VOTER's DECISION on an approval request."""
    settings = load_settings(ctx.obj["config"])

    async def _vote(service: ApprovalService) -> dict[str, Any]:
        updated = await service.vote(request_id, voter, decision.lower(), comment)
        return to_view(updated, voter).model_dump(mode="json")

    try:
        view = asyncio.run(_with_service(settings, _vote))
    except DomainError as e:
        _report_domain_error(e)
        return

    console.print(f"[green]✓ Decision recorded: {decision.lower()}[/green]")
    if view["status"] != "pending":
        console.print(f"[bold]Request resolved: {view['status']}[/bold]")
    _print_request(view)


def main() -> None:
    """Entry point for the admin CLI."""
    admin(obj={})


if __name__ == "__main__":
    main()
