"""Main CLI entry point using Typer."""

import asyncio
import logging
import sys
from enum import Enum
from datetime import datetime
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..aws.client import AwsClient
from ..aws.errors import AwsError
from ..bastion import get_bastion
from ..cleanup import AuditStorage, SecurityGroupCleaner
from ..models.bastion import Bastion
from ..models.cleanup_operation import OperationMode
from ..models.target import AccessTarget, TargetKind
from ..target import create_connect_target, create_init_target, list_connect_targets, list_init_targets, lookup_target
from ..utils.logging import setup_logging
from .config import Config

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="bastion-access",
    help="Bastion Access - grant and revoke temporary bastion access to private databases and caches",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None


class TargetType(str, Enum):
    DB_INSTANCE = "db-instance"
    DB_CLUSTER = "db-cluster"
    CACHE_CLUSTER = "cache-cluster"
    CACHE_NODE = "cache-node"


TARGET_TYPE_KINDS = {
    TargetType.DB_INSTANCE: TargetKind.DB_INSTANCE,
    TargetType.DB_CLUSTER: TargetKind.DB_CLUSTER,
    TargetType.CACHE_CLUSTER: TargetKind.CACHE_REPLICATION_GROUP_ENABLED,
    TargetType.CACHE_NODE: TargetKind.CACHE_NODE,
}


@app.callback()
def main(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
):
    """Bastion Access - grant and revoke temporary bastion access to private databases and caches."""
    global config

    # Load configuration
    config = Config.load()

    # Override with CLI options
    if profile:
        config.aws_profile = profile
    if region:
        config.region = region

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)


def _client() -> AwsClient:
    return AwsClient(profile_name=config.aws_profile, region_name=config.region)


async def _require_target(client: AwsClient, target_type: TargetType, identifier: str) -> AccessTarget:
    target = await lookup_target(client, TARGET_TYPE_KINDS[target_type], identifier)
    if target is None:
        console.print(f"✗ {target_type.value} '{identifier}' not found", style="bold red")
        raise typer.Exit(code=1)
    return target


async def _require_bastion(client: AwsClient, bastion_id: Optional[str], vpc_id: Optional[str]) -> Bastion:
    bastion = await get_bastion(client, bastion_id=bastion_id, vpc_id=vpc_id)
    if bastion is None:
        where = f" in {vpc_id}" if vpc_id else ""
        console.print(f"✗ No bastion found{where}", style="bold red")
        raise typer.Exit(code=1)
    return bastion


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"bastion-access version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


@app.command()
def targets(
    connect: bool = typer.Option(False, "--connect", help="List connect targets (individual cache nodes included)"),
):
    """List targets access can be granted to, or connected to."""
    try:
        client = _client()
        lister = list_connect_targets if connect else list_init_targets
        catalog = asyncio.run(lister(client))

        for warning in catalog.warnings:
            console.print(f"⚠ Could not retrieve {warning}", style="yellow")

        if not catalog.choices:
            console.print("No targets found.")
            return

        table = Table(title="Connect targets" if connect else "Init targets")
        table.add_column("Section", style="cyan")
        table.add_column("Target")
        table.add_column("Kind")
        table.add_column("Endpoint")
        table.add_column("Cluster mode")

        for choice in catalog.choices:
            target = choice.target
            table.add_row(
                choice.section,
                choice.name,
                target.kind.value,
                f"{target.host}:{target.port}",
                target.cluster_mode.value if target.cluster_mode else "-",
            )
        console.print(table)

    except AwsError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error listing targets: {e}", style="bold red")
        logger.exception("Error in targets command")
        raise typer.Exit(code=2)


@app.command()
def init(
    target_type: TargetType = typer.Argument(..., help="Target type"),
    identifier: str = typer.Argument(..., help="Target identifier"),
    bastion_id: Optional[str] = typer.Option(None, "--bastion-id", "-b", help="Bastion id (any bastion in the target VPC if omitted)"),
):
    """Grant a bastion access to a target by attaching the bastion security group."""

    async def run() -> None:
        client = _client()
        target = await _require_target(client, target_type, identifier)
        init_target = create_init_target(client, target)

        vpc_id = await init_target.get_vpc_id()
        bastion = await _require_bastion(client, bastion_id, vpc_id)

        attached = await init_target.grant_access(bastion)
        if attached:
            console.print(
                f"✓ Attached [cyan]{bastion.security_group_id}[/cyan] to [bold]{init_target.get_id()}[/bold]"
            )
        else:
            console.print(f"✓ Bastion {bastion.id} already has access to [bold]{init_target.get_id()}[/bold]")

    try:
        asyncio.run(run())
    except typer.Exit:
        raise
    except AwsError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error granting access: {e}", style="bold red")
        logger.exception("Error in init command")
        raise typer.Exit(code=2)


@app.command()
def connect(
    target_type: TargetType = typer.Argument(..., help="Target type"),
    identifier: str = typer.Argument(..., help="Target identifier"),
    bastion_id: Optional[str] = typer.Option(None, "--bastion-id", "-b", help="Bastion id"),
):
    """Resolve a target endpoint and check that the bastion can reach it."""

    async def run() -> None:
        client = _client()
        target = await _require_target(client, target_type, identifier)
        connect_target = create_connect_target(client, target)
        endpoint = await connect_target.resolve()

        console.print(f"Endpoint: [bold]{endpoint.address}:{endpoint.port}[/bold]")

        bastion = await _require_bastion(client, bastion_id, None)
        if await connect_target.has_access(bastion.security_group_id):
            console.print(f"✓ Bastion {bastion.id} has access to [bold]{connect_target.get_id()}[/bold]")
        else:
            console.print(
                f"✗ Bastion {bastion.id} has no access to {connect_target.get_id()}. "
                f"Run 'bastion-access init' first.",
                style="bold red",
            )
            raise typer.Exit(code=1)

    try:
        asyncio.run(run())
    except typer.Exit:
        raise
    except AwsError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error resolving target: {e}", style="bold red")
        logger.exception("Error in connect command")
        raise typer.Exit(code=2)


@app.command()
def revoke(
    security_group_ids: List[str] = typer.Argument(..., help="Security group ids to decommission"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be changed without changing anything"),
    no_audit: bool = typer.Option(False, "--no-audit", help="Do not write an audit log"),
):
    """Detach security groups from every database and cache, then delete them."""
    try:
        client = _client()
        audit_storage = None if (dry_run or no_audit) else AuditStorage(config.audit_dir)
        cleaner = SecurityGroupCleaner(
            client,
            audit_storage=audit_storage,
            retry_delay=config.cleanup_retry_delay,
            max_retries=config.cleanup_max_retries,
        )

        operation = asyncio.run(
            cleaner.revoke_access(security_group_ids, dry_run=dry_run, aws_profile=config.aws_profile)
        )

        if operation.records:
            table = Table(title="Planned changes" if operation.mode == OperationMode.DRY_RUN else "Changes")
            table.add_column("Action", style="cyan")
            table.add_column("Family")
            table.add_column("Resource")
            table.add_column("Status")
            for record in operation.records:
                table.add_row(
                    record.action.value,
                    record.resource_family,
                    record.resource_identifier,
                    record.status.value,
                )
            console.print(table)

        if operation.mode == OperationMode.DRY_RUN:
            console.print(f"\n{operation.references_found} resource(s) reference the security groups (dry run)")
        else:
            console.print(
                f"\n✓ Detached from {operation.detached_count} resource(s), "
                f"deleted {operation.deleted_count} security group(s)"
            )

    except AwsError as e:
        console.print(f"✗ {type(e).__name__}: {e}", style="bold red")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"✗ Error during revoke: {e}", style="bold red")
        logger.exception("Error in revoke command")
        raise typer.Exit(code=2)


def _parse_date(value: Optional[str], option: str, end_of_day: bool = False) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        console.print(f"✗ Invalid {option} format. Use YYYY-MM-DD (UTC)", style="bold red")
        raise typer.Exit(code=1)
    if end_of_day:
        parsed = parsed.replace(hour=23, minute=59, second=59, microsecond=999999)
    return parsed


@app.command()
def audit(
    operation_id: Optional[str] = typer.Argument(None, help="Show one operation and its records"),
    since: Optional[str] = typer.Option(None, "--since", help="Only operations on or after this date (YYYY-MM-DD, UTC)"),
    until: Optional[str] = typer.Option(None, "--until", help="Only operations on or before this date (YYYY-MM-DD, UTC)"),
):
    """Show the audit log of executed revoke operations."""
    since_dt = _parse_date(since, "--since")
    until_dt = _parse_date(until, "--until", end_of_day=True)

    try:
        storage = AuditStorage(config.audit_dir)

        if operation_id:
            audit_data = storage.get_operation(operation_id)
            if audit_data is None:
                console.print(f"✗ Operation '{operation_id}' not found", style="bold red")
                raise typer.Exit(code=1)

            operation = audit_data["operation"]
            console.print(f"[bold]Operation:[/bold] {operation['operation_id']}")
            console.print(f"[bold]Status:[/bold] {operation['status']}")
            console.print(f"[bold]Security groups:[/bold] {', '.join(operation['security_group_ids'])}")
            console.print(f"[bold]Profile:[/bold] {operation['aws_profile'] or 'default'}")

            table = Table(show_header=True, title="Records")
            table.add_column("Action", style="cyan")
            table.add_column("Family")
            table.add_column("Resource")
            table.add_column("Status")
            table.add_column("Error")
            for record in audit_data["records"]:
                table.add_row(
                    record["action"],
                    record["resource_family"],
                    record["resource_identifier"],
                    record["status"],
                    record["error_code"] or "",
                )
            console.print(table)
            return

        audit_logs = storage.query_operations(since=since_dt, until=until_dt)
        if not audit_logs:
            console.print("No operations found.", style="yellow")
            return

        table = Table(show_header=True, title="Revoke operations")
        table.add_column("Operation", style="cyan")
        table.add_column("Timestamp")
        table.add_column("Security groups")
        table.add_column("Status")
        table.add_column("Detached", justify="right")
        table.add_column("Deleted", justify="right")
        table.add_column("Failed", justify="right")
        for audit_data in audit_logs:
            operation = audit_data["operation"]
            table.add_row(
                operation["operation_id"],
                operation["timestamp"],
                ", ".join(operation["security_group_ids"]),
                operation["status"],
                str(operation["detached_count"]),
                str(operation["deleted_count"]),
                str(operation["failed_count"]),
            )
        console.print(table)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"✗ Error reading audit log: {e}", style="bold red")
        logger.exception("Error in audit command")
        raise typer.Exit(code=2)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
