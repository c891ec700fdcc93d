"""tenantctl CLI - Command line interface."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from datetime import UTC, datetime
from typing import Any

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tenantctl.certificates.manager import CertificateManager
from tenantctl.core.config import Settings, load_settings
from tenantctl.core.exceptions import NoDomainSetError, TenantctlError
from tenantctl.domains.batch import BatchOrchestrator
from tenantctl.domains.reachability import ReachabilityChecker
from tenantctl.domains.resolver import DomainResolver
from tenantctl.domains.verification import (
    DomainVerificationEngine,
    Outcome,
    VerificationResult,
    dns_instructions,
)
from tenantctl.routing.base import RouteResult, RouteStatus, build_provisioner
from tenantctl.tenants.models import SSL_FIELDS, DomainState, Tenant
from tenantctl.tenants.service import TenantService
from tenantctl.tenants.storage import TenantStore

console = Console()

EXIT_CODES = {Outcome.ACTIVE: 0, Outcome.PENDING: 2, Outcome.FAILED: 1}

STATE_STYLES = {
    DomainState.ACTIVE: ("green", "Active"),
    DomainState.PENDING_SSL: ("yellow", "Pending SSL"),
    DomainState.DNS_PROPAGATING: ("yellow", "DNS propagating"),
    DomainState.DNS_WRONG_IP: ("red", "DNS points elsewhere"),
    DomainState.DNS_NOT_CONFIGURED: ("red", "DNS not configured"),
    DomainState.NO_DOMAIN: ("red", "No domain"),
    DomainState.FAILURE: ("red", "Failed"),
}

ROUTE_STYLES = {
    RouteStatus.OK: ("green", "OK"),
    RouteStatus.CONFLICT: ("yellow", "Conflict"),
    RouteStatus.HOST_NOT_CONFIGURED: ("yellow", "Host not configured"),
    RouteStatus.FAILED: ("red", "Failed"),
    RouteStatus.NO_DOMAIN: ("red", "No domain"),
}


def _configure_logging(level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _run(coro: Coroutine[Any, Any, int]) -> None:
    """Run an async command body and exit with its code."""
    try:
        code = asyncio.run(coro)
    except TenantctlError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    if code:
        sys.exit(code)


def _services(settings: Settings) -> tuple[TenantStore, BatchOrchestrator, CertificateManager]:
    """Wire the components from the process settings."""
    store = TenantStore(settings.storage_path)
    certificates = CertificateManager(settings.certificate_config())
    engine = DomainVerificationEngine(
        settings.verification_config(),
        resolver=DomainResolver(settings.resolver_config()),
        reachability=ReachabilityChecker(timeout=settings.http_timeout),
        certificates=certificates,
    )
    orchestrator = BatchOrchestrator(engine, store, build_provisioner(settings))
    return store, orchestrator, certificates


def _format_dt(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "N/A"


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to YAML or TOML config file",
)
@click.option("--storage", default=None, help="Path to tenant storage file")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    help="Log level (default: warning, use --verbose for debug)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(
    ctx: click.Context,
    config_file: str | None,
    storage: str | None,
    log_level: str,
    verbose: bool,
):
    """Provision tenant domains and manage their certificates.

    Settings come from TENANTCTL_* environment variables, a .env file, or
    --config. Logs go to stderr.
    """
    _configure_logging("debug" if verbose else log_level)
    try:
        ctx.obj = load_settings(config_file, storage_path=storage)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


@main.command()
def version():
    """Show version information."""
    from tenantctl import __version__

    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


@main.group()
def config():
    """View and validate configuration settings.

    All settings can be configured via environment variables with the
    TENANTCTL_ prefix.

    Examples:

        tenantctl config show            # Show all config settings

        tenantctl config validate        # Check settings for the hosting mode
    """
    pass


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_obj
def config_show(settings: Settings, json_output: bool):
    """Show current configuration settings."""
    display = settings.to_display_dict()

    if json_output:
        click.echo(json.dumps(display, indent=2))
        return

    console.print("[bold]Current Configuration[/bold]\n")
    for section_name, values in display.items():
        table = Table(title=section_name.replace("_", " ").title())
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_column("Env Variable", style="dim")

        for key, value in values.items():
            value_str = str(value) if value is not None else "[dim]None[/dim]"
            table.add_row(key, value_str, f"TENANTCTL_{key.upper()}")

        console.print(table)
        console.print()


@config.command("validate")
@click.pass_obj
def config_validate(settings: Settings):
    """Validate configuration for the selected hosting mode."""
    errors, warnings = settings.validate_for_mode()

    if errors:
        console.print("[red bold]Configuration Errors:[/red bold]")
        for error in errors:
            console.print(f"  [red]x[/red] {error}")
        console.print()

    if warnings:
        console.print("[yellow bold]Configuration Warnings:[/yellow bold]")
        for warning in warnings:
            console.print(f"  [yellow]![/yellow] {warning}")
        console.print()

    if not errors and not warnings:
        console.print("[green]OK - Configuration is valid[/green]")
    elif not errors:
        console.print("[green]OK - Configuration is valid (with warnings)[/green]")
    else:
        console.print("[red]ERROR - Configuration has errors[/red]")
        sys.exit(1)


@main.group()
def tenant():
    """Create tenants and assign their domains.

    Examples:

        tenantctl tenant add "Acme Dental" --domain acmedental.com

        tenantctl tenant set-domain 3 acmedental.com --alias acme-dental.com

        tenantctl tenant rotate-key 3

        tenantctl tenant suspend 3

        tenantctl tenant list
    """
    pass


@tenant.command("add")
@click.argument("name")
@click.option("--domain", "-d", default=None, help="Custom domain for the tenant")
@click.option("--alias", "-a", "aliases", multiple=True, help="Additional domain (repeatable)")
@click.option("--server-ip", default=None, help="Override the expected server IP for this tenant")
@click.pass_obj
def tenant_add(settings: Settings, name: str, domain: str | None, aliases: tuple[str, ...], server_ip: str | None):
    """Create a tenant and generate its API key."""
    _run(_tenant_add_async(settings, name, domain, aliases, server_ip))


async def _tenant_add_async(
    settings: Settings,
    name: str,
    domain: str | None,
    aliases: tuple[str, ...],
    server_ip: str | None,
) -> int:
    """Async implementation of tenant add command."""
    service = TenantService(TenantStore(settings.storage_path))
    try:
        created = await service.create_tenant(name, domain=domain, aliases=aliases, server_ip=server_ip)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    content = (
        f"[green]Tenant created[/green]\n\n"
        f"[bold]ID:[/bold] {created.id}\n"
        f"[bold]Name:[/bold] {created.name}\n"
        f"[bold]Slug:[/bold] {created.slug}\n"
        f"[bold]API key:[/bold] {created.api_key}"
    )
    if created.has_domain:
        content += f"\n[bold]Domain:[/bold] {created.domain}"
        expected = created.server_ip or settings.server_ip
        if expected:
            steps = "\n".join(f"{i}. {step}" for i, step in enumerate(dns_instructions(created.domain, expected), 1))
            content += f"\n\n[yellow]DNS setup for the tenant:[/yellow]\n{steps}"

    console.print(Panel(content, title="Tenant", border_style="green"))
    return 0


@tenant.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_obj
def tenant_list(settings: Settings, json_output: bool):
    """List all tenants."""
    _run(_tenant_list_async(settings, json_output))


async def _tenant_list_async(settings: Settings, json_output: bool) -> int:
    """Async implementation of tenant list command."""
    tenants = sorted(await TenantStore(settings.storage_path).list_all(), key=lambda t: t.id)

    if json_output:
        click.echo(json.dumps([t.to_dict() for t in tenants], indent=2, default=str))
        return 0

    if not tenants:
        console.print("[dim]No tenants[/dim]")
        return 0

    table = Table(title="Tenants")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Domain")
    table.add_column("Deployment")
    table.add_column("DNS", justify="center")
    table.add_column("SSL")

    for t in tenants:
        dns = "[green]Yes[/green]" if t.dns_verified else "[yellow]No[/yellow]"
        table.add_row(
            str(t.id),
            t.name,
            t.domain or "[dim]none[/dim]",
            t.deployment_status.value,
            dns,
            t.ssl_status.value,
        )

    console.print(table)
    return 0


@tenant.command("set-domain")
@click.argument("tenant_id", type=int)
@click.argument("domain_name")
@click.option("--alias", "-a", "aliases", multiple=True, help="Additional domain (repeatable)")
@click.pass_obj
def tenant_set_domain(settings: Settings, tenant_id: int, domain_name: str, aliases: tuple[str, ...]):
    """Assign a domain to a tenant (resets its deployment state if it changed)."""
    _run(_tenant_set_domain_async(settings, tenant_id, domain_name, aliases))


async def _tenant_set_domain_async(
    settings: Settings, tenant_id: int, domain_name: str, aliases: tuple[str, ...]
) -> int:
    """Async implementation of tenant set-domain command."""
    store = TenantStore(settings.storage_path)
    record = await store.require(tenant_id)
    try:
        await TenantService(store).assign_domain(record, domain_name, aliases)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    console.print(f"[green]Domain set:[/green] {record.name} -> {record.domain}")
    if record.additional_domains:
        console.print(f"[dim]Aliases: {', '.join(record.additional_domains)}[/dim]")
    console.print(f"Next: [cyan]tenantctl domain provision-route {record.id}[/cyan]")
    return 0


@tenant.command("rotate-key")
@click.argument("tenant_id", type=int)
@click.pass_obj
def tenant_rotate_key(settings: Settings, tenant_id: int):
    """Replace a tenant's API key. The old key stops working immediately."""
    _run(_tenant_rotate_key_async(settings, tenant_id))


async def _tenant_rotate_key_async(settings: Settings, tenant_id: int) -> int:
    """Async implementation of tenant rotate-key command."""
    store = TenantStore(settings.storage_path)
    record = await store.require(tenant_id)
    api_key = await TenantService(store).regenerate_api_key(record)

    console.print(f"[green]API key rotated:[/green] {record.name}")
    console.print(f"[bold]API key:[/bold] {api_key}")
    return 0


@tenant.command("suspend")
@click.argument("tenant_id", type=int)
@click.pass_obj
def tenant_suspend(settings: Settings, tenant_id: int):
    """Hold a tenant. Verification and routing refuse it until it is resumed."""
    _run(_tenant_lifecycle_async(settings, tenant_id, resume=False))


@tenant.command("resume")
@click.argument("tenant_id", type=int)
@click.pass_obj
def tenant_resume(settings: Settings, tenant_id: int):
    """Release a suspended, failed or inactive tenant."""
    _run(_tenant_lifecycle_async(settings, tenant_id, resume=True))


async def _tenant_lifecycle_async(settings: Settings, tenant_id: int, resume: bool) -> int:
    store = TenantStore(settings.storage_path)
    record = await store.require(tenant_id)
    service = TenantService(store)
    if resume:
        await service.resume(record)
        console.print(f"[green]Tenant resumed:[/green] {record.name}")
        if record.has_domain:
            console.print(f"Next: [cyan]tenantctl domain verify {record.id}[/cyan]")
    else:
        await service.suspend(record)
        console.print(f"[yellow]Tenant suspended:[/yellow] {record.name}")
    return 0


@main.group()
def domain():
    """Verify and route tenant domains.

    Examples:

        tenantctl domain verify 3

        tenantctl domain verify --pending --auto-ssl

        tenantctl domain provision-route 3

        tenantctl domain provision-route --all

        tenantctl domain status 3
    """
    pass


def _render_verification(t: Tenant, result: VerificationResult) -> None:
    color, label = STATE_STYLES[result.state]
    content = (
        f"[bold]Tenant:[/bold] {t.name} (ID: {t.id})\n"
        f"[bold]Domain:[/bold] {result.domain or 'N/A'}\n"
        f"[bold]Status:[/bold] [{color}]{label}[/{color}]\n\n"
        f"{result.message}"
    )
    if result.url:
        content += f"\n\n[bold]URL:[/bold] {result.url}"
    if result.state == DomainState.DNS_WRONG_IP:
        content += (
            f"\n\n[bold]Resolved:[/bold] {result.resolved_ip}\n"
            f"[bold]Expected:[/bold] {result.expected_ip}"
        )
    if result.instructions:
        steps = "\n".join(f"{i}. {step}" for i, step in enumerate(result.instructions, 1))
        content += f"\n\n[yellow]DNS setup required:[/yellow]\n{steps}"
    if result.certificate is not None and result.certificate.error:
        content += f"\n\n[red]Certificate error:[/red] {result.certificate.error}"
    if result.hint:
        content += f"\n\n[cyan]{result.hint}[/cyan]"

    console.print(Panel(content, title="Domain Verification", border_style=color))


def _verification_line(t: Tenant, result: VerificationResult) -> None:
    color, label = STATE_STYLES[result.state]
    console.print(
        f"[{color}]{label:<20}[/{color}] {t.name} ({result.domain or 'no domain'}): {result.message}"
    )
    if result.hint:
        console.print(f"    [dim]{result.hint}[/dim]")


@domain.command("verify")
@click.argument("tenant_id", type=int, required=False)
@click.option("--all", "all_tenants", is_flag=True, help="Verify every active tenant with a domain")
@click.option("--pending", is_flag=True, help="Verify only tenants still waiting on DNS")
@click.option("--auto-ssl", is_flag=True, help="Issue a certificate when the domain is reachable without one")
@click.pass_obj
def domain_verify(settings: Settings, tenant_id: int | None, all_tenants: bool, pending: bool, auto_ssl: bool):
    """Check DNS, reachability and certificate state.

    Exit codes: 0 active, 2 pending (DNS propagating or certificate missing),
    1 failed. Batch runs exit 1 if any tenant failed.
    """
    _run(_domain_verify_async(settings, tenant_id, all_tenants, pending, auto_ssl))


async def _domain_verify_async(
    settings: Settings, tenant_id: int | None, all_tenants: bool, pending: bool, auto_ssl: bool
) -> int:
    """Async implementation of domain verify command."""
    if (tenant_id is not None) == (all_tenants or pending):
        console.print("[red]Error:[/red] Give either a TENANT_ID or --all / --pending")
        return 1

    store, orchestrator, _ = _services(settings)

    if tenant_id is not None:
        record = await store.require(tenant_id)
        if not record.has_domain:
            raise NoDomainSetError(record.id, record.name)
        console.print(f"Verifying [cyan]{record.domain}[/cyan]...", style="yellow")
        result = await orchestrator.verify_one(record, auto_ssl=auto_ssl)
        _render_verification(record, result)
        return EXIT_CODES[result.outcome]

    tenants = await (store.list_pending_dns() if pending else store.list_with_domains())
    if not tenants:
        console.print("[dim]No tenants to verify[/dim]")
        return 0

    console.print(f"Verifying {len(tenants)} tenant(s)...", style="yellow")
    summary = await orchestrator.verify_many(tenants, auto_ssl=auto_ssl, on_result=_verification_line)

    table = Table(title="Verification Summary")
    table.add_column("Result")
    table.add_column("Count", justify="right")
    table.add_row("[green]Active[/green]", str(summary.success_count))
    table.add_row("[yellow]Pending[/yellow]", str(summary.pending_count))
    table.add_row("[red]Failed[/red]", str(summary.fail_count))
    console.print()
    console.print(table)

    return 1 if summary.fail_count else 0


def _render_route(t: Tenant, result: RouteResult) -> None:
    color, label = ROUTE_STYLES[result.status]
    content = (
        f"[bold]Tenant:[/bold] {t.name} (ID: {t.id})\n"
        f"[bold]Domain:[/bold] {result.domain or 'N/A'}\n"
        f"[bold]Status:[/bold] [{color}]{label}[/{color}]\n\n"
        f"{result.message}"
    )
    if result.target:
        content += f"\n\n[bold]Target:[/bold] {result.target}"
    if result.offending_files:
        files = "\n".join(f"  - {name}" for name in result.offending_files)
        content += f"\n\n[yellow]Unrecognized content:[/yellow]\n{files}"
    if result.manual_command:
        content += f"\n\n[cyan]Run manually:[/cyan]\n  {result.manual_command}"

    console.print(Panel(content, title="Route", border_style=color))


def _route_line(t: Tenant, result: RouteResult) -> None:
    color, label = ROUTE_STYLES[result.status]
    console.print(f"[{color}]{label:<20}[/{color}] {t.name} ({result.domain or 'no domain'}): {result.message}")
    for name in result.offending_files:
        console.print(f"    [dim]- {name}[/dim]")
    if result.manual_command:
        console.print(f"    [dim]{result.manual_command}[/dim]")


@domain.command("provision-route")
@click.argument("tenant_id", type=int, required=False)
@click.option("--all", "all_tenants", is_flag=True, help="Provision every active tenant with a domain")
@click.option("--force", is_flag=True, help="Replace existing content that is not a placeholder")
@click.pass_obj
def domain_provision_route(settings: Settings, tenant_id: int | None, all_tenants: bool, force: bool):
    """Route a tenant domain to the shared frontend."""
    _run(_domain_provision_route_async(settings, tenant_id, all_tenants, force))


async def _domain_provision_route_async(
    settings: Settings, tenant_id: int | None, all_tenants: bool, force: bool
) -> int:
    """Async implementation of domain provision-route command."""
    if (tenant_id is not None) == all_tenants:
        console.print("[red]Error:[/red] Give either a TENANT_ID or --all")
        return 1

    store, orchestrator, _ = _services(settings)

    if tenant_id is not None:
        record = await store.require(tenant_id)
        if not record.has_domain:
            raise NoDomainSetError(record.id, record.name)
        result = await orchestrator.provision_one(record, force=force)
        _render_route(record, result)
        return 0 if result.ok else 1

    tenants = await store.list_with_domains()
    if not tenants:
        console.print("[dim]No tenants to provision[/dim]")
        return 0

    summary = await orchestrator.provision_many(tenants, force=force, on_result=_route_line)
    console.print()
    console.print(
        f"[bold]Done:[/bold] [green]{summary.success_count} ok[/green], "
        f"[red]{summary.fail_count} failed[/red]"
    )
    return 1 if summary.fail_count else 0


@domain.command("remove-route")
@click.argument("tenant_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_obj
def domain_remove_route(settings: Settings, tenant_id: int, yes: bool):
    """Stop routing a tenant domain to the shared frontend."""
    if not yes and not click.confirm(f"Remove the route for tenant {tenant_id}?"):
        console.print("[dim]Cancelled[/dim]")
        return

    _run(_domain_remove_route_async(settings, tenant_id))


async def _domain_remove_route_async(settings: Settings, tenant_id: int) -> int:
    """Async implementation of domain remove-route command."""
    store, orchestrator, _ = _services(settings)
    record = await store.require(tenant_id)
    if not record.has_domain:
        raise NoDomainSetError(record.id, record.name)
    result = await orchestrator.remove_one(record)
    _render_route(record, result)
    return 0 if result.ok else 1


@domain.command("status")
@click.argument("tenant_id", type=int)
@click.pass_obj
def domain_status(settings: Settings, tenant_id: int):
    """Show the stored deployment state of a tenant (no external checks)."""
    _run(_domain_status_async(settings, tenant_id))


async def _domain_status_async(settings: Settings, tenant_id: int) -> int:
    """Async implementation of domain status command."""
    record = await TenantStore(settings.storage_path).require(tenant_id)

    if record.domain_state is not None:
        color, label = STATE_STYLES[record.domain_state]
    else:
        color, label = "white", "Not verified yet"

    content = (
        f"[bold]Domain:[/bold] {record.domain or 'N/A'}\n"
        f"[bold]Aliases:[/bold] {', '.join(record.additional_domains) or 'none'}\n"
        f"[bold]State:[/bold] [{color}]{label}[/{color}]\n"
        f"[bold]Deployment:[/bold] {record.deployment_status.value}\n"
        f"[bold]Frontend URL:[/bold] {record.frontend_url or 'N/A'}\n"
        f"[bold]DNS verified:[/bold] {'Yes' if record.dns_verified else 'No'}"
        f" ({_format_dt(record.dns_verified_at)})\n"
        f"[bold]SSL:[/bold] {record.ssl_status.value} (expires {_format_dt(record.ssl_expires_at)})\n"
        f"[bold]Route:[/bold] {record.deployment_path or 'N/A'}"
    )
    if settings.hosting_mode == "vps":
        content += (
            f"\n[bold]nginx:[/bold] {record.nginx_status.value}"
            f" ({record.nginx_config_file or 'no config'})"
        )

    console.print(Panel(content, title=f"Tenant {record.name} (ID: {record.id})", border_style=color))
    return 0


@main.group()
def certificate():
    """Issue, renew and inspect TLS certificates.

    Examples:

        tenantctl certificate generate 3

        tenantctl certificate status 3

        tenantctl certificate renew-all
    """
    pass


@certificate.command("generate")
@click.argument("tenant_id", type=int)
@click.pass_obj
def certificate_generate(settings: Settings, tenant_id: int):
    """Issue a certificate for a tenant's domain and aliases."""
    _run(_certificate_generate_async(settings, tenant_id))


async def _certificate_generate_async(settings: Settings, tenant_id: int) -> int:
    """Async implementation of certificate generate command."""
    store, _, certificates = _services(settings)
    record = await store.require(tenant_id)
    if not record.has_domain:
        raise NoDomainSetError(record.id, record.name)

    console.print(f"Requesting certificate for [cyan]{record.domain}[/cyan]...", style="yellow")
    result = await certificates.generate_certificate(record)

    if result.skipped:
        console.print(f"[yellow]{result.message}[/yellow]")
        console.print(f"[dim]Would run: {result.raw_command}[/dim]")
        return 0

    if result.success:
        await store.save(record, fields=SSL_FIELDS)
        console.print(f"[green]{result.message}[/green]")
        console.print(f"[bold]Expires:[/bold] {_format_dt(result.expires_at)}")
        return 0

    console.print(f"[red]Certificate generation failed:[/red] {result.error or result.message}")
    if result.raw_command:
        console.print(f"[cyan]Run manually:[/cyan]\n  {result.raw_command}")
    return 1


@certificate.command("status")
@click.argument("tenant_id", type=int)
@click.pass_obj
def certificate_status(settings: Settings, tenant_id: int):
    """Refresh and show a tenant's certificate status."""
    _run(_certificate_status_async(settings, tenant_id))


async def _certificate_status_async(settings: Settings, tenant_id: int) -> int:
    """Async implementation of certificate status command."""
    store, _, certificates = _services(settings)
    record = await store.require(tenant_id)
    if not record.has_domain:
        raise NoDomainSetError(record.id, record.name)

    status = await certificates.check_status(record)
    await store.save(record, fields=SSL_FIELDS)

    colors = {"active": "green", "pending": "yellow", "expired": "red", "error": "red"}
    color = colors.get(status.value, "white")
    line = f"[bold]{record.domain}:[/bold] [{color}]{status.value}[/{color}]"
    if record.ssl_expires_at:
        days = (record.ssl_expires_at - datetime.now(UTC)).days
        line += f" (expires {_format_dt(record.ssl_expires_at)}, {days} days)"
    console.print(line)
    return 0


@certificate.command("renew-all")
@click.pass_obj
def certificate_renew_all(settings: Settings):
    """Renew every managed certificate in one ACME client run."""
    _run(_certificate_renew_all_async(settings))


async def _certificate_renew_all_async(settings: Settings) -> int:
    """Async implementation of certificate renew-all command."""
    certificates = CertificateManager(settings.certificate_config())
    result = await certificates.renew_all_certificates()

    if result.skipped:
        console.print(f"[yellow]{result.message}[/yellow]")
        return 0
    if result.success:
        console.print(f"[green]{result.message}[/green]")
        if result.output:
            console.print(result.output.strip(), markup=False)
        return 0

    console.print(f"[red]{result.message}:[/red] {result.error}")
    return 1


if __name__ == "__main__":
    main()
