"""vowsite CLI - Command line interface."""

from __future__ import annotations

import asyncio
import json
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vowsite import __version__
from vowsite.core.config import VowsiteConfig, clear_config, get_config
from vowsite.core.exceptions import VowsiteError
from vowsite.core.logging import configure_logging
from vowsite.domains import (
    CustomDomainConfig,
    DomainProvisioningService,
    DomainStatus,
    DomainStore,
    TokenGenerator,
    parse_domain,
)

console = Console()

STATUS_COLORS = {
    DomainStatus.PENDING: "yellow",
    DomainStatus.VERIFYING: "yellow",
    DomainStatus.SSL_PENDING: "cyan",
    DomainStatus.ACTIVE: "green",
    DomainStatus.FAILED: "red",
}


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level (default: from VOWSITE_LOG_LEVEL, else info)",
)
@click.option("--json-logs", is_flag=True, default=False, help="Render logs as JSON lines")
@click.version_option(__version__, prog_name="vowsite")
@click.pass_context
def main(ctx: click.Context, config_file: str | None, log_level: str | None, json_logs: bool):
    """vowsite - custom domains for hosted wedding sites."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["log_level"] = log_level
    ctx.obj["json_logs"] = json_logs


def _load_config(ctx: click.Context) -> VowsiteConfig:
    """Load configuration and set up logging, exiting on invalid settings."""
    obj = ctx.find_root().obj or {}
    try:
        cfg = get_config(obj.get("config_file"))
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    configure_logging(
        level=obj.get("log_level") or cfg.log_level,
        json_output=obj.get("json_logs") or cfg.log_json,
    )
    return cfg


def _build_service(cfg: VowsiteConfig, storage: str | None) -> DomainProvisioningService:
    store = DomainStore(storage or cfg.storage_path)
    try:
        return DomainProvisioningService.from_config(cfg, store=store)
    except VowsiteError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)


def _run(coro_factory):
    """Run a coroutine, printing service errors instead of tracebacks."""
    try:
        return asyncio.run(coro_factory())
    except VowsiteError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)


def _records_table(config: CustomDomainConfig) -> Table:
    table = Table(title="DNS Records")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Value")
    table.add_column("Verified", justify="center")
    table.add_column("Observed", style="dim")

    for record in config.dns_records:
        verified = "[green]Yes[/green]" if record.verified else "[yellow]No[/yellow]"
        table.add_row(record.type.value, record.name, record.value, verified, record.observed or "")
    return table


def _status_text(status: DomainStatus) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/{color}]"


@main.command()
@click.option("--host", default=None, help="Bind host (default: VOWSITE_SERVER_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Bind port (default: VOWSITE_SERVER_PORT)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None):
    """Run the custom domain admin API."""
    from vowsite.server import run_server

    cfg = _load_config(ctx)
    updates = {k: v for k, v in (("server_host", host), ("server_port", port)) if v is not None}
    if updates:
        cfg = cfg.model_copy(update=updates)

    console.print(f"Starting vowsite API on {cfg.server_host}:{cfg.server_port}...", style="yellow")
    console.print(f"Environment: {cfg.environment}", style="dim")
    console.print(f"Storage: {cfg.storage_path}", style="dim")
    console.print(f"CNAME target: {cfg.dns_cname_target}", style="dim")

    try:
        asyncio.run(run_server(cfg))
    except KeyboardInterrupt:
        console.print("\nShutting down...", style="yellow")
    except VowsiteError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)


@main.group()
def domain():
    """Manage custom domains of wedding sites.

    Examples:

        vowsite domain add wedding-123 wedding.example.com

        vowsite domain verify wedding-123

        vowsite domain status wedding-123

        vowsite domain confirm-ssl wedding-123

        vowsite domain lookup wedding.example.com

        vowsite domain remove wedding-123
    """
    pass


@domain.command("add")
@click.argument("tenant_id")
@click.argument("domain_name")
@click.option("--storage", default=None, help="Path to domain storage file")
@click.pass_context
def domain_add(ctx: click.Context, tenant_id: str, domain_name: str, storage: str | None):
    """Attach a custom domain to a wedding site.

    After attaching, you'll receive DNS records to configure.
    """
    service = _build_service(_load_config(ctx), storage)

    async def _add():
        return await service.add_domain(tenant_id, domain_name)

    config, instructions = _run(_add)
    console.print(
        Panel(
            f"[green]Domain attached![/green]\n\n"
            f"[bold]Wedding:[/bold] {config.tenant_id}\n"
            f"[bold]Domain:[/bold] {config.domain}\n"
            f"[bold]Status:[/bold] {_status_text(config.status)}\n\n"
            f"{instructions}",
            title="Custom Domain",
            border_style="green",
        )
    )


@domain.command("verify")
@click.argument("tenant_id")
@click.option("--storage", default=None, help="Path to domain storage file")
@click.pass_context
def domain_verify(ctx: click.Context, tenant_id: str, storage: str | None):
    """Check the DNS records of a wedding site's domain."""
    service = _build_service(_load_config(ctx), storage)

    async def _verify():
        return await service.verify_domain(tenant_id)

    console.print(f"Verifying DNS records for [cyan]{tenant_id}[/cyan]...", style="yellow")
    config, message = _run(_verify)

    verified = config.status in (DomainStatus.SSL_PENDING, DomainStatus.ACTIVE)
    border = "green" if verified else "yellow"
    console.print(
        Panel(
            f"[bold]Domain:[/bold] {config.domain}\n"
            f"[bold]Status:[/bold] {_status_text(config.status)}\n\n"
            f"{message}",
            title="Verification Successful" if verified else "Verification Status",
            border_style=border,
        )
    )
    console.print(_records_table(config))
    if not verified:
        sys.exit(1)


@domain.command("status")
@click.argument("tenant_id")
@click.option("--storage", default=None, help="Path to domain storage file")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def domain_status(ctx: click.Context, tenant_id: str, storage: str | None, json_output: bool):
    """Show the custom domain of a wedding site."""
    service = _build_service(_load_config(ctx), storage)

    async def _status():
        return await service.get_domain(tenant_id)

    overview = _run(_status)

    if json_output:
        data = {
            "customDomain": overview.config.to_api_dict() if overview.config else None,
            "defaultDomainUrl": overview.default_url,
            "customDomainUrl": overview.custom_url,
        }
        click.echo(json.dumps(data, indent=2))
        return

    if overview.config is None:
        console.print(f"[dim]No custom domain for {tenant_id}[/dim]")
        console.print(f"Default site: {overview.default_url}")
        return

    config = overview.config
    content = (
        f"[bold]Domain:[/bold] {config.domain}\n"
        f"[bold]Status:[/bold] {_status_text(config.status)}\n"
        f"[bold]Default site:[/bold] {overview.default_url}\n"
        f"[bold]Failed attempts:[/bold] {config.failed_attempts}"
    )
    if overview.custom_url:
        content += f"\n[bold]Custom site:[/bold] {overview.custom_url}"
    if config.last_checked_at:
        content += f"\n[bold]Last checked:[/bold] {config.last_checked_at.strftime('%Y-%m-%d %H:%M')}"
    if config.status in (DomainStatus.PENDING, DomainStatus.FAILED):
        content += f"\n\n[yellow]DNS Setup Required:[/yellow]\n{service.render_instructions(config)}"

    console.print(
        Panel(
            content,
            title=f"Custom Domain: {tenant_id}",
            border_style=STATUS_COLORS.get(config.status, "white"),
        )
    )
    console.print(_records_table(config))


@domain.command("confirm-ssl")
@click.argument("tenant_id")
@click.option("--storage", default=None, help="Path to domain storage file")
@click.pass_context
def domain_confirm_ssl(ctx: click.Context, tenant_id: str, storage: str | None):
    """Mark the certificate of a verified domain as issued."""
    service = _build_service(_load_config(ctx), storage)

    async def _confirm():
        return await service.confirm_certificate(tenant_id)

    config = _run(_confirm)
    console.print(f"[green]Domain active:[/green] https://{config.domain}")


@domain.command("remove")
@click.argument("tenant_id")
@click.option("--storage", default=None, help="Path to domain storage file")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def domain_remove(ctx: click.Context, tenant_id: str, storage: str | None, yes: bool):
    """Detach the custom domain of a wedding site."""
    if not yes and not click.confirm(f"Remove the custom domain of '{tenant_id}'?"):
        console.print("[dim]Cancelled[/dim]")
        return

    service = _build_service(_load_config(ctx), storage)

    async def _remove():
        return await service.remove_domain(tenant_id)

    if _run(_remove):
        console.print(f"[green]Custom domain removed:[/green] {tenant_id}")
    else:
        console.print(f"[dim]No custom domain for {tenant_id}[/dim]")


@domain.command("lookup")
@click.argument("host")
@click.option("--storage", default=None, help="Path to domain storage file")
@click.pass_context
def domain_lookup(ctx: click.Context, host: str, storage: str | None):
    """Find the wedding site served on an active custom domain."""
    service = _build_service(_load_config(ctx), storage)

    async def _lookup():
        return await service.lookup_tenant(host)

    tenant_id = _run(_lookup)
    if tenant_id is None:
        console.print(f"[red]No active site for:[/red] {host}")
        sys.exit(1)
    console.print(f"{host} -> [cyan]{tenant_id}[/cyan] ({service.default_url(tenant_id)})")


@domain.command("token")
@click.argument("tenant_id")
@click.argument("domain_name")
@click.pass_context
def domain_token(ctx: click.Context, tenant_id: str, domain_name: str):
    """Print the ownership token for a wedding site and domain."""
    cfg = _load_config(ctx)
    try:
        domain_value = parse_domain(domain_name)
        tokens = TokenGenerator.from_config(cfg)
    except VowsiteError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        sys.exit(1)
    click.echo(tokens.generate(tenant_id, domain_value))


@main.group()
def config():
    """View and validate configuration settings.

    All settings can be configured via environment variables with the
    VOWSITE_ prefix, or with a YAML/TOML file passed via --config.

    Examples:

        vowsite config show              # Show all config settings

        vowsite config validate          # Validate current config
    """
    pass


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--section", "-s", help="Show only one section (general, verification, dns, server, log)")
@click.pass_context
def config_show(ctx: click.Context, json_output: bool, section: str | None):
    """Show current configuration settings.

    Secrets are reported as set or unset, never printed.
    """
    cfg = _load_config(ctx)
    display = cfg.to_display_dict()

    if section:
        section = section.lower()
        if section not in display:
            console.print(f"[red]Unknown section:[/red] {section}")
            console.print(f"[dim]Available: {', '.join(display.keys())}[/dim]")
            sys.exit(1)
        display = {section: display[section]}

    if json_output:
        click.echo(json.dumps(display, indent=2))
        return

    console.print("[bold]Current Configuration[/bold]\n")
    for section_name, settings in display.items():
        table = Table(title=section_name.title())
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        for key, value in settings.items():
            value_str = str(value) if value is not None else "[dim]None[/dim]"
            table.add_row(key, value_str)
        console.print(table)
        console.print()


@config.command("validate")
@click.pass_context
def config_validate(ctx: click.Context):
    """Validate current configuration.

    Checks that settings parse and that a verification secret is usable.
    """
    clear_config()
    cfg = _load_config(ctx)

    errors = []
    warnings = []

    try:
        TokenGenerator.from_config(cfg)
    except VowsiteError as e:
        errors.append(e.message)

    if cfg.verification_secret is None and cfg.insecure_dev_mode:
        warnings.append("Using the built-in development verification secret")
    if not cfg.server_admin_token:
        warnings.append("VOWSITE_SERVER_ADMIN_TOKEN is not set; the admin API is unauthenticated")
    if cfg.dns_lookup_timeout >= cfg.verification_budget:
        warnings.append(
            f"dns_lookup_timeout ({cfg.dns_lookup_timeout}s) is not below "
            f"verification_budget ({cfg.verification_budget}s)"
        )

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


if __name__ == "__main__":
    main()
