"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ipa_cli.models.config import AppConfig
from ipa_cli.models.license import DownloadEntry
from ipa_cli.utils.formatting import format_duration, format_price, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "InvalidCredentialsError": [
            "• Check the account email and password.",
            "• Run `ipa-cli login` again.",
        ],
        "SessionUnavailableError": [
            "• You are not signed in. Run `ipa-cli login` first.",
        ],
        "ServiceUnavailableError": [
            "• The storefront reported a temporary failure.",
            "• Please try again in a few minutes.",
        ],
        "LicenseUnavailableError": [
            "• The account does not own this package.",
            "• Re-run with `--purchase` to acquire a free license.",
        ],
        "LicenseAlreadyExistsError": [
            "• A purchase for this package is already recorded.",
            "• Re-run the download without `--purchase`.",
        ],
        "UnknownStorefrontError": [
            "• Use a two-letter storefront country code such as `US` or `GB`.",
        ],
        "PayloadBundleNameUnavailableError": [
            "• The downloaded archive has no application bundle.",
            "• The package format may not be supported.",
        ],
        "PayloadSinfUnavailableError": [
            "• The license does not match the downloaded archive.",
            "• Try again with the latest version (`--version-id 0`).",
        ],
        "PayloadInfoUnavailableError": [
            "• The archive has no sinf manifest, which is not supported yet.",
        ],
        "PayloadIntegrityError": [
            "• The download was corrupted. Please try again.",
            "• Use `--no-verify` only if you trust the source.",
        ],
        "ClientConnectorError": [
            "• Could not connect to the storefront.",
            "• Check your internet connection and proxy settings.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The storefront might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet connection.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    customer_message = getattr(error, "customer_message", None)
    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    if customer_message:
        content.add_row(Text(f"Storefront: {customer_message}", style="yellow"))
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config: AppConfig):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key in sorted(AppConfig.get_ini_keys()):
        content += f"{key} = {getattr(config, key)}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: AppConfig, signed_in: bool):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Account:", config.email or "[dim]not set[/dim]")
    table.add_row(
        "Session:",
        "[green]✓ Signed in[/green]" if signed_in else "[yellow]✗ Signed out[/yellow]",
    )
    table.add_row("Country:", config.country)
    table.add_row(
        "Purchase Free Titles:", "✓ Enabled" if config.allow_purchase else "✗ Disabled"
    )
    table.add_row("MD5 Check:", "✓ Enabled" if config.verify_md5 else "✗ Disabled")
    table.add_row("Output Directory:", f"[dim]{config.output_dir}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_catalog_results(results: list[dict[str, Any]], title: str):
    """Displays catalog search or lookup results."""
    console = Console()

    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Seller")
    table.add_column("Bundle ID", style="dim")
    table.add_column("Version")
    table.add_column("Price", justify="right", style="green")

    for i, result in enumerate(results, 1):
        table.add_row(
            str(i),
            str(result.get("trackId", "")),
            result.get("trackName", ""),
            result.get("artistName", ""),
            result.get("bundleId", ""),
            result.get("version", ""),
            format_price(result),
        )

    console.print(table)


def print_download_summary(
    entry: DownloadEntry, artifact_path: Path, duration_s: float
):
    """Displays the summary of a completed download."""
    console = Console()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white", justify="left")

    table.add_row("Name:", entry.display_name)
    table.add_row("Bundle ID:", entry.bundle_id or "[dim]unknown[/dim]")
    table.add_row("Version:", entry.version or "[dim]unknown[/dim]")
    table.add_row("Sinf Records:", str(len(entry.sinfs)))
    table.add_row("Size:", f"[cyan]{format_size(artifact_path.stat().st_size)}[/cyan]")
    table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")
    table.add_row("Saved To:", f"[green]{artifact_path}[/green]")

    console.print()
    console.print(
        Panel(
            table,
            title="📦 [bold]Download Complete![/bold]",
            border_style="green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
