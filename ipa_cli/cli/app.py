"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import functools
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TransferSpeedColumn,
)

from ipa_cli import __version__
from ipa_cli.api.client import StorefrontClient
from ipa_cli.exceptions import (
    InvalidCredentialsError,
    SessionUnavailableError,
)
from ipa_cli.models.config import AppConfig
from ipa_cli.models.license import (
    Authenticated,
    ChallengeRequired,
    Credential,
    LicenseRequest,
)
from ipa_cli.models.session import Session, create_guid
from ipa_cli.payload.downloader import PackageDownloader, artifact_name
from ipa_cli.storage.config_manager import ConfigManager
from ipa_cli.storage.session_store import SessionStore
from ipa_cli.utils.formatting import mask_email

from .formatters import (
    print_catalog_results,
    print_config,
    print_download_summary,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("ipa_cli")

app = typer.Typer(
    name="ipa-cli",
    help=(
        "Sign in to the storefront, acquire package licenses and build installable"
        " archives. Use 'ipa-cli <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "ipa-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"
SESSION_FILE = CONFIG_DIR / "session.json"


def _load_config(**cli_options) -> AppConfig:
    options = {key: value for key, value in cli_options.items() if value is not None}
    return ConfigManager(CONFIG_FILE).load_config(options)


def _guid_factory(config: AppConfig):
    return functools.partial(create_guid, config.guid_seed)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Storefront package downloader CLI"""
    if version:
        console.print(f"[bold]ipa-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("ipa_cli").setLevel(log_level)

    if show_config:
        print_config(CONFIG_FILE, _load_config())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    email: str = typer.Option("", "--email", "-e", help="Default account email."),
    country: str = typer.Option(
        "US", "--country", "-c", help="Default two-letter storefront country code."
    ),
    output_dir: str = typer.Option(
        ".", "--output", "-o", help="Directory where packages are written."
    ),
    allow_purchase: bool = typer.Option(
        False,
        "--purchase/--no-purchase",
        help="Acquire a license automatically when the account has none.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite the existing configuration."
    ),
):
    """Initialize the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "email": email,
        "country": country,
        "output_dir": output_dir,
        "allow_purchase": allow_purchase,
    }
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Next, sign in with: [cyan]ipa-cli login[/cyan]")


async def _sign_in(client: StorefrontClient, email: str, password: str) -> Authenticated:
    """Runs sign-in, asking for the second-factor code when the server wants one."""
    outcome = await client.authenticator.authenticate(Credential(email, password))

    if isinstance(outcome, ChallengeRequired):
        console.print("[cyan]A second-factor code was sent to your devices.[/cyan]")
        code = typer.prompt("Authentication code").strip()
        outcome = await client.authenticator.authenticate(
            Credential(email, password, code)
        )
        if isinstance(outcome, ChallengeRequired):
            raise InvalidCredentialsError("The authentication code was not accepted.")

    return outcome


@app.command()
def login(
    email: str | None = typer.Option(
        None, "--email", "-e", help="Account email (defaults to the configured one)."
    ),
):
    """Sign in and save the session."""
    config = _load_config(email=email)
    account = config.email or typer.prompt("Account email").strip()
    password = typer.prompt("Password", hide_input=True)

    store = SessionStore(SESSION_FILE)

    async def _login_async():
        # Keep the machine identifier and cookies of a previous session
        session = store.load(_guid_factory(config)) or Session(
            guid_factory=_guid_factory(config)
        )
        session.invalidate()

        async with StorefrontClient(session) as client:
            outcome = await _sign_in(client, account, password)

        store.save(session)
        name = outcome.display_name or mask_email(outcome.account_name or account)
        console.print(f"[green]✓ Signed in as {name}.[/green]")

    asyncio.run(_login_async())


@app.command()
def logout():
    """Forget the saved session."""
    if SessionStore(SESSION_FILE).clear():
        console.print("[green]✓ Session removed.[/green]")
    else:
        console.print("[yellow]No saved session found.[/yellow]")


@app.command()
def search(
    term: str = typer.Argument(..., help="Keyword to search for."),
    country: str | None = typer.Option(
        None, "--country", "-c", help="Two-letter storefront country code."
    ),
    limit: int = typer.Option(5, "--limit", "-l", min=1, max=200),
):
    """Search the public catalog."""
    config = _load_config(country=country)

    async def _search_async():
        async with StorefrontClient(Session()) as client:
            return await client.search(config.country, term, limit)

    results = asyncio.run(_search_async())
    print_catalog_results(results, f"Results for '{term}' ({config.country})")


@app.command()
def lookup(
    bundle_id: str = typer.Argument(..., help="Bundle identifier, e.g. com.foo.bar."),
    country: str | None = typer.Option(
        None, "--country", "-c", help="Two-letter storefront country code."
    ),
):
    """Look up a package by bundle identifier."""
    config = _load_config(country=country)

    async def _lookup_async():
        async with StorefrontClient(Session()) as client:
            return await client.lookup(config.country, bundle_id)

    results = asyncio.run(_lookup_async())
    print_catalog_results(results, f"{bundle_id} ({config.country})")


@app.command(name="download")
def download_command(
    package_id: int = typer.Argument(..., help="Numeric package (track) identifier."),
    country: str | None = typer.Option(
        None, "--country", "-c", help="Two-letter storefront country code."
    ),
    version_id: str = typer.Option(
        "0", "--version-id", help="External version identifier (0 = latest)."
    ),
    allow_purchase: bool | None = typer.Option(
        None,
        "--purchase/--no-purchase",
        help="Acquire a license when the account has none.",
    ),
    arcade: bool = typer.Option(
        False, "--arcade", help="Use arcade pricing parameters when purchasing."
    ),
    output_dir: str | None = typer.Option(
        None, "--output", "-o", help="Directory where the package is written."
    ),
    verify: bool | None = typer.Option(
        None, "--verify/--no-verify", help="Check the MD5 digest of the download."
    ),
):
    """Acquire a license, download and patch a package."""
    config = _load_config(
        country=country,
        allow_purchase=allow_purchase,
        output_dir=output_dir,
        verify_md5=verify,
    )
    request = LicenseRequest(
        package_id=package_id,
        version_id=version_id,
        country=config.country,
        is_arcade=arcade,
    )
    store = SessionStore(SESSION_FILE)

    async def _download_async():
        session = store.load(_guid_factory(config))
        if session is None or not session.is_authenticated:
            raise SessionUnavailableError(
                "No signed-in session found. Run 'ipa-cli login' first."
            )

        start_time = time.monotonic()
        async with StorefrontClient(session) as client:
            try:
                console.print("[cyan]Fetching license...[/cyan]")
                grant = await client.licenses.acquire_license(
                    request, allow_purchase=config.allow_purchase
                )
                entry = grant.primary_entry
                destination = Path(config.output_dir) / artifact_name(entry, package_id)

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[bold]{task.description}"),
                    BarColumn(),
                    DownloadColumn(),
                    TransferSpeedColumn(),
                    console=console,
                    transient=True,
                ) as progress:
                    task_id = progress.add_task(entry.display_name, total=None)
                    downloader = PackageDownloader(client, verify=config.verify_md5)
                    path = await downloader.download(
                        entry, destination, progress, task_id
                    )
            finally:
                # Cookies and identity changes must survive the run
                store.save(session)

        print_download_summary(entry, path, time.monotonic() - start_time)

    asyncio.run(_download_async())


@app.command()
def validate():
    """Validate the current configuration and session."""
    config = _load_config()
    session = SessionStore(SESSION_FILE).load()
    print_validation_table(config, signed_in=bool(session and session.is_authenticated))
