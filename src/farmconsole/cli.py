"""CLI interface for farmconsole"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Tuple

import click

from farmconsole.application.auth_service import AuthService
from farmconsole.domain.config.auth import Portal
from farmconsole.domain.errors import ApiError
from farmconsole.domain.models.request import HttpMethod, RequestDescriptor
from farmconsole.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from farmconsole.infrastructure.http_client import ApiClient
from farmconsole.infrastructure.signals import UnauthorizedSignal
from farmconsole.infrastructure.token_store import FileTokenStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _parse_params(params: Tuple[str, ...]) -> dict:
    """Parse repeated KEY=VALUE options into a dict"""
    result = {}
    for item in params:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got {item!r}", param_hint="--param")
        result[key] = value
    return result


def _load_config(ctx: click.Context) -> ConfigManager:
    """Load configuration and apply the --portal override"""
    try:
        config_manager = ConfigManager(config_path=ctx.obj.get("config_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=ctx.obj.get("verbose", False), exc=e)
    if ctx.obj.get("portal"):
        config_manager.config.auth = config_manager.get_auth_config().model_copy(
            update={"portal": ctx.obj["portal"]}
        )
    return config_manager


def _create_client(config_manager: ConfigManager) -> Tuple[ApiClient, FileTokenStore]:
    """Wire an ApiClient to the persisted token and a console notice on 401"""
    token_store = FileTokenStore(config_manager.get_token_path())
    signal = UnauthorizedSignal()
    signal.subscribe(
        lambda: click.echo("Session expired or invalid. Please run 'farmconsole login' again.", err=True)
    )
    client = ApiClient(config_manager.get_client_config(), token_store, unauthorized=signal)
    return client, token_store


def _run(
    ctx: click.Context,
    action: Callable[[ApiClient, AuthService], Awaitable[Any]],
    config_manager: Optional[ConfigManager] = None,
) -> Any:
    """Run an async action against a fresh client, mapping API errors to CLI errors"""
    verbose = ctx.obj.get("verbose", False)
    config_manager = config_manager or _load_config(ctx)

    async def _main() -> Any:
        client, token_store = _create_client(config_manager)
        async with client:
            return await action(client, AuthService(client, token_store, config_manager.get_auth_config()))

    try:
        return asyncio.run(_main())
    except ApiError as e:
        _die(e.message, verbose=verbose, exc=e)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .farmconsole.yml config file",
)
@click.option(
    "--portal",
    type=click.Choice([p.value for p in Portal], case_sensitive=False),
    help="Portal to use (admin or staff). Overrides config.",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path, portal: Optional[str]):
    """farmconsole - command line client for the farm operations API"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["portal"] = portal.lower() if portal else None


@cli.command()
@click.option("--email", help="Admin email (admin portal)")
@click.option("--phone", help="Phone number (staff portal)")
@click.option("--password", help="Password (admin) or PIN (staff); prompted if omitted")
@click.pass_context
def login(ctx, email: Optional[str], phone: Optional[str], password: Optional[str]):
    """Log in and store the session token."""
    config_manager = _load_config(ctx)
    staff = Portal(config_manager.get_auth_config().portal) == Portal.STAFF
    if staff:
        user = phone or click.prompt("Phone")
        secret = password or click.prompt("PIN", hide_input=True)
    else:
        user = email or click.prompt("Email")
        secret = password or click.prompt("Password", hide_input=True)

    async def _login(client: ApiClient, auth: AuthService) -> Any:
        if staff:
            return await auth.staff_login(user, secret)
        return await auth.login(user, secret)

    _run(ctx, _login, config_manager)
    click.echo("Logged in.")


@cli.command()
@click.pass_context
def logout(ctx):
    """Forget the stored session token."""

    async def _logout(client: ApiClient, auth: AuthService) -> None:
        auth.logout()

    _run(ctx, _logout)
    click.echo("Logged out.")


@cli.command()
@click.pass_context
def whoami(ctx):
    """Show who the stored session belongs to."""

    async def _whoami(client: ApiClient, auth: AuthService) -> Any:
        if not auth.is_authenticated():
            raise click.ClickException("Not logged in. Run 'farmconsole login' first.")
        return await auth.introspect()

    _echo_json(_run(ctx, _whoami))


@cli.command()
@click.argument("method", type=click.Choice([m.value for m in HttpMethod], case_sensitive=False))
@click.argument("endpoint")
@click.option("--data", "data", help="JSON request body")
@click.option("--param", "params", multiple=True, help="Query parameter KEY=VALUE (repeatable)")
@click.pass_context
def request(ctx, method: str, endpoint: str, data: Optional[str], params: Tuple[str, ...]):
    """Call an API endpoint and print the JSON response.

    METHOD: GET, POST, PATCH, PUT or DELETE

    ENDPOINT: Path relative to the API base URL (e.g. /admins/farmers)
    """
    try:
        body = json.loads(data) if data is not None else None
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--data")
    descriptor = RequestDescriptor(
        HttpMethod(method.upper()),
        endpoint if endpoint.startswith("/") else f"/{endpoint}",
        body=body,
        params=_parse_params(params),
    )

    async def _request(client: ApiClient, auth: AuthService) -> Any:
        return await client.execute(descriptor)

    _echo_json(_run(ctx, _request))


@cli.command()
@click.argument("endpoint")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--field", default="file", show_default=True, help="Multipart field name")
@click.pass_context
def upload(ctx, endpoint: str, file_path: Path, field: str):
    """Upload a file as multipart/form-data (never retried).

    ENDPOINT: Path relative to the API base URL (e.g. /staff/upload/nin)

    FILE_PATH: File to upload
    """
    content = file_path.read_bytes()
    endpoint = endpoint if endpoint.startswith("/") else f"/{endpoint}"

    async def _upload(client: ApiClient, auth: AuthService) -> Any:
        return await client.upload(endpoint, files={field: (file_path.name, content)})

    _echo_json(_run(ctx, _upload))


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
