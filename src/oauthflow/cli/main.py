"""oauthflow CLI -- inspect provider configuration and probe discovery."""
# mypy: disable-error-code="misc,untyped-decorator"

from __future__ import annotations

import asyncio
import secrets
import sys

import click

from oauthflow.cli.output import mask_secret, print_error, print_json
from oauthflow.config import ProviderConfig, Settings
from oauthflow.discovery import EndpointResolver, ResolvedEndpoints
from oauthflow.exceptions import OAuthFlowError
from oauthflow.flow import OAuthFlow
from oauthflow.http import HttpExchanger
from oauthflow.observability import configure_logging
from oauthflow.pkce import create_code_verifier


@click.group()
@click.option(
    "--provider",
    envvar="OAUTHFLOW_PROVIDER",
    default=None,
    help="Provider preset (generic or zoho). Overrides settings.",
)
@click.version_option(package_name="oauthflow")
@click.pass_context
def cli(ctx: click.Context, provider: str | None) -> None:
    """oauthflow -- OAuth2 authorization-code client tooling."""
    ctx.ensure_object(dict)
    current = Settings()
    if provider:
        current = current.model_copy(update={"provider": provider})
    configure_logging(current.log_level, current.log_format)
    ctx.obj["settings"] = current


def _provider_config(ctx: click.Context) -> ProviderConfig:
    try:
        return ctx.obj["settings"].provider_config()
    except ValueError as exc:
        print_error(f"Invalid provider configuration: {exc}")
        sys.exit(2)


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the effective provider configuration."""
    config = _provider_config(ctx)
    data = config.model_dump(mode="json")
    data["client_secret"] = mask_secret(config.client_secret)
    print_json(data)


@cli.command("authorize-url")
@click.option("--redirect-uri", required=True, help="Callback URL registered with the provider.")
@click.option("--state", default=None, help="State value (random when omitted).")
@click.option(
    "--code-verifier",
    default=None,
    help="PKCE verifier. Generated and printed to stderr when PKCE is enabled and omitted.",
)
@click.pass_context
def authorize_url(
    ctx: click.Context,
    redirect_uri: str,
    state: str | None,
    code_verifier: str | None,
) -> None:
    """Print the authorization URL for a sign-in challenge."""
    config = _provider_config(ctx)
    if config.use_pkce and not code_verifier:
        code_verifier = create_code_verifier()
        click.echo(f"code_verifier: {code_verifier}", err=True)
    flow = OAuthFlow.from_settings(ctx.obj["settings"])
    try:
        url = flow.build_authorization_url(
            state=state or secrets.token_urlsafe(32),
            redirect_uri=redirect_uri,
            code_verifier=code_verifier,
        )
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(2)
    finally:
        asyncio.run(flow.close())
    click.echo(url)


@cli.command()
@click.argument("locator")
@click.pass_context
def resolve(ctx: click.Context, locator: str) -> None:
    """Resolve LOCATOR against the discovery endpoint and print the endpoints."""
    config = _provider_config(ctx)
    if not config.discovery_enabled:
        print_error("No discovery endpoint configured.")
        sys.exit(2)
    settings = ctx.obj["settings"]

    async def _resolve() -> ResolvedEndpoints:
        async with HttpExchanger(
            timeout=settings.http_timeout,
            user_agent=settings.http_user_agent,
        ) as http:
            return await EndpointResolver(http, config).resolve(locator)

    try:
        endpoints = asyncio.run(_resolve())
    except OAuthFlowError as exc:
        print_error(str(exc))
        sys.exit(1)
    print_json(endpoints.model_dump())


if __name__ == "__main__":
    cli()
