import logging
from dataclasses import dataclass
from pathlib import Path

import click
import httpx

from container_digest.config import (
    ConfigError,
    ContainersConfig,
    load_auth_config,
    load_containers_config,
)
from container_digest.digests import (
    DigestLookupError,
    aggregate_digests,
    expand_references,
)
from container_digest.oci import (
    AuthenticationError,
    InvalidReferenceError,
    ManifestError,
    Reference,
    Registry,
)
from container_digest.output import (
    FORMAT_NAMES,
    SerializationError,
    serialize,
    write_output,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Settings:
    containers: Path
    auth: Path
    output: Path | None = None
    output_format: str = "json"
    raw_digests: bool = False
    nix_bare: bool = False
    strict: bool = False


def _registry(config: ContainersConfig, settings: Settings) -> Registry:
    auth = load_auth_config(settings.auth)
    return Registry(
        credentials=config.credentials_by_host(auth),
        insecure=config.insecure_hosts(),
    )


def run(settings: Settings):
    """Resolve all configured digests and write them out"""
    config = load_containers_config(settings.containers)
    logger.info(
        "Resolving %d containers from %s", len(config.containers), settings.containers
    )
    with _registry(config, settings) as registry:
        results = aggregate_digests(
            config.images(), source=registry, strict=settings.strict
        )
    if not settings.raw_digests:
        results = expand_references(results)
    data = serialize(
        results, settings.output_format, nix_wrapper=not settings.nix_bare
    )
    write_output(data, settings.output)
    if settings.output is not None:
        click.echo(
            f"{FORMAT_NAMES[settings.output_format]} output written to "
            f"{settings.output}"
        )


@click.group(invoke_without_command=True)
@click.option(
    "--containers",
    help="Path to containers TOML file",
    default="containers.toml",
    show_default=True,
    type=click.Path(path_type=Path, dir_okay=False),
)
@click.option(
    "--auth",
    help="Path to authentication TOML file",
    default="authentication.toml",
    show_default=True,
    type=click.Path(path_type=Path, dir_okay=False),
)
@click.option(
    "--output",
    help="Path to output file (if not specified, output to stdout)",
    default=None,
    type=click.Path(path_type=Path, dir_okay=False),
)
@click.option(
    "--output-format",
    help="Output format",
    default="json",
    show_default=True,
    type=click.Choice(list(FORMAT_NAMES)),
)
@click.option(
    "--raw-digests", help="Output digests instead of image references", is_flag=True
)
@click.option("--nix-bare", help="Output a bare Nix attribute set", is_flag=True)
@click.option(
    "--strict",
    help="Fail when a manifest list lacks a requested platform",
    is_flag=True,
)
@click.option("-d", "--debug", help="Debug output", is_flag=True)
@click.pass_context
def cli(
    ctx,
    containers: Path,
    auth: Path,
    output: Path | None,
    output_format: str,
    raw_digests: bool,
    nix_bare: bool,
    strict: bool,
    debug: bool,
):
    """Get container image digests from registries.

    Reads a TOML file of containers and returns the digests of those
    containers per registry, repository, tag and architecture.
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG)
    ctx.obj = Settings(
        containers=containers,
        auth=auth,
        output=output,
        output_format=output_format,
        raw_digests=raw_digests,
        nix_bare=nix_bare,
        strict=strict,
    )
    if ctx.invoked_subcommand is not None:
        return
    try:
        run(ctx.obj)
    except (ConfigError, DigestLookupError, SerializationError, OSError) as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("repository")
@click.argument("name")
@click.argument("tag")
@click.pass_context
def inspect(ctx, repository: str, name: str, tag: str):
    """Show the manifest type, digest and platforms of an image.

    REPOSITORY is a registry host or a label from the containers file.
    """
    settings: Settings = ctx.ensure_object(Settings)
    try:
        config = ContainersConfig()
        if settings.containers.exists():
            config = load_containers_config(settings.containers)
        reference = Reference(
            registry=config.registry_host(repository), repository=name, tag=tag
        )
        with _registry(config, settings) as registry:
            manifest = registry.fetch_manifest(reference)
    except (
        ConfigError,
        InvalidReferenceError,
        AuthenticationError,
        ManifestError,
        httpx.HTTPError,
    ) as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Manifest Type: {manifest.mediaType}")
    click.echo(f"Manifest Digest: {manifest.digest}")
    if manifest.is_list():
        click.echo("Available Platforms:")
        for platform in manifest.platforms():
            click.echo(f"  - {platform}")


if __name__ == "__main__":
    cli()
