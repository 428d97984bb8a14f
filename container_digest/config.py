"""Load the containers and authentication TOML files

containers.toml lists the images to resolve. A container's `repository`
is either a registry host or a label from the `[repositories]` table:

    [repositories]
    docker = "https://registry-1.docker.io"

    [[containers]]
    repository = "docker"
    name = "library/busybox"
    tag = "latest"
    architectures = ["linux/amd64", "linux/arm/v7"]

authentication.toml holds optional credentials per label or host:

    [credentials.docker]
    username = "user"
    password = "secret"
"""
import logging
import tomllib
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, StringConstraints, ValidationError

from container_digest.digests import ImageSpec

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a configuration file is missing or malformed."""


def registry_host(url: str) -> str:
    """Strip the scheme and trailing slash from a registry URL"""
    return url.removeprefix("https://").removeprefix("http://").rstrip("/")


class Credential(BaseModel):
    username: str
    password: str


class AuthConfig(BaseModel):
    credentials: dict[str, Credential] = {}


class Container(BaseModel):
    repository: str
    name: str
    tag: str
    architectures: list[Annotated[str, StringConstraints(min_length=1)]] = []


class ContainersConfig(BaseModel):
    repositories: dict[str, str] = {}
    containers: list[Container] = []

    def registry_host(self, repository: str) -> str:
        """Return the registry host for a repository label or host"""
        return registry_host(self.repositories.get(repository, repository))

    def insecure_hosts(self) -> set[str]:
        return {
            registry_host(url)
            for url in self.repositories.values()
            if url.startswith("http://")
        }

    def credentials_by_host(self, auth: AuthConfig) -> dict[str, tuple[str, str]]:
        return {
            self.registry_host(key): (credential.username, credential.password)
            for key, credential in auth.credentials.items()
        }

    def images(self) -> list[ImageSpec]:
        images = []
        for container in self.containers:
            if not container.architectures:
                logger.warning(
                    "No architectures configured for %s/%s:%s",
                    container.repository,
                    container.name,
                    container.tag,
                )
            images.append(
                ImageSpec(
                    repository=self.registry_host(container.repository),
                    name=container.name,
                    tag=container.tag,
                    architectures=tuple(container.architectures),
                )
            )
        return images


def _load_toml(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def load_containers_config(path: Path) -> ContainersConfig:
    """Load container configuration from a TOML file"""
    try:
        return ContainersConfig.model_validate(_load_toml(path))
    except ValidationError as e:
        raise ConfigError(f"Invalid containers config {path}: {e}") from e


def load_auth_config(path: Path) -> AuthConfig:
    """Load authentication configuration from a TOML file

    A missing file results in an empty configuration.
    """
    if not path.exists():
        logger.debug("No authentication config at %s", path)
        return AuthConfig()
    try:
        return AuthConfig.model_validate(_load_toml(path))
    except ValidationError as e:
        raise ConfigError(f"Invalid authentication config {path}: {e}") from e
