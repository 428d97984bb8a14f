"""Resolve per architecture digests for configured images"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

import httpx

from container_digest.oci.client import AuthenticationError
from container_digest.oci.index import Platform
from container_digest.oci.manifest import ManifestError
from container_digest.oci.reference import InvalidReferenceError, Reference

if TYPE_CHECKING:
    from container_digest.oci import Registry

logger = logging.getLogger(__name__)

# registry -> repository -> tag -> architecture -> digest or image reference
ArchMap = dict[str, str]
TagMap = dict[str, ArchMap]
RepositoryMap = dict[str, TagMap]
NestedDigestResult = dict[str, RepositoryMap]


class PlatformNotFoundError(LookupError):
    """Raised in strict mode when a manifest list lacks the requested platform."""


class DigestLookupError(Exception):
    """Raised when the digest for one image architecture cannot be resolved."""

    def __init__(self, repository: str, name: str, tag: str, architecture: str):
        self.repository = repository
        self.name = name
        self.tag = tag
        self.architecture = architecture
        super().__init__(
            f"failed to get digest for {repository}/{name}:{tag} ({architecture})"
        )

    def __str__(self):
        message = super().__str__()
        if self.__cause__ is not None:
            return f"{message}: {self.__cause__}"
        return message


@dataclass(frozen=True, slots=True)
class ImageSpec:
    """One image to resolve for one or more architectures

    `repository` is the registry host, `name` the repository inside it.
    """

    repository: str
    name: str
    tag: str
    architectures: tuple[str, ...] = ()


def resolve_digest(
    registry: str,
    repository: str,
    tag: str,
    architecture: str,
    source: Registry,
    strict: bool = False,
) -> str:
    """Return the digest of `registry/repository:tag` for `architecture`

    For a manifest list the digest of the matching platform manifest is
    returned. When no entry matches, the digest of the list itself is
    returned, or `PlatformNotFoundError` is raised if `strict` is set.
    """
    reference = Reference(registry=registry, repository=repository, tag=tag)
    platform = Platform.parse(architecture)

    manifest = source.fetch_manifest(reference)
    if manifest.is_list():
        digest = manifest.find_platform_digest(platform)
        if digest is not None:
            return digest
        available = ", ".join(str(p) for p in manifest.platforms())
        if strict:
            raise PlatformNotFoundError(
                f"{reference} has no manifest for {platform} (available: {available})"
            )
        logger.warning(
            "%s has no manifest for %s, using the manifest list digest "
            "(available: %s)",
            reference,
            platform,
            available,
        )
    return manifest.digest


def aggregate_digests(
    images: Iterable[ImageSpec],
    source: Registry,
    strict: bool = False,
) -> NestedDigestResult:
    """Resolve every architecture of every image

    The first failing lookup aborts with a `DigestLookupError`,
    no partial result is returned.
    """
    results: NestedDigestResult = {}
    for image in images:
        for architecture in image.architectures:
            logger.info(
                "Resolving %s/%s:%s (%s)",
                image.repository,
                image.name,
                image.tag,
                architecture,
            )
            try:
                digest = resolve_digest(
                    registry=image.repository,
                    repository=image.name,
                    tag=image.tag,
                    architecture=architecture,
                    source=source,
                    strict=strict,
                )
            except (
                InvalidReferenceError,
                AuthenticationError,
                ManifestError,
                PlatformNotFoundError,
                httpx.HTTPError,
            ) as e:
                raise DigestLookupError(
                    image.repository, image.name, image.tag, architecture
                ) from e
            logger.debug("%s -> %s", architecture, digest)
            (
                results.setdefault(image.repository, {})
                .setdefault(image.name, {})
                .setdefault(image.tag, {})
            )[architecture] = digest
    return results


def expand_references(results: NestedDigestResult) -> NestedDigestResult:
    """Replace every digest with the full '<registry>/<repository>@<digest>'"""
    return {
        registry: {
            repository: {
                tag: {
                    architecture: f"{registry}/{repository}@{digest}"
                    for architecture, digest in architectures.items()
                }
                for tag, architectures in tags.items()
            }
            for repository, tags in repositories.items()
        }
        for registry, repositories in results.items()
    }
