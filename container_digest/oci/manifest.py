from hashlib import sha256

import httpx
from pydantic import BaseModel, Field, ValidationError

from container_digest.oci.client import MANIFEST_MEDIA_TYPES, Client
from container_digest.oci.index import Platform, PlatformDescriptor
from container_digest.oci.reference import Reference

LIST_MEDIA_TYPES = (
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
)


class ManifestError(Exception):
    """Raised when a registry returns a manifest that cannot be read."""


class Manifest(BaseModel):
    """A manifest or manifest list (image index) as returned by a registry

    Only the fields needed to pick a platform specific digest are modelled.

    ref: https://github.com/opencontainers/image-spec/blob/main/manifest.md
    ref: https://github.com/opencontainers/image-spec/blob/main/image-index.md
    """

    digest: str = Field(exclude=True)
    mediaType: str | None = None
    schemaVersion: int = 2
    manifests: list[PlatformDescriptor] | None = None

    def is_list(self) -> bool:
        if self.mediaType is not None:
            return self.mediaType in LIST_MEDIA_TYPES
        return self.manifests is not None

    def find_platform_digest(self, platform: Platform) -> str | None:
        """Return the digest of the first entry matching `platform`"""
        for descriptor in self.manifests or []:
            if platform.matches(descriptor.platform):
                return descriptor.digest
        return None

    def platforms(self) -> list[Platform]:
        return [
            descriptor.platform
            for descriptor in self.manifests or []
            if descriptor.platform is not None
        ]

    @classmethod
    def from_response(cls, response: httpx.Response) -> "Manifest":
        digest = response.headers.get("Docker-Content-Digest")
        if not digest:
            digest = f"sha256:{sha256(response.content).hexdigest()}"
        try:
            data = response.json()
        except ValueError as e:
            raise ManifestError(f"Manifest at {response.url} is not JSON") from e
        if not isinstance(data, dict):
            raise ManifestError(f"Manifest at {response.url} is not a JSON object")
        content_type = response.headers.get("content-type", "").split(";")[0]
        if "mediaType" not in data and content_type in MANIFEST_MEDIA_TYPES:
            data["mediaType"] = content_type
        try:
            return cls.model_validate(data | {"digest": digest})
        except ValidationError as e:
            raise ManifestError(f"Invalid manifest at {response.url}: {e}") from e

    @classmethod
    def pull(cls, reference: Reference, client: Client) -> "Manifest":
        return cls.from_response(
            client.pull_manifest(name=reference.repository, reference=reference.tag)
        )
