"""OCI client library

This module provides read-only access to image manifests through
a subset of the OCI distribution API.
"""
import logging

import httpx

from container_digest.oci.client import AuthenticationError, Client
from container_digest.oci.index import Platform, PlatformDescriptor
from container_digest.oci.manifest import Manifest, ManifestError
from container_digest.oci.reference import InvalidReferenceError, Reference

logger = logging.getLogger(__name__)

__all__ = [
    "AuthenticationError",
    "Client",
    "InvalidReferenceError",
    "Manifest",
    "ManifestError",
    "Platform",
    "PlatformDescriptor",
    "Reference",
    "Registry",
]


class Registry:
    """Fetch manifests from any number of registries

    Keeps one `Client` per registry host for the lifetime of the context.

    :param credentials: (username, password) per registry host.
    :param insecure: registry hosts to reach over plain http.
    :param transport: httpx transport passed on to every client.
    """

    def __init__(
        self,
        credentials: dict[str, tuple[str, str]] | None = None,
        insecure: set[str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.credentials = credentials or {}
        self.insecure = insecure or set()
        self.transport = transport
        self._clients: dict[str, Client] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def client(self, registry: str) -> Client:
        if registry not in self._clients:
            username, password = self.credentials.get(registry, (None, None))
            scheme = "http" if registry in self.insecure else "https"
            self._clients[registry] = Client(
                registry_url=f"{scheme}://{registry}",
                username=username,
                password=password,
                transport=self.transport,
            )
        return self._clients[registry]

    def fetch_manifest(self, reference: Reference) -> Manifest:
        logger.debug("Fetching manifest for %s", reference)
        client = self.client(reference.registry)
        return Manifest.pull(reference=reference, client=client)

    def close(self):
        for client in self._clients.values():
            client.close()
        self._clients.clear()
