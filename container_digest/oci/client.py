from __future__ import annotations

import logging
import re
from urllib.parse import urlparse, urlunparse

import httpx

logger = logging.getLogger(__name__)

DOCKER_HUB = "registry-1.docker.io"

MANIFEST_MEDIA_TYPES = (
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
)

_AUTH_PARAM = re.compile(r'(\w+)="([^"]*)"')


class AuthenticationError(Exception):
    """Raised when authentication fails."""


def _clean_url(registry_url: str) -> str:
    if "://" not in registry_url:
        registry_url = f"https://{registry_url}"
    parts = urlparse(registry_url)
    if parts.netloc == "docker.io":
        parts = parts._replace(netloc=DOCKER_HUB)
    return urlunparse(parts).rstrip("/")


def _parse_www_auth(www_authenticate: str) -> tuple[str, dict[str, str]]:
    """Parse the WWW-Authenticate header into its scheme and parameters"""
    scheme, _, params = www_authenticate.partition(" ")
    return scheme.lower(), dict(_AUTH_PARAM.findall(params))


class BearerAuth(httpx.Auth):
    """Attaches HTTP Bearer Authentication to the given Request object."""

    def __init__(self, token: str):
        self.token = token

    def auth_flow(self, request):
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


class Client:
    """Client for the read-only part of the OCI registry API."""

    def __init__(
        self,
        registry_url: str,
        username: str | None = None,
        password: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.registry_url = _clean_url(registry_url)
        self.username = username
        self.password = password
        self._transport = transport
        self._session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def session(self):
        if self._session is None:
            self._session = httpx.Client(
                follow_redirects=True,
                max_redirects=2,
                transport=self._transport,
            )
        return self._session

    def get(self, uri, **kwargs):
        return self.session.get(f"{self.registry_url}{uri}", **kwargs)

    def close(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    def authenticate(self, response: httpx.Response):
        """Answer the authentication challenge of a 401 response

        ref: https://distribution.github.io/distribution/spec/auth/token/
        """
        scheme, challenge = _parse_www_auth(
            response.headers.get("WWW-Authenticate", "")
        )
        logger.debug("Authentication challenge: %s %s", scheme, challenge)
        if scheme == "basic":
            if not self.password:
                raise AuthenticationError(
                    f"{self.registry_url} requires authentication, "
                    f"provide a username and/or password."
                )
            self.session.auth = (self.username or "", self.password)
            return
        if scheme != "bearer" or "realm" not in challenge:
            raise AuthenticationError(
                f"{self.registry_url} sent an unsupported authentication challenge"
            )

        params = {"service": challenge.get("service")}
        if challenge.get("scope"):
            params["scope"] = challenge["scope"]
        auth = None
        if self.password:
            params["client_id"] = self.username
            auth = (self.username or "", self.password)
        # auth=None keeps a previous bearer token away from the token service
        response = self.session.get(
            challenge["realm"],
            params={key: value for key, value in params.items() if value},
            auth=auth,
        )
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Token request for {self.registry_url} was denied "
                f"({response.status_code})"
            )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise AuthenticationError(
                f"Token response for {self.registry_url} is not valid JSON"
            )
        token = data.get("token") or data.get("access_token")
        if not token:
            raise AuthenticationError(
                f"Token response for {self.registry_url} contained no token"
            )
        self.session.auth = BearerAuth(token)

    def pull_manifest(
        self,
        name: str,
        reference: str,
        media_type: str = ", ".join(MANIFEST_MEDIA_TYPES),
    ) -> httpx.Response:
        uri = f"/v2/{name}/manifests/{reference}"
        headers = {"Accept": media_type}
        result = self.get(uri, headers=headers)
        if result.status_code == 401:
            self.authenticate(result)
            result = self.get(uri, headers=headers)
        if result.status_code == 403:
            logger.debug(result.headers)
        result.raise_for_status()
        return result
