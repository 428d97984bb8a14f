import json
import logging
from pathlib import Path

import httpx
import pytest

TEST_DATA = Path(__file__).parent / "testdata"

LIST_DIGEST = "sha256:" + "f" * 64


class MockRegistry:
    """In-memory registry serving manifests through an httpx.MockTransport"""

    def __init__(self):
        self.manifests: dict[tuple[str, str], tuple[bytes, str, str]] = {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handler)

    def add_manifest(self, name: str, reference: str, manifest: dict, digest: str):
        self.manifests[(name, reference)] = (
            json.dumps(manifest).encode("utf-8"),
            manifest["mediaType"],
            digest,
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        name, sep, reference = request.url.path.removeprefix("/v2/").rpartition(
            "/manifests/"
        )
        if not sep or (name, reference) not in self.manifests:
            return httpx.Response(
                404,
                json={
                    "errors": [
                        {"code": "MANIFEST_UNKNOWN", "message": "manifest unknown"}
                    ]
                },
            )
        content, media_type, digest = self.manifests[(name, reference)]
        return httpx.Response(
            200,
            content=content,
            headers={"Content-Type": media_type, "Docker-Content-Digest": digest},
        )


@pytest.fixture(autouse=True)
def configure_logging(caplog):
    caplog.set_level(logging.DEBUG)


@pytest.fixture
def testdata() -> Path:
    """Return the testdata dir for this module"""
    return TEST_DATA


@pytest.fixture
def busybox_index(testdata) -> dict:
    """Manifest list with linux/amd64 and linux/arm/v5 entries"""
    return json.loads((testdata / "busybox-index.json").read_text())


@pytest.fixture
def alpine_manifest(testdata) -> dict:
    """Single platform Docker v2 manifest"""
    return json.loads((testdata / "alpine-manifest.json").read_text())


@pytest.fixture
def mock_registry(busybox_index) -> MockRegistry:
    registry = MockRegistry()
    registry.add_manifest("library/busybox", "latest", busybox_index, LIST_DIGEST)
    return registry
