import json
from hashlib import sha256

import httpx
import pytest

from container_digest.oci.index import Platform
from container_digest.oci.manifest import Manifest, ManifestError

LIST_DIGEST = "sha256:" + "f" * 64
AMD64_DIGEST = "sha256:" + "1" * 64
ARM_V5_DIGEST = "sha256:" + "5" * 64


def _response(content: bytes, headers: dict | None = None) -> httpx.Response:
    return httpx.Response(
        200,
        content=content,
        headers=headers or {},
        request=httpx.Request("GET", "https://registry.test/v2/x/manifests/latest"),
    )


def test_manifest_list_from_response(busybox_index):
    manifest = Manifest.from_response(
        _response(
            json.dumps(busybox_index).encode(),
            {"Docker-Content-Digest": LIST_DIGEST},
        )
    )
    assert manifest.is_list()
    assert manifest.digest == LIST_DIGEST
    assert [str(p) for p in manifest.platforms()] == ["linux/amd64", "linux/arm/v5"]


@pytest.mark.parametrize(
    "architecture,expected",
    [
        ("linux/amd64", AMD64_DIGEST),
        ("linux/arm/v5", ARM_V5_DIGEST),
        ("linux/arm", ARM_V5_DIGEST),
        ("amd64", AMD64_DIGEST),
        ("linux/arm/v7", None),
        ("linux/arm64", None),
    ],
)
def test_find_platform_digest(busybox_index, architecture, expected):
    manifest = Manifest.model_validate(busybox_index | {"digest": LIST_DIGEST})
    assert manifest.find_platform_digest(Platform.parse(architecture)) == expected


def test_single_manifest_digest_from_content(alpine_manifest):
    content = json.dumps(alpine_manifest).encode()
    manifest = Manifest.from_response(_response(content))
    assert not manifest.is_list()
    assert manifest.digest == f"sha256:{sha256(content).hexdigest()}"
    assert manifest.platforms() == []


def test_media_type_from_content_type(busybox_index):
    del busybox_index["mediaType"]
    manifest = Manifest.from_response(
        _response(
            json.dumps(busybox_index).encode(),
            {"Content-Type": "application/vnd.oci.image.index.v1+json"},
        )
    )
    assert manifest.mediaType == "application/vnd.oci.image.index.v1+json"
    assert manifest.is_list()


def test_list_without_media_type(busybox_index):
    del busybox_index["mediaType"]
    manifest = Manifest.from_response(
        _response(
            json.dumps(busybox_index).encode(),
            {"Content-Type": "application/json"},
        )
    )
    assert manifest.mediaType is None
    assert manifest.is_list()


@pytest.mark.parametrize("content", [b"not json", b"[]", b'{"manifests": "nope"}'])
def test_invalid_manifest(content):
    with pytest.raises(ManifestError):
        Manifest.from_response(_response(content))
