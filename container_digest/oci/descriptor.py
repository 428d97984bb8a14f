from pydantic import BaseModel


class Descriptor(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/descriptor.md
    """

    digest: str
    size: int | None = None
    mediaType: str | None = None
    urls: list[str] | None = None
    annotations: dict[str, str] | None = None
    artifactType: str | None = None
