from pydantic import BaseModel

from container_digest.oci.descriptor import Descriptor

DEFAULT_OS = "linux"
DEFAULT_ARCHITECTURE = "amd64"


class Platform(BaseModel):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/image-index.md
    """

    architecture: str
    os: str
    osVersion: str | None = None
    osFeatures: list[str] | None = None
    variant: str | None = None

    def __str__(self):
        return "/".join(
            part for part in (self.os, self.architecture, self.variant) if part
        )

    @classmethod
    def parse(cls, value: str) -> "Platform":
        """Parse an architecture string like 'linux/amd64' or 'linux/arm/v7'

        A string without a '/' is used as the architecture with the OS set
        to 'linux'. An empty architecture falls back to 'amd64'.
        Only 'arm' carries a variant, any third part of other architectures
        is ignored.
        """
        parts = value.split("/")
        os, architecture, variant = DEFAULT_OS, value, None
        if len(parts) >= 2:
            os, architecture = parts[0], parts[1]
            if len(parts) >= 3 and architecture == "arm":
                variant = parts[2]
        return cls(
            os=os,
            architecture=architecture or DEFAULT_ARCHITECTURE,
            variant=variant,
        )

    def matches(self, other: "Platform | None") -> bool:
        """Return True if `other` satisfies this (requested) platform.

        The variant is only compared when this platform specifies one.
        """
        if other is None:
            return False
        if (self.os, self.architecture) != (other.os, other.architecture):
            return False
        return not self.variant or self.variant == other.variant


class PlatformDescriptor(Descriptor):
    """
    ref: https://github.com/opencontainers/image-spec/blob/main/image-index.md
    """

    platform: Platform | None = None
