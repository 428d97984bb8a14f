import re
from dataclasses import dataclass

# ref: https://github.com/distribution/reference/blob/main/reference.go
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = (
    rf"(?:{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*|\[[a-fA-F0-9:]+\])"
    r"(?::[0-9]+)?"
)
_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"

DOMAIN_PATTERN = re.compile(rf"^{_DOMAIN}$")
REPOSITORY_PATTERN = re.compile(rf"^{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*$")
TAG_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")

NAME_MAX_LENGTH = 255


class InvalidReferenceError(ValueError):
    """Raised when a registry, repository and tag do not form a valid reference."""


@dataclass(frozen=True, slots=True)
class Reference:
    """Canonical image reference: <registry>/<repository>:<tag>"""

    registry: str
    repository: str
    tag: str

    def __post_init__(self):
        if not DOMAIN_PATTERN.match(self.registry):
            raise InvalidReferenceError(f"Invalid registry host: '{self.registry}'")
        if not REPOSITORY_PATTERN.match(self.repository):
            raise InvalidReferenceError(
                f"Invalid repository name: '{self.repository}'"
            )
        if len(self.registry) + 1 + len(self.repository) > NAME_MAX_LENGTH:
            raise InvalidReferenceError(
                f"Repository name must not be more than {NAME_MAX_LENGTH} characters"
            )
        if not TAG_PATTERN.match(self.tag):
            raise InvalidReferenceError(f"Invalid tag: '{self.tag}'")

    def __str__(self):
        return f"{self.registry}/{self.repository}:{self.tag}"
