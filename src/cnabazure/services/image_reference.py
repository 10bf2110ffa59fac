"""Image reference helpers."""

from cnabazure.errors import ConfigurationError

DEFAULT_REGISTRY = "docker.io"


def registry_domain(image: str) -> str:
    """Return the registry host of a docker image reference."""
    parts = image.split("/", 1)
    if len(parts) == 1:
        return DEFAULT_REGISTRY

    first = parts[0]
    if "." in first or ":" in first or first == "localhost":
        return first
    return DEFAULT_REGISTRY


def normalize_image_reference(image: str, digest: str = "") -> str:
    """Pin ``image`` to ``digest`` when one is known.

    An image already pinned to another digest is rejected.
    """
    if not digest:
        return image

    name, separator, pinned = image.partition("@")
    if separator:
        if pinned != digest:
            raise ConfigurationError(
                f"Image {image} is pinned to {pinned} but the content digest is {digest}"
            )
        return image

    return f"{_strip_tag(name)}@{digest}"


def _strip_tag(name: str) -> str:
    slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > slash:
        return name[:colon]
    return name
