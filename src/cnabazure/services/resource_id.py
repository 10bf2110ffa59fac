"""Azure resource id and RBAC scope helpers."""

import uuid

from cnabazure.models import ResourceId


def parse_resource_id(resource_id: str) -> ResourceId:
    """Parse ``/subscriptions/<s>/resourceGroups/<g>/providers/<ns>/<type>/<name>``.

    Nested resource types are joined with ``/`` and the innermost name is kept.
    Raises ``ValueError`` for anything that does not follow that layout.
    """
    error = ValueError(f"parsing failed for {resource_id}. Invalid resource Id format")

    if not resource_id or not resource_id.startswith("/"):
        raise error

    parts = resource_id.strip("/").split("/")
    if len(parts) < 8 or len(parts) % 2 != 0 or any(not part for part in parts):
        raise error

    if parts[0].lower() != "subscriptions" or parts[2].lower() != "resourcegroups":
        raise error
    if parts[4].lower() != "providers":
        raise error

    remainder = parts[6:]
    type_segments = remainder[0::2]
    names = remainder[1::2]

    return ResourceId(
        subscription_id=parts[1],
        resource_group=parts[3],
        provider=parts[5],
        resource_type="/".join(type_segments),
        resource_name=names[-1],
        raw=resource_id,
    )


def is_guid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


def validate_scope(scope: str) -> str:
    """Validate an RBAC scope and return it unchanged.

    Accepted shapes are a subscription, a resource group within a subscription,
    or a full resource id.
    """
    if not scope.startswith("/subscriptions/"):
        raise ValueError(
            f"Scope '{scope}' should start with /subscriptions/<subscription id>."
        )

    segments = scope[1:].rstrip("/").split("/")
    subscription_id = segments[1] if len(segments) > 1 else ""
    if not is_guid(subscription_id):
        raise ValueError(f"Scope '{scope}' has an invalid subscription id '{subscription_id}'.")

    if len(segments) == 2:
        return scope

    if len(segments) == 4:
        if segments[2].lower() != "resourcegroups":
            raise ValueError(f"Scope '{scope}' is not a valid resource group scope.")
        _check_resource_group_name(scope, segments[3])
        return scope

    try:
        resource = parse_resource_id(scope)
    except ValueError as exc:
        raise ValueError(f"Scope '{scope}' is not a valid resource id: {exc}") from exc

    _check_resource_group_name(scope, resource.resource_group)
    return scope


def _check_resource_group_name(scope: str, name: str):
    if not name or name.endswith("."):
        raise ValueError(f"Scope '{scope}' has an invalid resource group name '{name}'.")
