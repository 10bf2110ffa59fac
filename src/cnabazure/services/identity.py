"""Managed identity planning for the container group."""

from cnabazure.errors import DriverError
from cnabazure.models import (
    ContainerIdentity,
    DriverConfig,
    IdentityDetails,
    IdentityMode,
    RunContext,
)


class IdentityPlanner:
    """Decides which identity, role and scope the container group gets."""

    def __init__(self, logger):
        self.logger = logger

    def plan(self, config: DriverConfig, context: RunContext, cloud) -> IdentityDetails:
        if config.msi_type == IdentityMode.SYSTEM:
            scope = config.system_msi_scope or (
                f"/subscriptions/{context.subscription_id}/resourceGroups/{context.resource_group}"
            )
            self.logger.debug(
                "Using system MSI with role %s on scope %s",
                config.system_msi_role,
                scope,
            )
            return IdentityDetails(
                mode=IdentityMode.SYSTEM,
                identity=ContainerIdentity(type="SystemAssigned"),
                scope=scope,
                role=config.system_msi_role,
            )

        if config.msi_type == IdentityMode.USER:
            resource = config.user_msi_resource
            if resource is None:
                raise DriverError("User MSI requested without a resource id")

            managed_identity = cloud.for_subscription(resource.subscription_id).get_user_assigned_identity(
                resource.resource_group,
                resource.resource_name,
            )
            self.logger.debug("Using user MSI %s", managed_identity.id)
            return IdentityDetails(
                mode=IdentityMode.USER,
                identity=ContainerIdentity(
                    type="UserAssigned",
                    user_assigned_ids=(managed_identity.id,),
                ),
            )

        return IdentityDetails(mode=IdentityMode.NONE)
