"""Resource group and region provisioning."""

from cnabazure.constants import CONTAINER_GROUPS_RESOURCE_TYPE, CONTAINER_INSTANCE_PROVIDER
from cnabazure.errors import UnsupportedRegionError
from cnabazure.errors_catalog import actionable_error
from cnabazure.models import DriverConfig, RunContext


def normalize_location(location: str) -> str:
    return (location or "").replace(" ", "").lower()


class ResourceProvisioner:
    """Makes sure the run has a resource group in a region that offers container instances."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def provision(self, config: DriverConfig, cloud, subscription_id: str, teardown) -> RunContext:
        location = config.location
        if not config.create_resource_group:
            group = cloud.get_resource_group(config.resource_group)
            self.logger.debug("Using existing resource group %s in %s", group.name, group.location)
            if not location:
                location = normalize_location(group.location)

        self.check_region(cloud, location)

        if config.create_resource_group:
            self.console.print(
                f"[blue]Creating resource group {config.resource_group} in {location}...[/blue]"
            )
            cloud.create_resource_group(config.resource_group, location)
            if config.cleanup_enabled:
                teardown.push(
                    f"delete resource group {config.resource_group}",
                    lambda: self._delete_resource_group(cloud, config.resource_group),
                )

        return RunContext(
            subscription_id=subscription_id,
            resource_group=config.resource_group,
            location=location,
            instance_name=config.instance_name,
            created_resource_group=config.create_resource_group,
        )

    def check_region(self, cloud, location: str):
        locations = cloud.get_provider_locations(
            CONTAINER_INSTANCE_PROVIDER,
            CONTAINER_GROUPS_RESOURCE_TYPE,
        )
        supported = {normalize_location(item) for item in locations}
        if normalize_location(location) not in supported:
            raise UnsupportedRegionError(actionable_error("unsupported_region", location=location))

    def _delete_resource_group(self, cloud, name: str):
        self.console.print(f"[blue]Deleting resource group {name}...[/blue]")
        cloud.delete_resource_group(name)
