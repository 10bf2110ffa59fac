"""Role assignment for system assigned identities."""

import time
import uuid

from cnabazure.constants import ROLE_ASSIGNMENT_ATTEMPTS, ROLE_ASSIGNMENT_BACKOFF_SECONDS
from cnabazure.errors import DriverError, RoleAssignmentError, RoleNotFoundError
from cnabazure.errors_catalog import actionable_error


class RoleBinder:
    """Grants a role to a freshly created principal, waiting out AAD replication."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def bind(self, cloud, role: str, scope: str, principal_id: str):
        definition = self.find_role_definition(cloud, role, scope)

        self.console.print(f"[blue]Assigning role {role} on {scope}...[/blue]")
        last_error = None
        for attempt in range(1, ROLE_ASSIGNMENT_ATTEMPTS + 1):
            try:
                cloud.create_role_assignment(scope, str(uuid.uuid4()), definition.id, principal_id)
                self.logger.debug("Role %s assigned to %s on %s", role, principal_id, scope)
                return
            except DriverError as exc:
                last_error = exc
                if attempt < ROLE_ASSIGNMENT_ATTEMPTS:
                    self.logger.warning(
                        "Role assignment failed on attempt %s/%s. Retrying in %.1fs: %s",
                        attempt,
                        ROLE_ASSIGNMENT_ATTEMPTS,
                        ROLE_ASSIGNMENT_BACKOFF_SECONDS,
                        exc,
                    )
                    time.sleep(ROLE_ASSIGNMENT_BACKOFF_SECONDS)

        raise RoleAssignmentError(
            f"Failed to assign role {role} to {principal_id} on {scope} after "
            f"{ROLE_ASSIGNMENT_ATTEMPTS} attempts: {last_error}"
        ) from last_error

    def find_role_definition(self, cloud, role: str, scope: str):
        """Role definition named exactly ``role`` that is assignable at ``scope``."""
        for definition in cloud.list_role_definitions(scope):
            if definition.role_name == role:
                self.logger.debug("Role %s resolved to %s", role, definition.id)
                return definition
        raise RoleNotFoundError(actionable_error("role_not_found", role=role, scope=scope))
