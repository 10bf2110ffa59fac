"""Run-to-completion monitoring of the container group."""

import time

from cnabazure.constants import MAX_PENDING_POLLS, POLL_INTERVAL_SECONDS
from cnabazure.errors import DriverError, RunFailedError
from cnabazure.errors_catalog import actionable_error

STATE_PENDING = "Pending"
STATE_RUNNING = "Running"
STATE_SUCCEEDED = "Succeeded"
STATE_FAILED = "Failed"


class RunMonitor:
    """Polls the container group and streams its logs until a terminal state."""

    def __init__(self, logger, console, max_pending_polls: int = MAX_PENDING_POLLS):
        self.logger = logger
        self.console = console
        self.max_pending_polls = max_pending_polls

    def wait(self, cloud, resource_group: str, name: str):
        printed = 0
        started = False
        pending_polls = 0

        while True:
            state = cloud.get_container_group_state(resource_group, name)
            self.logger.debug("Container group %s is %s", name, state)

            if state == STATE_PENDING and not started:
                pending_polls += 1
                if pending_polls >= self.max_pending_polls:
                    raise RunFailedError(actionable_error("unexpected_status", state=state, name=name))
                time.sleep(POLL_INTERVAL_SECONDS)
                continue

            if state == STATE_RUNNING:
                started = True
                printed = self.drain_logs(cloud, resource_group, name, printed)
                time.sleep(POLL_INTERVAL_SECONDS)
                continue

            printed = self.drain_logs(cloud, resource_group, name, printed)

            if state == STATE_SUCCEEDED:
                self.console.print(f"[green]Container group {name} succeeded.[/green]")
                return
            if state == STATE_FAILED:
                raise RunFailedError(actionable_error("container_failed", name=name))
            raise RunFailedError(actionable_error("unexpected_status", state=state, name=name))

    def drain_logs(self, cloud, resource_group: str, name: str, printed: int) -> int:
        """Print log lines past ``printed`` and return the new cursor."""
        try:
            content = cloud.get_container_logs(resource_group, name)
        except DriverError as exc:
            self.logger.warning("Could not fetch logs for %s: %s", name, exc)
            return printed

        lines = content.splitlines()
        if len(lines) < printed:
            self.logger.debug("Log for %s shrank from %s to %s lines", name, printed, len(lines))
            return printed

        for line in lines[printed:]:
            self.console.print(line, markup=False, highlight=False)
        return len(lines)
