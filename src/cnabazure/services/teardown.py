"""Deferred cleanup of cloud resources created during a run."""

from typing import Callable, List, Tuple


class TeardownStack:
    """Runs registered cleanup actions in reverse order, never raising."""

    def __init__(self, logger, error_console):
        self.logger = logger
        self.error_console = error_console
        self._actions: List[Tuple[str, Callable[[], None]]] = []

    def push(self, description: str, action: Callable[[], None]):
        self.logger.debug("Registered cleanup: %s", description)
        self._actions.append((description, action))

    def __len__(self) -> int:
        return len(self._actions)

    def run(self) -> List[str]:
        """Run every action, newest first. Returns the descriptions that failed."""
        failures = []
        while self._actions:
            description, action = self._actions.pop()
            self.logger.debug("Running cleanup: %s", description)
            try:
                action()
            except Exception as exc:
                failures.append(description)
                self.logger.warning("Cleanup failed (%s): %s", description, exc)
                self.error_console.print(f"[yellow]Warning: failed to {description}: {exc}[/yellow]")
        return failures
