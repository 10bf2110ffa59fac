"""Moves input files into the container and outputs back out of the state share."""

import base64
from pathlib import PurePosixPath
from typing import Dict, Mapping

from cnabazure.constants import BUNDLE_OUTPUTS_DIR
from cnabazure.errors import DriverError, IOBridgeError, MissingStateStoreError
from cnabazure.errors_catalog import actionable_error
from cnabazure.models import Operation


def _b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8", errors="surrogateescape")).decode("ascii")


def outputs_directory(root: str, operation: Operation) -> str:
    """Directory holding the outputs of ``operation`` below ``root``."""
    return str(PurePosixPath(root) / operation.bundle_name / operation.installation / "outputs")


def relative_output_path(path: str) -> str:
    output_path = PurePosixPath(path)
    try:
        return str(output_path.relative_to(BUNDLE_OUTPUTS_DIR))
    except ValueError:
        return output_path.name


class IOBridge:
    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def encode_files(files: Mapping[str, str]) -> Dict[str, str]:
        """Flatten ``files`` into ``path<n>``/``value<n>`` secret entries, ordered by path."""
        secrets = {}
        for index, path in enumerate(sorted(files)):
            secrets[f"path{index}"] = _b64(path)
            secrets[f"value{index}"] = _b64(files[path])
        return secrets

    @staticmethod
    def require_store(operation: Operation, has_store: bool):
        if operation.outputs and not has_store:
            raise MissingStateStoreError(
                actionable_error("missing_state_store", count=str(len(operation.outputs)))
            )

    @staticmethod
    def store_path(operation: Operation, output_path: str) -> str:
        return str(
            PurePosixPath(
                operation.bundle_name,
                operation.installation,
                "outputs",
                relative_output_path(output_path),
            )
        )

    def collect_outputs(self, operation: Operation, store, delete_after_read: bool) -> Dict[str, str]:
        results = {}
        for name, path in sorted(operation.outputs.items()):
            if not operation.output_applies(name):
                self.logger.debug("Output %s does not apply to action %s", name, operation.action)
                continue

            store_path = self.store_path(operation, path)
            try:
                if not store.exists(store_path):
                    self.logger.debug("Output %s not found at %s", name, store_path)
                    continue
                results[name] = store.read(store_path)
            except DriverError as exc:
                raise IOBridgeError(f"Failed to read output {name} from {store_path}: {exc}") from exc

            if delete_after_read:
                try:
                    store.delete(store_path)
                except DriverError as exc:
                    self.logger.warning("Failed to delete output %s from %s: %s", name, store_path, exc)

        if results:
            self.console.print(f"[blue]Collected {len(results)} output(s) from the state share.[/blue]")
        return results
