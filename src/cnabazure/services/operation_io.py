"""CNAB command driver protocol: operation input and output files."""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from cnabazure.errors import DriverError
from cnabazure.models import (
    BundleInfo,
    InvocationImage,
    Operation,
    OperationResult,
    OutputDefinition,
)

OUTPUT_DIR_ENV = "CNAB_OUTPUT_DIR"


class OperationIO:
    """Reads the operation handed over by the orchestrator and writes results back."""

    def __init__(self, logger):
        self.logger = logger

    def read_operation(self, stream) -> Operation:
        raw = stream.read()
        if not raw or not raw.strip():
            raise DriverError("No operation was passed to the driver on stdin")

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DriverError(f"Failed to parse operation from stdin: {exc}") from exc

        if not isinstance(payload, dict):
            raise DriverError("Operation passed on stdin must be a JSON object")
        return self.parse_operation(payload)

    def parse_operation(self, payload: Mapping[str, Any]) -> Operation:
        image_payload = payload.get("image") or {}
        if isinstance(image_payload, str):
            image_payload = {"image": image_payload}

        image = InvocationImage(
            image=image_payload.get("image", ""),
            image_type=image_payload.get("imageType") or "docker",
            digest=image_payload.get("contentDigest") or image_payload.get("digest") or "",
        )
        if not image.image:
            raise DriverError("Operation does not specify an invocation image")

        # path -> name on the wire
        outputs = {name: path for path, name in (payload.get("outputs") or {}).items()}

        return Operation(
            action=payload.get("action", ""),
            installation=payload.get("installation_name", ""),
            image=image,
            revision=payload.get("revision", ""),
            parameters=dict(payload.get("parameters") or {}),
            environment={key: str(value) for key, value in (payload.get("environment") or {}).items()},
            files=dict(payload.get("files") or {}),
            outputs=outputs,
            bundle=self._parse_bundle(payload.get("bundle")),
        )

    @staticmethod
    def _parse_bundle(payload: Optional[Mapping[str, Any]]) -> Optional[BundleInfo]:
        if not payload:
            return None

        definitions: Dict[str, OutputDefinition] = {}
        for name, output in (payload.get("outputs") or {}).items():
            apply_to = tuple((output or {}).get("applyTo") or ())
            definitions[name] = OutputDefinition(name=name, apply_to=apply_to)

        return BundleInfo(
            name=payload.get("name", ""),
            version=payload.get("version", ""),
            outputs=definitions,
        )

    def output_directory(self, operation: Operation, environ: Mapping[str, str]) -> Optional[Path]:
        if not operation.outputs:
            return None

        value = environ.get(OUTPUT_DIR_ENV, "")
        if not value:
            raise DriverError(
                f"Bundle has {len(operation.outputs)} outputs but {OUTPUT_DIR_ENV} is not set"
            )

        path = Path(value)
        if not path.is_dir():
            raise DriverError(f"{OUTPUT_DIR_ENV}: {value} does not exist")
        return path

    def write_outputs(self, result: OperationResult, output_dir: Optional[Path]):
        if output_dir is None:
            return

        for name, content in result.outputs.items():
            target = output_dir / name
            self.logger.debug("Writing output %s to %s", name, target)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content.encode("utf-8", errors="surrogateescape"))
            except OSError as exc:
                raise DriverError(f"Failed to write output {name} to {target}: {exc}") from exc
