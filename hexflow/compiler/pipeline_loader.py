"""Pipeline manifest loader.

Builds :class:`PipelineDefinition` objects from declarative YAML manifests::

    kind: Pipeline
    metadata:
      name: content-factory
      description: Draft, review and publish one asset
    spec:
      stages:
        - id: draft
          name: Draft
          timeout_ms: 30000
        - id: review
          name: Review
          requires_confirm: true

A file may hold several documents separated by ``---``; documents of any
other ``kind`` (e.g. ``Config``) are skipped. Handlers are not part of the
manifest; they are registered in code by ``stage_id``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from hexflow.kernel.domain.pipeline import PipelineDefinition, PipelineStage
from hexflow.kernel.exceptions import ConfigurationError, ValidationError
from hexflow.kernel.logging import get_logger

logger = get_logger(__name__)

PIPELINE_KIND = "Pipeline"
_MANIFEST_SUFFIXES = (".yaml", ".yml")


def _parse_stage(entry: Any, index: int, source: str) -> PipelineStage:
    if not isinstance(entry, dict):
        raise ValidationError(f"spec.stages[{index}]", "must be a mapping", entry)
    if "id" not in entry:
        raise ValidationError(f"spec.stages[{index}].id", "is required")

    unknown = set(entry) - {"id", "name", "requires_confirm", "timeout_ms"}
    if unknown:
        raise ValidationError(
            f"spec.stages[{index}]", f"unknown keys in {source}", sorted(unknown)
        )

    try:
        return PipelineStage(
            stage_id=str(entry["id"]),
            stage_name=str(entry.get("name", entry["id"])),
            requires_confirm=entry.get("requires_confirm", False),
            timeout_ms=entry.get("timeout_ms"),
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(
            f"spec.stages[{index}].{'.'.join(str(p) for p in first['loc'])}",
            first["msg"],
            first.get("input"),
        ) from e


def parse_pipeline_manifest(document: dict[str, Any], source: str = "<string>") -> PipelineDefinition:
    """Convert one ``kind: Pipeline`` document into a definition.

    Raises
    ------
    ValidationError
        If required fields are missing, stage entries are malformed or
        stage ids repeat
    """
    if document.get("kind") != PIPELINE_KIND:
        raise ValidationError("kind", f"expected '{PIPELINE_KIND}'", document.get("kind"))

    metadata = document.get("metadata") or {}
    spec = document.get("spec") or {}
    if not isinstance(metadata, dict) or not isinstance(spec, dict):
        raise ValidationError("metadata/spec", f"must be mappings in {source}")

    name = metadata.get("name")
    if not name:
        raise ValidationError("metadata.name", "is required")

    stages_data = spec.get("stages") or []
    if not isinstance(stages_data, list):
        raise ValidationError("spec.stages", "must be a list", stages_data)

    stages = tuple(_parse_stage(entry, i, source) for i, entry in enumerate(stages_data))
    try:
        return PipelineDefinition(
            pipeline_id=str(spec.get("pipeline_id") or name),
            name=str(spec.get("name") or metadata.get("description") or name),
            stages=stages,
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(
            ".".join(str(p) for p in first["loc"]) or "pipeline", first["msg"]
        ) from e


def load_pipeline_manifests(content: str, source: str = "<string>") -> list[PipelineDefinition]:
    """Parse every ``kind: Pipeline`` document in a YAML string."""
    try:
        documents = list(yaml.safe_load_all(content))
    except yaml.YAMLError as e:
        raise ConfigurationError(source, f"invalid YAML: {e}") from e

    definitions = []
    for document in documents:
        if document is None:
            continue
        if not isinstance(document, dict):
            raise ConfigurationError(
                source, f"expected a mapping document, got {type(document).__name__}"
            )
        if document.get("kind") != PIPELINE_KIND:
            logger.debug(
                "Skipping '{kind}' document in {source}", kind=document.get("kind"), source=source
            )
            continue
        definitions.append(parse_pipeline_manifest(document, source))
    return definitions


def load_pipeline_definitions(path: str | Path) -> list[PipelineDefinition]:
    """Load pipeline definitions from a manifest file or a directory of them.

    Parameters
    ----------
    path : str | Path
        A ``.yaml``/``.yml`` file, or a directory scanned (non-recursively,
        in name order) for such files

    Returns
    -------
    list[PipelineDefinition]
        Definitions in file and document order

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    ValidationError
        If a manifest is malformed, or two manifests share a ``pipeline_id``
    """
    root = Path(path)
    if not root.exists():
        raise FileNotFoundError(f"Pipeline manifest not found: {root}")

    if root.is_dir():
        files = sorted(p for p in root.iterdir() if p.suffix in _MANIFEST_SUFFIXES)
    else:
        files = [root]

    definitions: list[PipelineDefinition] = []
    seen: dict[str, Path] = {}
    for file in files:
        for definition in load_pipeline_manifests(file.read_text(encoding="utf-8"), str(file)):
            if definition.pipeline_id in seen:
                raise ValidationError(
                    "pipeline_id",
                    f"defined in both {seen[definition.pipeline_id]} and {file}",
                    definition.pipeline_id,
                )
            seen[definition.pipeline_id] = file
            definitions.append(definition)

    logger.info(
        "Loaded {count} pipeline definitions from {path}", count=len(definitions), path=root
    )
    return definitions
