"""Typed, path-addressed patches of template content.

A ``FieldChange.field`` such as ``voice_configuration.voice.voice_id`` or
``segments.greeting.content`` is resolved against the pydantic schema of
``PromptTemplate`` one step at a time. Each step must name a declared model
field, a key of a mapping field, or the id of an entry in a list of models
that carry an ``id`` (segments, business objectives). The patched document
is validated by the model again, so a change can never produce content the
schema would reject.
"""

import typing
from typing import Any, Iterable, List, Tuple

import pydantic
import structlog
from pydantic import BaseModel

from ..core.exceptions import InvalidChangeError
from ..models.template import PromptTemplate
from ..models.versioning import FieldChange

logger = structlog.get_logger(__name__)

# Managed by the versioning service, never by callers
PROTECTED_FIELDS = frozenset({"id", "version"})


def _unwrap_optional(annotation: Any) -> Any:
    if typing.get_origin(annotation) is typing.Union:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def _keyed_list_item(annotation: Any):
    """Return the item model of a ``List[Model]`` whose model has an ``id`` field."""
    if typing.get_origin(annotation) in (list, List):
        args = typing.get_args(annotation)
        if args and _is_model(args[0]) and "id" in args[0].model_fields:
            return args[0]
    return None


def _mapping_value(annotation: Any):
    if typing.get_origin(annotation) in (dict, typing.Dict):
        args = typing.get_args(annotation)
        return args[1] if len(args) == 2 else Any
    return None


def _step(container: Any, annotation: Any, key: str, path: str) -> Tuple[Any, Any, Any]:
    """Resolve one path step.

    Returns ``(parent, slot, annotation)`` where ``parent[slot]`` is the
    location addressed by ``key``.
    """
    annotation = _unwrap_optional(annotation)

    if _is_model(annotation):
        if key not in annotation.model_fields:
            raise InvalidChangeError(
                f"Unknown field '{key}' in path '{path}'",
                field=path,
            )
        return container, key, annotation.model_fields[key].annotation

    item_model = _keyed_list_item(annotation)
    if item_model is not None:
        for index, item in enumerate(container):
            if item.get("id") == key:
                return container, index, item_model
        raise InvalidChangeError(
            f"No entry with id '{key}' in path '{path}'",
            field=path,
        )

    value_annotation = _mapping_value(annotation)
    if value_annotation is not None:
        return container, key, value_annotation

    raise InvalidChangeError(
        f"Cannot address '{key}' inside a scalar value in path '{path}'",
        field=path,
    )


def apply_field_changes(template: PromptTemplate, changes: Iterable[FieldChange]) -> PromptTemplate:
    """Apply field changes to a copy of ``template`` and return the result.

    Raises:
        InvalidChangeError: If a path does not exist in the schema or the
            patched content fails model validation.
    """
    changes = list(changes)
    data = template.model_dump(mode="python")

    for change in changes:
        path = change.field
        keys = path.split(".")
        if keys[0] in PROTECTED_FIELDS:
            raise InvalidChangeError(f"Field '{keys[0]}' cannot be changed directly", field=path)

        container: Any = data
        annotation: Any = PromptTemplate
        for key in keys[:-1]:
            parent, slot, annotation = _step(container, annotation, key, path)
            current = parent[slot] if isinstance(parent, list) else parent.get(slot)
            if current is None:
                # Intermediate optional section, created on demand
                parent[slot] = {}
            container = parent[slot]
            if not isinstance(container, (dict, list)):
                raise InvalidChangeError(f"Cannot descend into '{key}' in path '{path}'", field=path)

        parent, slot, _ = _step(container, annotation, keys[-1], path)
        parent[slot] = change.new_value

    try:
        return PromptTemplate.model_validate(data)
    except pydantic.ValidationError as e:
        logger.warning(
            "Field changes rejected by template schema",
            fields=[change.field for change in changes],
            error=str(e),
        )
        raise InvalidChangeError(
            f"Field changes produce an invalid template: {e.errors()[0]['msg']}",
            field=".".join(str(loc) for loc in e.errors()[0]["loc"]),
        ) from e
