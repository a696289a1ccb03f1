"""Structural differences between two template snapshots."""

from fnmatch import fnmatchcase
from typing import Any, List, Tuple

from ..models.template import PromptTemplate
from ..models.versioning import ChangeImpact, FieldChange

_MISSING = object()

# Bookkeeping fields that differ between any two versions
IGNORED_FIELDS = {"id", "version"}
IGNORED_METADATA_FIELDS = {"created_at", "updated_at"}

# First matching pattern wins. ``*`` also matches dots.
IMPACT_RULES: List[Tuple[str, ChangeImpact]] = [
    ("status", ChangeImpact.BREAKING),
    ("complexity", ChangeImpact.BREAKING),
    ("category*", ChangeImpact.BREAKING),
    ("voice_configuration.model*", ChangeImpact.BREAKING),
    ("voice_configuration.voice*", ChangeImpact.BREAKING),
    ("segments", ChangeImpact.BREAKING),
    ("segments.*.type", ChangeImpact.BREAKING),
    ("segments.*.content", ChangeImpact.BUGFIX),
    ("segments.*.validation*", ChangeImpact.BUGFIX),
    ("segments.*.character_limit*", ChangeImpact.BUGFIX),
    ("segments.*", ChangeImpact.COSMETIC),
    ("voice_configuration*", ChangeImpact.ENHANCEMENT),
    ("business_objectives*", ChangeImpact.ENHANCEMENT),
    ("use_case*", ChangeImpact.ENHANCEMENT),
    ("performance_config*", ChangeImpact.ENHANCEMENT),
    ("industry", ChangeImpact.ENHANCEMENT),
    ("name", ChangeImpact.COSMETIC),
    ("documentation*", ChangeImpact.COSMETIC),
    ("metadata*", ChangeImpact.COSMETIC),
    ("user_experience*", ChangeImpact.COSMETIC),
]


def classify_impact(path: str, old_value: Any, new_value: Any) -> ChangeImpact:
    """Classify a single difference.

    Removing a value is breaking and adding one is an enhancement. Any other
    change is classified by the first matching ``IMPACT_RULES`` pattern.
    """
    if new_value is _MISSING or (new_value is None and old_value not in (None, _MISSING)):
        return ChangeImpact.BREAKING
    if old_value is _MISSING or old_value is None:
        return ChangeImpact.ENHANCEMENT
    for pattern, impact in IMPACT_RULES:
        if fnmatchcase(path, pattern):
            return impact
    return ChangeImpact.ENHANCEMENT


def _snapshot(template: PromptTemplate) -> dict:
    data = template.model_dump(mode="json", exclude=IGNORED_FIELDS)
    for key in IGNORED_METADATA_FIELDS:
        data.get("metadata", {}).pop(key, None)
    return data


def _is_keyed_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, dict) and "id" in item for item in value)


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def _diff(path: str, old: Any, new: Any, out: List[FieldChange]) -> None:
    if old == new:
        return

    if isinstance(old, dict) and isinstance(new, dict):
        keys = list(old) + [k for k in new if k not in old]
        for key in keys:
            _diff(_join(path, key), old.get(key, _MISSING), new.get(key, _MISSING), out)
        return

    if _is_keyed_list(old) and _is_keyed_list(new) and (old or new):
        old_by_id = {item["id"]: item for item in old}
        new_by_id = {item["id"]: item for item in new}
        for item_id in list(old_by_id) + [i for i in new_by_id if i not in old_by_id]:
            _diff(
                _join(path, item_id),
                old_by_id.get(item_id, _MISSING),
                new_by_id.get(item_id, _MISSING),
                out,
            )
        shared_old = [i for i in old_by_id if i in new_by_id]
        shared_new = [i for i in new_by_id if i in old_by_id]
        if shared_old != shared_new:
            out.append(FieldChange(
                field=path,
                old_value=shared_old,
                new_value=shared_new,
                impact=classify_impact(path, shared_old, shared_new),
            ))
        return

    out.append(FieldChange(
        field=path,
        old_value=None if old is _MISSING else old,
        new_value=None if new is _MISSING else new,
        impact=classify_impact(path, old, new),
    ))


def diff_templates(old: PromptTemplate, new: PromptTemplate) -> List[FieldChange]:
    """Return the field level differences from ``old`` to ``new``.

    Entries of id-keyed lists (segments, business objectives) are matched by
    id, so their paths look like ``segments.<segment id>.content``, the same
    form accepted by field patches.
    """
    differences: List[FieldChange] = []
    _diff("", _snapshot(old), _snapshot(new), differences)
    return differences
