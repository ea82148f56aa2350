"""Snapshot Generation for StructureDefinitions.

A profile published with only a ``differential`` states how it differs from
its base. The engine evaluates a full element list (a ``snapshot``), built
here by overlaying each differential element onto the matching base element.

Overlay rules:
    - min, max, fixed[x], pattern[x], binding and sliceName replace the base value
    - Elements absent from the base (e.g. data type children such as
      ``DocumentReference.type.coding``) are inserted after the last element
      of their parent's subtree, with cardinality 0..* unless constrained
    - A StructureDefinition that already carries a snapshot is used as-is
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from fhir_intake.domain.ports import ArtifactLoadError
from fhir_intake.infrastructure.validation.baseline import BaselineSupport

logger = logging.getLogger(__name__)

_OVERLAY_KEYS = ("min", "max", "binding", "sliceName", "mustSupport", "short")
_CONSTRAINT_PREFIXES = ("fixed", "pattern")


@dataclass(frozen=True)
class ElementConstraint:
    """One snapshot element, reduced to what the engine evaluates.

    Attributes:
        id: Element id (contains ``:`` inside slices)
        path: Element path, e.g. ``Patient.name.family``
        min: Minimum cardinality per parent instance
        max: Maximum cardinality (``None`` for unbounded)
        fixed: Exact value required, if any
        pattern: Value the instance must contain, if any
        binding_strength: required | extensible | preferred | example
        binding_value_set: Canonical URL of the bound value set (version stripped)
        slice_name: Slice name when the element defines a slice
    """
    id: str
    path: str
    min: int = 0
    max: Optional[int] = None
    fixed: Any = None
    pattern: Any = None
    binding_strength: Optional[str] = None
    binding_value_set: Optional[str] = None
    slice_name: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return "." not in self.path

    @property
    def in_slice(self) -> bool:
        return self.slice_name is not None or ":" in self.id


def _constraint_value(element: Dict[str, Any], prefix: str) -> Any:
    for key, value in element.items():
        if key.startswith(prefix) and len(key) > len(prefix) and key[len(prefix)].isupper():
            return value
    return None


def to_constraint(element: Dict[str, Any]) -> ElementConstraint:
    """Reduce an ElementDefinition dictionary to an ElementConstraint."""
    path = element.get("path")
    if not isinstance(path, str) or not path:
        raise ArtifactLoadError(f"ElementDefinition without path: {element.get('id', '?')}")

    max_value = str(element.get("max", "*"))
    binding = element.get("binding") or {}
    value_set = binding.get("valueSet")
    if isinstance(value_set, str):
        value_set = value_set.split("|", 1)[0]

    return ElementConstraint(
        id=element.get("id", path),
        path=path,
        min=int(element.get("min", 0)),
        max=None if max_value == "*" else int(max_value),
        fixed=_constraint_value(element, "fixed"),
        pattern=_constraint_value(element, "pattern"),
        binding_strength=binding.get("strength"),
        binding_value_set=value_set,
        slice_name=element.get("sliceName"),
    )


def _overlay(base: Dict[str, Any], differential: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in differential.items():
        if key in _OVERLAY_KEYS or key.startswith(_CONSTRAINT_PREFIXES):
            merged[key] = value
    merged["id"] = differential.get("id", merged.get("id"))
    return merged


def _insert_position(elements: List[Dict[str, Any]], path: str) -> int:
    parent = path.rsplit(".", 1)[0]
    position = len(elements)
    for index, element in enumerate(elements):
        element_path = element.get("path", "")
        if element_path == parent or element_path.startswith(parent + "."):
            position = index + 1
    return position


def generate_snapshot(
    structure_definition: Dict[str, Any],
    baseline: BaselineSupport
) -> Tuple[ElementConstraint, ...]:
    """Produce the evaluated element list of a StructureDefinition.

    Parameters:
        structure_definition: Parsed StructureDefinition artifact
        baseline: Base element definitions to overlay onto

    Returns:
        Tuple of ElementConstraint in snapshot order

    Raises:
        ArtifactLoadError: If the definition has neither snapshot nor
            differential, or constrains an unsupported base type
    """
    url = structure_definition.get("url", "?")
    snapshot = (structure_definition.get("snapshot") or {}).get("element")
    if snapshot:
        logger.debug(f"Using published snapshot of {url} ({len(snapshot)} elements)")
        return tuple(to_constraint(element) for element in snapshot)

    differential = (structure_definition.get("differential") or {}).get("element")
    if not differential:
        raise ArtifactLoadError(f"StructureDefinition {url} has neither snapshot nor differential")

    resource_type = structure_definition.get("type")
    if not baseline.supports(resource_type):
        raise ArtifactLoadError(f"StructureDefinition {url} constrains unsupported type {resource_type!r}")

    elements = baseline.elements_for(resource_type)
    for diff in differential:
        path = diff.get("path")
        element_id = diff.get("id", path)
        match = next(
            (i for i, element in enumerate(elements) if element.get("id") == element_id),
            None,
        )
        if match is None and diff.get("sliceName") is None and ":" not in element_id:
            match = next(
                (i for i, element in enumerate(elements)
                 if element.get("path") == path and element.get("sliceName") is None),
                None,
            )
        if match is not None:
            elements[match] = _overlay(elements[match], diff)
        else:
            new_element = _overlay({"id": element_id, "path": path, "min": 0, "max": "*"}, diff)
            elements.insert(_insert_position(elements, path), new_element)

    logger.debug(f"Generated snapshot of {url}: {len(elements)} elements from {len(differential)} differential")
    return tuple(to_constraint(element) for element in elements)
