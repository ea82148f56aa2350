"""Structural Profile Validator.

Rule evaluator implementing ProfileValidatorPort. A validation run chains:

1. Pre-populated support: resolves the requested profile (by canonical URL
   or id) from the loaded definitions; a fresh support holding exactly that
   one StructureDefinition is built for each call
2. Baseline support: base JSON Schema checks (data types, primitive formats)
3. Snapshot evaluation: per element cardinality, fixed/pattern values and
   bindings (through TerminologySupport)

Not evaluated: slices and FHIRPath invariants.

Severity mapping:
    - cardinality, fixed/pattern mismatch, required binding failure: error
    - extensible binding failure: warning
    - binding to a value set that is not available: info

Thread Safety:
    Snapshots are generated once at construction and never mutated; each
    ``validate`` call accumulates issues in its own ValidationContext.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fhir_intake.domain.ports import ProfileValidatorPort
from fhir_intake.domain.validation import IssueSeverity, ValidationIssue, ValidationResult
from fhir_intake.infrastructure.validation.baseline import BaselineSupport
from fhir_intake.infrastructure.validation.snapshot import ElementConstraint, generate_snapshot
from fhir_intake.infrastructure.validation.terminology_support import TerminologySupport

logger = logging.getLogger(__name__)

Located = Tuple[str, Any]


# ============================================================================
# Per-call Support and Context
# ============================================================================

@dataclass(frozen=True)
class PrePopulatedSupport:
    """Holds exactly one StructureDefinition and its snapshot."""
    definition: Mapping[str, Any]
    snapshot: Tuple[ElementConstraint, ...]

    @property
    def url(self) -> str:
        return self.definition.get("url", "")

    @property
    def resource_type(self) -> Optional[str]:
        return self.definition.get("type")


@dataclass
class ValidationContext:
    """Mutable state of one validation call."""
    support: PrePopulatedSupport
    issues: List[ValidationIssue] = field(default_factory=list)

    def add(self, severity: IssueSeverity, location: str, message: str) -> None:
        self.issues.append(ValidationIssue(severity, location, message))

    def result(self) -> ValidationResult:
        return ValidationResult.from_issues(self.issues)


# ============================================================================
# Path Navigation
# ============================================================================

def _matching_keys(node: Dict[str, Any], segment: str) -> List[str]:
    if segment.endswith("[x]"):
        prefix = segment[:-3]
        return [
            key for key in node
            if key.startswith(prefix) and len(key) > len(prefix) and key[len(prefix)].isupper()
        ]
    return [segment] if segment in node else []


def _children(location: str, node: Any, segment: str) -> List[Located]:
    if not isinstance(node, dict):
        return []
    found: List[Located] = []
    for key in _matching_keys(node, segment):
        value = node[key]
        if isinstance(value, list):
            found.extend((f"{location}.{key}[{i}]", item) for i, item in enumerate(value))
        else:
            found.append((f"{location}.{key}", value))
    return found


def resolve(resource: Dict[str, Any], path: str) -> List[Located]:
    """Collect every (location, value) at an element path.

    Example:
        >>> resolve({"name": [{"given": ["A", "B"]}]}, "Patient.name.given")
        [('Patient.name[0].given[0]', 'A'), ('Patient.name[0].given[1]', 'B')]
    """
    segments = path.split(".")
    nodes: List[Located] = [(segments[0], resource)]
    for segment in segments[1:]:
        nodes = [child for location, node in nodes for child in _children(location, node, segment)]
    return nodes


def matches_pattern(pattern: Any, value: Any) -> bool:
    """Check that ``value`` contains everything ``pattern`` specifies."""
    if isinstance(pattern, dict):
        return isinstance(value, dict) and all(
            key in value and matches_pattern(expected, value[key])
            for key, expected in pattern.items()
        )
    if isinstance(pattern, list):
        items = value if isinstance(value, list) else [value]
        return all(any(matches_pattern(expected, item) for item in items) for expected in pattern)
    return pattern == value


def _codings(value: Any) -> List[Tuple[Optional[str], Optional[str]]]:
    if isinstance(value, str):
        return [(None, value)]
    if isinstance(value, dict):
        if "coding" in value:
            return [(c.get("system"), c.get("code")) for c in value.get("coding") or [] if isinstance(c, dict)]
        if "code" in value:
            return [(value.get("system"), value.get("code"))]
    return []


# ============================================================================
# Structure Validator
# ============================================================================

class StructureValidator(ProfileValidatorPort):
    """Profile validation against a fixed set of loaded StructureDefinitions.

    Parameters:
        definitions: Parsed StructureDefinition artifacts
        terminology: Binding lookups
        baseline: Base resource support (default: built-in baseline)

    Raises:
        ArtifactLoadError: If a definition cannot be turned into a snapshot
    """

    def __init__(
        self,
        definitions: Iterable[Dict[str, Any]],
        terminology: TerminologySupport,
        baseline: Optional[BaselineSupport] = None
    ):
        self.baseline = baseline or BaselineSupport()
        self.terminology = terminology

        supports: Dict[str, PrePopulatedSupport] = {}
        for definition in definitions:
            support = PrePopulatedSupport(
                definition=MappingProxyType(dict(definition)),
                snapshot=generate_snapshot(definition, self.baseline),
            )
            supports[support.url] = support
            if definition.get("id"):
                supports[definition["id"]] = support
        self._supports = MappingProxyType(supports)

    @property
    def profile_urls(self) -> Tuple[str, ...]:
        return tuple(sorted({support.url for support in self._supports.values()}))

    def validate(self, resource: dict, profile_id: str) -> ValidationResult:
        resource_type = resource.get("resourceType") if isinstance(resource, dict) else None
        root = resource_type or "Resource"

        support = self._supports.get(profile_id)
        if support is None:
            logger.error(f"Validation requested against unknown profile {profile_id}")
            return ValidationResult.from_issues([ValidationIssue(
                IssueSeverity.ERROR, root, f"Profile reference '{profile_id}' could not be resolved"
            )])

        context = ValidationContext(support=support)
        if resource_type != support.resource_type:
            context.add(
                IssueSeverity.ERROR,
                root,
                f"Resource type {resource_type!r} does not match profile type {support.resource_type!r} "
                f"of {support.url}",
            )
            return context.result()

        context.issues.extend(self.baseline.validate_schema(resource, resource_type))
        for element in support.snapshot:
            if element.is_root:
                continue
            if element.in_slice:
                continue
            self._check_cardinality(context, resource, element)
            values = resolve(resource, element.path)
            if element.fixed is not None or element.pattern is not None:
                self._check_values(context, values, element)
            if element.binding_value_set is not None:
                self._check_binding(context, values, element)

        result = context.result()
        logger.debug(
            f"Validated {resource_type} against {support.url}: "
            f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
        )
        return result

    def _check_cardinality(
        self,
        context: ValidationContext,
        resource: Dict[str, Any],
        element: ElementConstraint
    ) -> None:
        parent_path, segment = element.path.rsplit(".", 1)
        for location, parent in resolve(resource, parent_path):
            if not isinstance(parent, dict):
                continue
            count = len(_children(location, parent, segment))
            if count < element.min:
                context.add(
                    IssueSeverity.ERROR,
                    location,
                    f"{element.path}: minimum required = {element.min}, but only found {count} "
                    f"(from {context.support.url})",
                )
            if element.max is not None and count > element.max:
                context.add(
                    IssueSeverity.ERROR,
                    location,
                    f"{element.path}: max allowed = {element.max}, but found {count} "
                    f"(from {context.support.url})",
                )

    def _check_values(self, context: ValidationContext, values: List[Located], element: ElementConstraint) -> None:
        for location, value in values:
            if element.fixed is not None and value != element.fixed:
                context.add(IssueSeverity.ERROR, location, f"Value must be exactly {element.fixed!r}")
            if element.pattern is not None and not matches_pattern(element.pattern, value):
                context.add(
                    IssueSeverity.ERROR,
                    location,
                    f"Value does not match the required pattern {element.pattern!r}",
                )

    def _check_binding(self, context: ValidationContext, values: List[Located], element: ElementConstraint) -> None:
        strength = element.binding_strength
        value_set = element.binding_value_set
        if strength not in ("required", "extensible") or not values:
            return

        if not self.terminology.knows(value_set):
            context.add(
                IssueSeverity.INFO,
                values[0][0],
                f"ValueSet {value_set} is not available; binding for {element.path} was not checked",
            )
            return

        severity = IssueSeverity.ERROR if strength == "required" else IssueSeverity.WARNING
        for location, value in values:
            codings = [(system, code) for system, code in _codings(value) if code]
            if not codings:
                continue
            if any(self.terminology.validate_code(value_set, system, code) for system, code in codings):
                continue
            codes = ", ".join(code for _, code in codings)
            context.add(
                severity,
                location,
                f"None of the codes provided ({codes}) are in the value set {value_set} "
                f"({strength} binding)",
            )
