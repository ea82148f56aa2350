"""Terminology Store - Code System and Value Set Membership.

This module builds the read-only terminology index from CodeSystem and
ValueSet artifacts and answers code-membership queries for the intake
pipeline and the structural profile engine.

Index layout:
    - Each code system's concept tree is stored as an arena: a flat tuple of
      nodes, each holding its code and a tuple of child indices, plus the
      indices of the root concepts. Membership is an explicit-stack
      depth-first search, so nesting depth never hits the recursion limit.
    - Each value set is stored as the frozenset of codes in its expansion's
      ``contains`` list (nested ``contains`` entries included). A value set
      without an expansion contains no codes.

Security Impact:
    - The index is immutable after construction and safe for concurrent reads
    - Rejection messages name the code and the rejecting artifact only

Architecture:
    - Infrastructure adapter implementing TerminologyPort
    - Built once during the startup phase; never reloaded
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fhir_intake.domain.ports import ArtifactLoadError, TerminologyError, TerminologyPort

logger = logging.getLogger(__name__)


# ============================================================================
# Index Structures
# ============================================================================

@dataclass(frozen=True)
class ConceptNode:
    """One concept in a code system arena."""
    code: str
    display: Optional[str]
    children: Tuple[int, ...]


@dataclass(frozen=True)
class ConceptTree:
    """Arena-backed concept tree of one code system.

    Attributes:
        url: Canonical URL of the code system
        version: Business version of the code system
        nodes: All concepts, parents before children
        roots: Indices of the top-level concepts
    """
    url: str
    version: Optional[str]
    nodes: Tuple[ConceptNode, ...]
    roots: Tuple[int, ...]

    def contains(self, code: str) -> bool:
        """Depth-first search for a code from the root concepts."""
        stack = list(reversed(self.roots))
        while stack:
            node = self.nodes[stack.pop()]
            if node.code == code:
                return True
            stack.extend(reversed(node.children))
        return False

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass(frozen=True)
class ValueSetExpansion:
    """Flattened expansion of one value set."""
    url: str
    version: Optional[str]
    codes: frozenset

    def contains(self, code: str) -> bool:
        return code in self.codes


@dataclass(frozen=True)
class TerminologyIndex:
    """Immutable mapping of canonical URLs to concept trees and expansions."""
    code_systems: Mapping[str, ConceptTree] = field(default_factory=lambda: MappingProxyType({}))
    value_sets: Mapping[str, ValueSetExpansion] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_artifacts(
        cls,
        code_systems: Iterable[Dict[str, Any]],
        value_sets: Iterable[Dict[str, Any]]
    ) -> 'TerminologyIndex':
        """Build the index from parsed CodeSystem and ValueSet artifacts.

        Raises:
            ArtifactLoadError: If an artifact has no canonical URL
        """
        trees = {}
        for artifact in code_systems:
            tree = build_concept_tree(artifact)
            trees[tree.url] = tree
        expansions = {}
        for artifact in value_sets:
            expansion = build_value_set_expansion(artifact)
            expansions[expansion.url] = expansion
        return cls(
            code_systems=MappingProxyType(trees),
            value_sets=MappingProxyType(expansions),
        )


# ============================================================================
# Index Construction
# ============================================================================

def _require_url(artifact: Dict[str, Any], kind: str) -> str:
    url = artifact.get("url")
    if not isinstance(url, str) or not url:
        raise ArtifactLoadError(f"{kind} artifact '{artifact.get('id', '?')}' has no canonical url")
    return url


def build_concept_tree(artifact: Dict[str, Any]) -> ConceptTree:
    """Flatten a CodeSystem's nested ``concept`` lists into an arena.

    Nodes are allocated in breadth-first order so every parent index is
    smaller than its children's.
    """
    url = _require_url(artifact, "CodeSystem")

    codes: List[Tuple[str, Optional[str]]] = []
    children: List[List[int]] = []
    pending: List[Tuple[Optional[int], Dict[str, Any]]] = []
    roots: List[int] = []

    for concept in artifact.get("concept", []) or []:
        pending.append((None, concept))

    cursor = 0
    while cursor < len(pending):
        parent, concept = pending[cursor]
        cursor += 1
        code = concept.get("code")
        if not isinstance(code, str) or not code:
            logger.warning(f"Skipping concept without code in CodeSystem {url}")
            continue
        index = len(codes)
        codes.append((code, concept.get("display")))
        children.append([])
        if parent is None:
            roots.append(index)
        else:
            children[parent].append(index)
        for child in concept.get("concept", []) or []:
            pending.append((index, child))

    nodes = tuple(
        ConceptNode(code=code, display=display, children=tuple(children[i]))
        for i, (code, display) in enumerate(codes)
    )
    return ConceptTree(url=url, version=artifact.get("version"), nodes=nodes, roots=tuple(roots))


def build_value_set_expansion(artifact: Dict[str, Any]) -> ValueSetExpansion:
    """Collect the codes of a ValueSet's ``expansion.contains`` list.

    Compose/include rules are not evaluated.
    """
    url = _require_url(artifact, "ValueSet")
    codes = set()
    stack = list((artifact.get("expansion") or {}).get("contains", []) or [])
    while stack:
        entry = stack.pop()
        code = entry.get("code")
        if isinstance(code, str) and code:
            codes.add(code)
        stack.extend(entry.get("contains", []) or [])

    if "expansion" not in artifact:
        logger.warning(f"ValueSet {url} has no expansion; it will contain no codes")
    return ValueSetExpansion(url=url, version=artifact.get("version"), codes=frozenset(codes))


# ============================================================================
# Terminology Store
# ============================================================================

class TerminologyStore(TerminologyPort):
    """TerminologyPort backed by an immutable TerminologyIndex.

    Example Usage:
        ```python
        store = TerminologyStore(TerminologyIndex.from_artifacts([cs], [vs]))
        store.is_code_valid(KDL_CODE_SYSTEM_URL, KDL_VALUE_SET_URL, "PT130102")
        ```
    """

    def __init__(self, index: TerminologyIndex):
        self._index = index

    @property
    def index(self) -> TerminologyIndex:
        return self._index

    def contains_in_code_system(self, code_system_id: str, code: str) -> bool:
        tree = self._index.code_systems.get(code_system_id)
        return tree is not None and tree.contains(code)

    def contains_in_value_set(self, value_set_id: str, code: str) -> bool:
        expansion = self._index.value_sets.get(value_set_id)
        return expansion is not None and expansion.contains(code)

    def has_code_system(self, code_system_id: str) -> bool:
        return code_system_id in self._index.code_systems

    def has_value_set(self, value_set_id: str) -> bool:
        return value_set_id in self._index.value_sets

    def is_code_valid(self, code_system_id: str, value_set_id: str, code: str) -> bool:
        return (
            self.contains_in_code_system(code_system_id, code)
            and self.contains_in_value_set(value_set_id, code)
        )

    def ensure_code_valid(self, code_system_id: str, value_set_id: str, code: str) -> None:
        """Check a code against both artifacts.

        Raises:
            TerminologyError: Naming the code system or the value set,
                whichever rejected the code first
        """
        if not self.contains_in_code_system(code_system_id, code):
            raise TerminologyError(
                f"Code '{code}' is not defined in CodeSystem {code_system_id}",
                code=code,
                artifact="code_system",
            )
        if not self.contains_in_value_set(value_set_id, code):
            raise TerminologyError(
                f"Code '{code}' is not contained in ValueSet {value_set_id}",
                code=code,
                artifact="value_set",
            )

    def describe(self) -> Dict[str, List[Dict[str, Any]]]:
        """Summarize loaded artifacts (url, version, code count)."""
        return {
            "code_systems": [
                {"url": tree.url, "version": tree.version, "concepts": len(tree)}
                for tree in self._index.code_systems.values()
            ],
            "value_sets": [
                {"url": vs.url, "version": vs.version, "codes": len(vs.codes)}
                for vs in self._index.value_sets.values()
            ],
        }
