"""Terminology Support for Binding Checks.

Answers "is this code acceptable for this value set" for the profile engine.
Value sets loaded into the Terminology Store take precedence; a small table
of common FHIR core value sets covers bindings from the base resources.
"""

from types import MappingProxyType
from typing import Optional, Tuple

from fhir_intake.infrastructure.terminology_store import TerminologyStore

# value set URL -> (code system URL, codes)
COMMON_VALUE_SETS = MappingProxyType({
    "http://hl7.org/fhir/ValueSet/administrative-gender": (
        "http://hl7.org/fhir/administrative-gender",
        frozenset({"male", "female", "other", "unknown"}),
    ),
    "http://hl7.org/fhir/ValueSet/document-reference-status": (
        "http://hl7.org/fhir/document-reference-status",
        frozenset({"current", "superseded", "entered-in-error"}),
    ),
    "http://hl7.org/fhir/ValueSet/composition-status": (
        "http://hl7.org/fhir/composition-status",
        frozenset({"preliminary", "final", "amended", "entered-in-error"}),
    ),
})


class TerminologySupport:
    """Binding lookups backed by the Terminology Store and common value sets."""

    def __init__(self, store: TerminologyStore):
        self.store = store

    def knows(self, value_set_url: str) -> bool:
        return self.store.has_value_set(value_set_url) or value_set_url in COMMON_VALUE_SETS

    def validate_code(self, value_set_url: str, system: Optional[str], code: str) -> Optional[bool]:
        """Check one code against a value set.

        Parameters:
            value_set_url: Canonical URL of the bound value set (no version)
            system: Code system of the coding, None for bare ``code`` elements
            code: The code

        Returns:
            True/False for known value sets, None when the value set is unknown
        """
        if self.store.has_value_set(value_set_url):
            if system is not None and self.store.has_code_system(system):
                if not self.store.contains_in_code_system(system, code):
                    return False
            return self.store.contains_in_value_set(value_set_url, code)

        entry: Optional[Tuple[str, frozenset]] = COMMON_VALUE_SETS.get(value_set_url)
        if entry is None:
            return None
        code_system, codes = entry
        if system is not None and system != code_system:
            return False
        return code in codes
