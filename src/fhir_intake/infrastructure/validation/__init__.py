"""Structural profile validation engine."""

from .baseline import BaselineSupport
from .profile_validator import StructureValidator
from .terminology_support import TerminologySupport

__all__ = [
    "BaselineSupport",
    "StructureValidator",
    "TerminologySupport",
]
