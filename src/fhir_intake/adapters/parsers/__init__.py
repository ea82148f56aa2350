"""Inbound resource parsers."""

from fhir_intake.adapters.parsers.json_resource_parser import JSONResourceParser

__all__ = ["JSONResourceParser"]
