"""Command line interface for the FHIR package explorer."""

from .main import main

__all__ = ["main"]
