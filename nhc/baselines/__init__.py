"""Baseline configurations: named profiles of a healthy node, loaded once at startup."""

from .loader import load_baseline_file, load_baseline_registry, parse_baseline_document
from .registry import BaselineRegistry

__all__ = ["BaselineRegistry", "load_baseline_file", "load_baseline_registry", "parse_baseline_document"]
