"""
TrackerBase - computation engine for schema-driven trackers.

Evaluates expressions, validation rules, calculated fields, cross-grid
bindings and depends-on overrides, and compiles node graphs into
dynamic option pipelines with cached results.
"""

__version__ = "0.1.0"
__author__ = "TrackerBase Team"
__license__ = "MIT"

__all__ = ["__version__"]
