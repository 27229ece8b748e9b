"""Input/output helpers for run products."""
from . import diagnostics_json, tables, writer

__all__ = ["diagnostics_json", "tables", "writer"]
