"""FieldOps: technician assignment and dispatch lifecycle service."""

__version__ = "0.3.0"
