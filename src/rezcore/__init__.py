"""
rezcore - agreement primitives for the CDC restore and audit pipeline
Canonical plan hashing, point-in-time row ordering and audit replay order
"""

__version__ = "1.0.0"
