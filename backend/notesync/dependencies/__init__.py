"""Dependency helpers (package marker).

Real implementations live in dedicated sub-modules so the package root stays
empty.
"""
