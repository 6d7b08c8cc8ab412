"""Core utilities and shared application primitives.

Modules in this package should be framework-agnostic where possible and
focused on configuration, logging, error handling and small reusable helpers.
"""
