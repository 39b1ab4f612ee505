# Merge package for odML properties
"""
Property merge engine.

Reconciles two same-named properties under a caller-selected policy.
"""
