# Matching package for odML values
"""
Identity matching modules.

Scores typed scalars for equality and person names with a graded
first/last name heuristic.
"""
