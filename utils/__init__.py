"""
Shared helpers: identifiers, filename sanitizing, parameter bags.
"""
