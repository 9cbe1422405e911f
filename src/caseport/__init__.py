# src/caseport/__init__.py
"""
caseport: sanitized export and re-import of appeal record graphs.

Walks the records related to one or more appeals, redacts sensitive
fields, writes them to a portable JSON document, and recreates them in
another database with their references remapped.
"""

__version__ = "0.1.0"
