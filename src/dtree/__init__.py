"""dtree - workspace data engine for branching story graphs.

Nodes form a directed graph of narrative units; characters, story events
and relationships cross-reference that graph. The engine keeps every
reference consistent under edits, deletions and file merges.
"""

__version__ = "0.1.0"
