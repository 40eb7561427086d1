"""
Command-line scripts for the inventory snapshot importer.

Subpackages:
- inventory: Snapshot import into the inventory store
"""

__version__ = "0.1.0"
