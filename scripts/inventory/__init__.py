"""
Inventory snapshot scripts.

Command-line entry points for importing machine inventory snapshots into
the inventory store.
"""
