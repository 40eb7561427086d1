"""Database access for the inventory store."""
