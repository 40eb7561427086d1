class InventoryImportError(Exception):
    """Base exception for inventory snapshot import errors."""
    pass

class SnapshotLoadError(InventoryImportError):
    """Raised when a snapshot file cannot be read or decoded."""
    pass

class StructuralValidationError(InventoryImportError):
    """Raised when a snapshot is missing required fields or holds unstorable values."""

    def __init__(self, missing_paths, invalid_paths=()):
        self.missing_paths = list(missing_paths)
        self.invalid_paths = list(invalid_paths)
        problems = []
        if self.missing_paths:
            problems.append("missing required fields: " + ", ".join(self.missing_paths))
        if self.invalid_paths:
            problems.append("invalid fields: " + ", ".join(self.invalid_paths))
        super().__init__("Snapshot is " + "; ".join(problems))

class DatabaseWriteError(InventoryImportError):
    """Raised when a write fails and the snapshot's transaction is rolled back."""
    pass

class FatalRunError(InventoryImportError):
    """Raised when the whole run must abort (no input folder, no database)."""
    pass

class SchemaDriftWarning(UserWarning):
    """An expected column is absent from the deployed schema."""
    pass

class CoercionFallback(UserWarning):
    """A value could not be coerced and was replaced by a sentinel."""
    pass
