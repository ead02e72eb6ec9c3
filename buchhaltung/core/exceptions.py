class BuchungNotFound(Exception):
    def __init__(self, buchung_id):
        self.buchung_id = buchung_id
        super().__init__(f"Buchung with ID {buchung_id} not found")


class CsvImportError(ValueError):
    """Structural problem in an uploaded CSV file (message is shown to the user)."""


class StorageError(Exception):
    """Base class for object storage failures."""


class StorageNotConfigured(StorageError):
    pass


class DocumentNotFound(StorageError):
    pass


class StorageAccessDenied(StorageError):
    pass


class BucketNotFound(StorageError):
    pass
