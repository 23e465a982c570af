"""Exceptions raised by store implementations and translated by the core"""


class StoreError(Exception):
    """Base class for collaborator failures"""


class ConflictError(StoreError):
    """An active reservation already holds the table for an overlapping window"""


class StoreUnavailableError(StoreError):
    """Transient backend or network failure"""


class UploadError(StoreError):
    """Proof-of-payment upload failed"""


class BlobNotFoundError(StoreError):
    """No blob stored under the given reference"""
