"""Collaborator interfaces and their implementations"""

from tablehaus.stores.base import BlobStore, InvalidationChannel, PromotionStore, ReservationStore

__all__ = [
    "BlobStore",
    "InvalidationChannel",
    "PromotionStore",
    "ReservationStore",
]
