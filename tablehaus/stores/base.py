"""Collaborator interfaces the booking engine is written against"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, List, Optional
from uuid import UUID

from tablehaus.core.lifecycle import OrderStatus
from tablehaus.schemas.booking import ProofFile
from tablehaus.schemas.promotion import PromotionRule
from tablehaus.schemas.reservation import OrderLine, Reservation


class ReservationStore(ABC):
    """Persistent store of reservations and their order lines"""

    @abstractmethod
    async def list_active_on_date(self, day: date) -> List[Reservation]:
        """Active reservations starting on a civil date in the restaurant's zone"""
        pass

    @abstractmethod
    async def insert(self, reservation: Reservation, lines: List[OrderLine]) -> Reservation:
        """Persist a reservation with its lines; raises ConflictError when the table guard is violated"""
        pass

    @abstractmethod
    async def get_by_token(self, token: str) -> Optional[Reservation]:
        """Resolve a tracking token, None when unknown"""
        pass

    @abstractmethod
    async def get(self, reservation_id: UUID) -> Optional[Reservation]:
        """Fetch a reservation by identity"""
        pass

    @abstractmethod
    async def update_status(self, reservation_id: UUID, status: OrderStatus) -> Optional[Reservation]:
        """Set a new status, None when the reservation does not exist"""
        pass

    @abstractmethod
    async def list_for_customer(self, customer_id: str, active_only: bool = False) -> List[Reservation]:
        """A customer's reservations, newest first"""
        pass


class BlobStore(ABC):
    """File storage for proof-of-payment attachments"""

    @abstractmethod
    async def upload(self, file: ProofFile) -> str:
        """Store a file and return a stable reference; raises UploadError"""
        pass

    @abstractmethod
    async def open(self, reference: str) -> bytes:
        """Read a stored file back; raises BlobNotFoundError"""
        pass

    @abstractmethod
    async def delete(self, reference: str) -> None:
        """Remove a stored file; a missing reference is not an error"""
        pass


class PromotionStore(ABC):
    """Read-only promotion lookup"""

    @abstractmethod
    async def lookup(self, code: str) -> Optional[PromotionRule]:
        """Find a promotion by canonical code"""
        pass


Unsubscribe = Callable[[], None]


class InvalidationChannel(ABC):
    """Push channel announcing that reservations changed; carries no payload"""

    @abstractmethod
    def subscribe(self, on_change: Callable[[], None]) -> Unsubscribe:
        """Register a callback fired on any reservation insert or update"""
        pass

    @abstractmethod
    async def publish(self) -> None:
        """Announce that reservations changed"""
        pass
