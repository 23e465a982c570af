"""Database models"""

from tablehaus.models.table import DiningTable
from tablehaus.models.menu import MenuItem
from tablehaus.models.reservation import Reservation, OrderLine
from tablehaus.models.promotion import Promotion
from tablehaus.models.blocked_date import BlockedDate

__all__ = [
    "DiningTable",
    "MenuItem",
    "Reservation",
    "OrderLine",
    "Promotion",
    "BlockedDate",
]
