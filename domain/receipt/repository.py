"""
Receipt repository interface
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Receipt


class ReceiptRepository(ABC):

    @abstractmethod
    async def add(self, receipt: Receipt) -> Receipt:
        pass

    @abstractmethod
    async def get(self, receipt_id: str) -> Optional[Receipt]:
        pass

    @abstractmethod
    async def get_by_payment_id(self, payment_id: str) -> Optional[Receipt]:
        pass

    @abstractmethod
    async def next_sequence(self, counter_key: str) -> int:
        """Atomically allocate the next number of a counter (first value is 1)."""
        pass
