from __future__ import annotations

from typing import List, Protocol

from ..models import DeliveryResult, Message


class Transport(Protocol):
    name: str

    def deliver(self, message: Message) -> List[DeliveryResult]:
        ...

    def close(self) -> None:
        ...
