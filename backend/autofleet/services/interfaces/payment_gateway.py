"""
Payment gateway interface.
Verification of an external transaction reference before a booking is
confirmed as paid.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

SUCCESS_STATUSES = frozenset({"completed", "success", "successful"})


@dataclass(frozen=True)
class GatewayTransaction:
    reference: str
    status: str
    amount_paid: Optional[Decimal]
    currency: str
    raw: dict = field(default_factory=dict, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.status.lower() in SUCCESS_STATUSES


class PaymentGateway(ABC):
    """
    Interface for payment gateways.

    Implementations:
    - PaypackGateway: Paypack transactions API over HTTPS
    """

    name: str = "gateway"

    @abstractmethod
    async def verify_transaction(self, reference: str) -> GatewayTransaction:
        """
        Look up a transaction by reference.

        Raises:
            PaymentVerificationFailed: the gateway could not be reached or
                does not know the reference
        """
        pass
