"""Gig record source consumed by the settlement flow."""

from __future__ import annotations

from abc import ABC, abstractmethod

from gigsettle.settlement.calculator import compute
from gigsettle.settlement.models import GigFinancials, SettlementResult, SplitPolicy


class GigStore(ABC):
    """Key-based access to gig records, owned by the CRUD layer."""

    @abstractmethod
    async def load(self, gig_id: str) -> GigFinancials:
        """Return the validated financial snapshot of a gig.

        Raises ``LookupError`` when the gig does not exist.
        """
        ...


async def settle_gig(
    store: GigStore, gig_id: str, policy: SplitPolicy | None = None
) -> SettlementResult:
    gig = await store.load(gig_id)
    return compute(gig, policy)
