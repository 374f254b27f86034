"""
Disbursement models

Single and batch disbursements share one collection and one envelope. The
`type` discriminator selects the variant when a document is loaded, so a
batch never carries a beneficiary or an amount of its own.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, Decimal, Inexact, InvalidOperation, localcontext
from typing import Any, Dict, Optional

from .non_versioned_model import NonVersionedModel
from .versioned_model import VersionedModel, default_datetime
from .enums import DisbursementStatus, DisbursementType


def parse_amount(amount) -> Optional[Decimal]:
    """Parse a decimal amount string. Returns None unless it is a finite, positive number."""
    if amount is None or isinstance(amount, float):
        return None
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


def exact_sum(amounts) -> Decimal:
    """Sum of decimal amounts. Raises rather than rounds."""
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        ctx.traps[Inexact] = True
        return sum(amounts, Decimal(0))


@dataclass
class Disbursement(VersionedModel):
    """Common envelope of a payment intent."""

    type: DisbursementType = DisbursementType.SINGLE
    organization_id: Optional[str] = None
    safe_id: Optional[str] = None
    chain_id: Optional[int] = None
    token: Optional[str] = None
    memo: Optional[str] = None
    status: DisbursementStatus = DisbursementStatus.DRAFT
    safe_tx_hash: Optional[str] = None
    tx_hash: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=default_datetime)
    updated_at: datetime = field(default_factory=default_datetime)

    @property
    def display_amount(self) -> str:
        raise NotImplementedError

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Disbursement":
        if cls is Disbursement:
            variant = BatchDisbursement if data.get('type') == DisbursementType.BATCH.value else SingleDisbursement
            return variant.from_dict(data)
        return super().from_dict(data)


@dataclass
class SingleDisbursement(Disbursement):
    """A payment to one beneficiary."""

    type: DisbursementType = DisbursementType.SINGLE
    beneficiary_id: Optional[str] = None
    amount: Optional[str] = None

    @property
    def display_amount(self) -> str:
        return self.amount or "0"

    def validate_amount(self):
        if parse_amount(self.amount) is None:
            return f"Invalid amount: {self.amount}"
        return None


@dataclass
class BatchDisbursement(Disbursement):
    """A fan-out payment. Recipients are stored as `DisbursementRecipient` rows."""

    type: DisbursementType = DisbursementType.BATCH
    total_amount: Optional[str] = None

    @property
    def display_amount(self) -> str:
        return self.total_amount or "0"

    def validate_total_amount(self):
        if parse_amount(self.total_amount) is None:
            return f"Invalid total amount: {self.total_amount}"
        return None


@dataclass
class DisbursementRecipient(NonVersionedModel):
    """One recipient of a batch disbursement. The payee address is copied at creation."""

    disbursement_id: Optional[str] = None
    beneficiary_id: Optional[str] = None
    recipient_address: Optional[str] = None
    amount: Optional[str] = None
    created_at: datetime = field(default_factory=default_datetime)
