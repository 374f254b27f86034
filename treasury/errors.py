"""
Typed errors raised by the treasury services.

The message of each error is part of the contract: callers display it
verbatim and tests assert on it.
"""


class TreasuryError(Exception):
    """Base class for every error raised by the treasury core."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self):
        return self.message


class NotFound(TreasuryError):
    """A referenced organization, record or membership does not exist."""


class NoSafeLinked(NotFound):
    pass


class Unauthenticated(TreasuryError):
    """The account handle resolves to no identity."""


class Unauthorized(TreasuryError):
    """Membership missing, inactive, or role insufficient."""


class NotAMember(Unauthorized):
    pass


class MembershipInactive(Unauthorized):
    pass


class InsufficientRole(Unauthorized):
    pass


class TierLimitExceeded(TreasuryError):
    """A seat or beneficiary ceiling of the current plan was reached."""


class ValidationError(TreasuryError):
    """Malformed or inconsistent input."""


class InvalidAddress(ValidationError):
    pass


class InvalidAmount(ValidationError):
    pass


class InvalidRole(ValidationError):
    pass


class EmptyBatch(ValidationError):
    pass


class DuplicateInBatch(ValidationError):
    pass


class DuplicateBeneficiary(ValidationError):
    pass


class BeneficiaryInactive(ValidationError):
    pass


class AlreadyExists(TreasuryError):
    """The record would duplicate an existing one."""


class AlreadyMember(AlreadyExists):
    pass


class CrossTenantReference(TreasuryError):
    """A referenced record belongs to another organization."""


class InvalidBeneficiary(CrossTenantReference):
    pass


class ComplianceBlock(TreasuryError):
    """A screening verdict blocks the requested status transition."""

    def __init__(self, message: str, beneficiary_id: str = None):
        self.beneficiary_id = beneficiary_id
        super().__init__(message)


class InvariantViolation(TreasuryError):
    """The change would break an organization-wide invariant."""
