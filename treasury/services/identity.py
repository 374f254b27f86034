"""
Identity resolution and user profile settings.
"""
import logging
from typing import List, Optional

from treasury.addresses import normalize_handle
from treasury.data.base import Operation
from treasury.errors import Unauthenticated, ValidationError
from treasury.models import Identity, Language, Theme
from treasury.repositories import IdentityRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class IdentityResolver(BaseService):
    """Maps external account handles to internal identities."""

    def __init__(self, adapter, clock=None):
        super().__init__(adapter, clock)
        self.identities = IdentityRepository(adapter)

    def find(self, handle: str) -> Optional[Identity]:
        return self.identities.find_by_handle(normalize_handle(handle))

    def require(self, handle: str) -> Identity:
        """The identity of `handle`. Raises Unauthenticated when there is none."""
        identity = self.find(handle)
        if identity is None:
            raise Unauthenticated("User not found")
        return identity

    def resolve(self, handle: str, operations: Optional[List[Operation]] = None) -> Identity:
        """
        Look up the identity of `handle`, creating it when absent.

        When `operations` is given the insert is appended to it and committed by
        the caller with the rest of its transaction; otherwise it is committed here.
        """
        normalized = normalize_handle(handle)
        if not normalized:
            raise ValidationError("Account handle is required")
        identity = self.identities.find_by_handle(normalized)
        if identity is not None:
            return identity

        identity = Identity(handle=normalized, created_at=self.now())
        queries = self.identities.get_save_queries(identity, changed_by_id=identity.entity_id)
        if operations is None:
            with self.adapter:
                self.commit(queries)
            logger.info("Created identity %s for handle %s", identity.entity_id, normalized)
        else:
            operations.extend(queries)
        return identity


class UserService(BaseService):
    """Profile settings of the calling identity."""

    def __init__(self, adapter, identity_resolver: IdentityResolver, clock=None):
        super().__init__(adapter, clock)
        self.identity_resolver = identity_resolver
        self.identities = identity_resolver.identities

    def get_by_handle(self, handle: str) -> Optional[Identity]:
        return self.identity_resolver.find(handle)

    def _update(self, handle: str, **changes) -> dict:
        with self.adapter:
            identity = self.identity_resolver.require(handle)
            for name, value in changes.items():
                setattr(identity, name, value)
            self.commit(self.identities.get_save_queries(identity, changed_by_id=identity.entity_id))
        return {"success": True}

    def update_email(self, handle: str, email: Optional[str]) -> dict:
        email = (email or "").strip() or None
        if email is not None and "@" not in email:
            raise ValidationError(f"Invalid email address: {email}")
        return self._update(handle, email=email)

    def update_preferred_language(self, handle: str, language) -> dict:
        try:
            language = Language(language)
        except ValueError as e:
            raise ValidationError(f"Unsupported language: {language}") from e
        return self._update(handle, preferred_language=language)

    def update_preferred_theme(self, handle: str, theme) -> dict:
        try:
            theme = Theme(theme)
        except ValueError as e:
            raise ValidationError(f"Unsupported theme: {theme}") from e
        return self._update(handle, preferred_theme=theme)
