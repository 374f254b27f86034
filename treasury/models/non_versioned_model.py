from dataclasses import dataclass, field

from .versioned_model import _ModelMixin, get_uuid_hex


@dataclass(kw_only=True)
class NonVersionedModel(_ModelMixin):
    """
    A base dataclass for records that are written once and never updated,
    so they carry no version/audit fields.
    """

    entity_id: str = field(default_factory=get_uuid_hex,
                           metadata={'field_type': 'entity_id'})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(entity_id={self.entity_id})"

    def prepare_for_save(self):
        """
        No version fields to bump; simply validate.
        """
        self.validate()
