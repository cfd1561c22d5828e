"""
Admin-provisioned provider keys that PLUS users may borrow.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, String

from app.core.database import Base, new_uuid, utcnow
from app.models.enums import Provider


class SharedApiKey(Base):
    __tablename__ = "shared_api_keys"

    id = Column(String(36), primary_key=True, default=new_uuid)
    provider = Column(Enum(Provider, name="provider"), nullable=False, index=True)
    api_key = Column(String(1024), nullable=False)  # encrypted
    models = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<SharedApiKey(id={self.id}, provider={self.provider}, active={self.is_active})>"

    def to_dict(self, masked_key: str = None) -> dict:
        """Public representation; the encrypted key itself is never included."""
        data = {
            "id": self.id,
            "provider": self.provider.value,
            "models": list(self.models or []),
            "isActive": self.is_active,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if masked_key is not None:
            data["apiKeyMasked"] = masked_key
        return data
