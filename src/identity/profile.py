"""Profile records and the read-only directory used to address parties.

Profiles are owned by the authentication service; this system only reads
them to find a recipient's contact details and to resolve an actor's role.
"""

from enum import Enum
from uuid import uuid4

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from shared.database import Base, session_scope


class ProfileRole(Enum):
    CUSTOMER = "customer"
    TAILOR = "tailor"
    ADMIN = "admin"


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str | None] = mapped_column(String(255))
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    role: Mapped[str] = mapped_column(String(20), default=ProfileRole.CUSTOMER.value)

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == ProfileRole.ADMIN.value


class ProfileDirectory:
    """Look up profiles by id."""

    def get(self, profile_id: str | None) -> Profile | None:
        if not profile_id:
            return None
        with session_scope() as session:
            return session.get(Profile, str(profile_id))

    def role_of(self, profile_id: str | None) -> ProfileRole | None:
        profile = self.get(profile_id)
        if profile is None:
            return None
        try:
            return ProfileRole(profile.role)
        except ValueError:
            return None
