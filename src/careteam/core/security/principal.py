"""The authenticated caller, as asserted by the identity provider's JWT."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Principal:
    user_id: UUID
    email: str

    @property
    def normalized_email(self) -> str:
        return self.email.strip().lower()
