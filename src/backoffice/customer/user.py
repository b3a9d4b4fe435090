"""User aggregate: anyone who can act in, or order from, a workspace."""

from datetime import UTC, datetime

from protean.fields import DateTime, String

from backoffice.domain import backoffice


@backoffice.aggregate
class User:
    name = String(required=True, max_length=255)
    email = String(required=True, max_length=255)
    created_at = DateTime()

    @classmethod
    def register(cls, name, email):
        return cls(name=name, email=email.strip().lower(), created_at=datetime.now(UTC))


@backoffice.repository(part_of=User)
class UserRepository:
    def find_by_email(self, email):
        return self._dao.query.filter(email=email.strip().lower()).all().items

    def exists(self, user_id) -> bool:
        return bool(self._dao.query.filter(id=user_id).all().items)
