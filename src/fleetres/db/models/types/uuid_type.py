from __future__ import annotations

import uuid

from sqlalchemy.types import CHAR, TypeDecorator
from sqlalchemy.dialects import postgresql


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.types import TypeEngine

    _Base = TypeDecorator['SoftUUID']
else:
    _Base = TypeDecorator


class SoftUUID(uuid.UUID):
    """ Behaves just like the UUID class, but allows strings to be compared
    with it, so that SoftUUID('my-uuid') == 'my-uuid' equals True.

    """

    def __eq__(self, other: object) -> bool:

        if isinstance(other, str):
            return self.hex == other.replace('-', '').strip()

        if isinstance(other, uuid.UUID):
            return self.int == other.int

        return False

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash(self.int)


class UUID(_Base):
    """ Uses the Postgres UUID type, otherwise CHAR(32) storing the hex
    value. Returns SoftUUIDs in either case.

    """
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[object]:
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(postgresql.UUID())
        return dialect.type_descriptor(CHAR(32))

    def process_bind_param(
        self,
        value: uuid.UUID | str | None,
        dialect: Dialect
    ) -> str | None:

        if value is None:
            return None

        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(value)

        if dialect.name == 'postgresql':
            return str(value)

        return value.hex

    def process_result_value(
        self,
        value: str | uuid.UUID | None,
        dialect: Dialect
    ) -> SoftUUID | None:
        if value is None:
            return None

        # psycopg2 may already hand out uuid instances
        if isinstance(value, uuid.UUID):
            return SoftUUID(int=value.int)

        # Postgres always returns the uuid in the same format, so we
        # can turn it into an int immediately, avoiding some checks
        # and extra code run by UUID
        return SoftUUID(int=int(value.replace('-', ''), 16))
