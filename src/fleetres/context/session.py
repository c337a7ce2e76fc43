from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.pool import QueuePool
from sqlalchemy.orm import scoped_session, sessionmaker

from fleetres.context.core import StoppableService


from typing import Any


READ_COMMITTED = 'READ COMMITTED'


class SessionProvider(StoppableService):
    """Global session utility. It provides a READ COMMITTED session to
    fleetres. If you want to override this provider, be sure to set the
    isolation_level to READ COMMITTED as well.

    The ledger relies on it: every write first takes a lock on the vehicle
    and only then reads the vehicle's timeline. Each statement after the
    lock has to see what the previous holder of the lock committed, a
    snapshot taken for the whole transaction would not. Two writers
    proposing intervals for the same vehicle therefore see each other and
    the second one is told which assignment took the vehicle.

    PostgreSQL is the supported database. SQLite is accepted for local
    experiments, without any guarantees for concurrent writers.

    """

    def __init__(
        self,
        dsn: str,
        engine_config: dict[str, Any] | None = None,
        session_config: dict[str, Any] | None = None
    ):
        assert dsn, 'No dsn configured, see settings.dsn'

        engine_config = dict(engine_config or {})

        if self.is_postgres(dsn):
            self.assert_valid_postgres_version(dsn)
            engine_config.setdefault('isolation_level', READ_COMMITTED)

        self.dsn = dsn

        self.engine = create_engine(
            dsn, poolclass=QueuePool, pool_size=5, max_overflow=5,
            **engine_config
        )

        self.session = scoped_session(sessionmaker(
            bind=self.engine, **(session_config or {})
        ))

    @staticmethod
    def is_postgres(dsn: str) -> bool:
        return make_url(dsn).get_backend_name() == 'postgresql'

    def stop_service(self) -> None:
        """ Called by the fleetres context when the session provider is being
        discarded (only in testing).

        This makes sure that replacing the session provider on the context
        doesn't leave behind any idle connections.

        """

        self.session().close()
        self.engine.raw_connection().invalidate()
        self.engine.dispose()

    def get_postgres_version(self, dsn: str) -> tuple[str, int]:
        """ Returns the postgres version as a tuple (string, integer).

        Uses it's own connection to be independent from any session.

        """
        assert self.is_postgres(dsn), 'Not a postgres database'

        query = text("""
            SELECT current_setting('server_version'),
                   current_setting('server_version_num')
        """)

        engine = create_engine(dsn)

        try:
            with engine.connect() as connection:
                result = connection.execute(query).first()
            assert result is not None
            version, number = result
            return version, int(number)
        finally:
            engine.dispose()

    def assert_valid_postgres_version(self, dsn: str) -> str:
        v, n = self.get_postgres_version(dsn)

        # transaction scoped advisory locks arrived with 9.1
        if n < 90100:
            raise RuntimeError(f'PostgreSQL 9.1+ is required, got {v}')

        return dsn
