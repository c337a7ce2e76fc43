from __future__ import annotations

import enum
import fleetres
import threading
from functools import cached_property

from fleetres.modules import errors


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from sqlalchemy.orm import Session
    from typing_extensions import TypeAlias

    from fleetres.context.registry import Registry
    from fleetres.context.session import SessionProvider


class _Marker(enum.Enum):
    missing = enum.auto()
    required = enum.auto()


missing_t: TypeAlias = Literal[_Marker.missing]  # noqa: PYI042
required_t: TypeAlias = Literal[_Marker.required]  # noqa: PYI042
missing: missing_t = _Marker.missing
required: required_t = _Marker.required


class StoppableService:
    """ A service with resources to release (connections, threads) once it
    is replaced on its context. See :meth:`Context.set`.

    """

    def stop_service(self) -> None:
        pass


class ContextServicesMixin:
    """ Gives the scheduler and its helpers access to the services of
    ``self.context``, which the class using the mixin has to provide.

    The clock and the requester lookup are cached per instance. Call
    :meth:`clear_cache` after replacing them on the context.

    """

    context: Context

    @cached_property
    def now(self) -> Callable[[], datetime]:
        """ The clock of the context, returns timezone aware UTC dates. """
        return self.context.get_service('clock')  # type: ignore[no-any-return]

    @cached_property
    def requester_title(self) -> Callable[[str], str]:
        """ Turns a requester id into something to show on a calendar. """
        return self.context.get_service(  # type: ignore[no-any-return]
            'requester_title'
        )

    def clear_cache(self) -> None:
        for name in ('now', 'requester_title'):
            self.__dict__.pop(name, None)

    @property
    def session_provider(self) -> SessionProvider:
        return self.context.get_service(  # type: ignore[no-any-return]
            'session_provider'
        )

    @property
    def session(self) -> Session:
        """ The session bound to the current thread. """
        return self.session_provider.session()  # type: ignore[no-any-return]

    def close(self) -> None:
        self.session.close()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class Context:
    """ Holds the settings and services of one application using fleetres.

    Settings are plain values, like the dsn or the limits applied to new
    assignments (see :mod:`fleetres.context.settings`). Services are
    factories called with the context, like the clock or the session
    provider. Both are looked up on the context first and on its parent
    second, so an application context only stores what it overrides. The
    parent of every registered context is the locked master context of the
    registry, which holds the defaults.

    Several applications may share a process that way, each scheduling
    vehicles on its own database::

        from fleetres import registry

        context = registry.register_context('fleet', settings={
            'dsn': 'postgresql://localhost/fleet'
        })

    Schedulers cache services taken from their context. Create a new
    scheduler, or call :meth:`~.ContextServicesMixin.clear_cache`, after
    replacing a service.

    """

    def __init__(
        self,
        name: str,
        registry: Registry | None = None,
        parent: Context | None = None,
        locked: bool = False
    ):
        self.name = name
        self.registry = registry or fleetres.registry
        self.values: dict[str, Any] = {}
        self.parent = parent
        self.locked = locked
        self.thread_lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<fleetres Context(name='{self.name}')>"

    def lock(self) -> None:
        with self.thread_lock:
            self.locked = True

    def unlock(self) -> None:
        with self.thread_lock:
            self.locked = False

    def get(self, key: str) -> Any | missing_t:
        if key in self.values:
            return self.values[key]

        if self.parent is not None:
            return self.parent.get(key)

        return missing

    def set(self, key: str, value: Any) -> None:
        with self.thread_lock:
            if self.locked:
                raise errors.ContextIsLocked(self.name)

            # the replaced value may hold connections
            previous = self.values.get(key)
            if isinstance(previous, StoppableService):
                previous.stop_service()

            self.values[key] = value

    def get_setting(self, name: str) -> Any:
        value = self.get(f'settings.{name}')

        if value is missing:
            raise errors.UnknownSetting(name)

        return value

    def set_setting(self, name: str, value: Any) -> None:
        self.set(f'settings.{name}', value)

    def set_settings(self, settings: dict[str, Any]) -> None:
        with self.thread_lock:
            for name, value in settings.items():
                self.set_setting(name, value)

    def get_service(self, name: str) -> Any:
        """ Calls the factory of the service, or returns the value it
        produced on the first call if the service is cached.

        """
        factory = self.get(f'service/{name}')

        if factory is missing:
            raise errors.UnknownService(name)

        cache_id = f'service/{name}/cache'
        cached = self.get(cache_id)

        if cached is missing:
            return factory(self)

        if cached is required:
            with self.thread_lock:
                # another thread may have been first
                if self.get(cache_id) is required:
                    self.set(cache_id, factory(self))

        return self.get(cache_id)

    def set_service(
        self,
        name: str,
        factory: Callable[[Context], Any],
        cache: bool = False
    ) -> None:
        with self.thread_lock:
            self.set(f'service/{name}', factory)

            if cache:
                self.set(f'service/{name}/cache', required)
