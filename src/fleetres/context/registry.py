from __future__ import annotations

import threading

from fleetres.modules import errors
from fleetres.context.core import Context


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from fleetres.context.session import SessionProvider


def session_provider_factory(context: Context) -> SessionProvider:
    from fleetres.context.session import SessionProvider
    return SessionProvider(context.get_setting('dsn'))


def clock_factory(context: Context) -> Callable[[], datetime]:
    import sedate
    return sedate.utcnow


def requester_title_factory(context: Context) -> Callable[[str], str]:
    # Requesters are opaque to fleetres, applications with a user
    # directory should replace this with a lookup of the full name.
    def requester_title(requester_id: str) -> str:
        return requester_id

    return requester_title


def create_default_registry() -> Registry:
    """ Creates a registry whose master context holds the default settings
    and services. The master context is locked, applications change their
    own contexts instead.

    """

    from fleetres.context.settings import set_default_settings

    registry = Registry()

    master = registry.master_context
    master.set_service('session_provider', session_provider_factory, True)
    master.set_service('clock', clock_factory)
    master.set_service('requester_title', requester_title_factory)

    set_default_settings(master)

    master.lock()

    return registry


class Registry:
    """ Keeps the contexts of a process by name.

    The registry used by default is found in fleetres::

        from fleetres import registry

    A separate registry is useful in tests, or wherever global state is not
    welcome::

        from fleetres.context.registry import create_default_registry
        registry = create_default_registry()

    """

    contexts: dict[str, Context]
    master_context: Context

    def __init__(self) -> None:
        self.thread_lock = threading.RLock()
        self.contexts = {}
        self.master_context = self.register_context('master')

    def is_existing_context(self, name: str) -> bool:
        return name in self.contexts

    def assert_not_locked(self, name: str) -> None:
        if self.get_context(name).locked:
            raise errors.ContextIsLocked(name)

    def assert_exists(self, name: str) -> None:
        if not self.is_existing_context(name):
            raise errors.UnknownContext(name)

    def assert_does_not_exist(self, name: str) -> None:
        if self.is_existing_context(name):
            raise errors.ContextAlreadyExists(name)

    def register_context(
        self,
        name: str,
        replace: bool = False,
        settings: dict[str, Any] | None = None
    ) -> Context:
        """ Creates a new context inheriting from the master context.

        :replace:
            Replaces an existing context of the same name, unless it is
            locked. Otherwise an existing context is an error.

        :settings:
            Settings to store on the new context, e.g. ``{'dsn': ...}``.

        """
        with self.thread_lock:
            if replace and self.is_existing_context(name):
                self.assert_not_locked(name)
            elif not replace:
                self.assert_does_not_exist(name)

            context = Context(
                name,
                registry=self,
                # the master context is the only one without a parent
                parent=getattr(self, 'master_context', None)
            )

            if settings:
                context.set_settings(settings)

            self.contexts[name] = context
            return context

    def get_context(self, name: str, autocreate: bool = False) -> Context:
        with self.thread_lock:
            if autocreate and not self.is_existing_context(name):
                return self.register_context(name)

            self.assert_exists(name)
            return self.contexts[name]
