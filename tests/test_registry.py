from __future__ import annotations

import pytest

from fleetres.context.registry import Registry, create_default_registry
from fleetres.context.session import SessionProvider
from fleetres.modules import errors


def test_registry_contexts() -> None:
    r = Registry()

    assert r.master_context.name == 'master'
    assert r.is_existing_context('master')
    assert not r.is_existing_context('foo')

    foo = r.register_context('foo')

    assert r.is_existing_context('foo')
    assert r.get_context('foo') is foo
    assert foo.parent is r.master_context


def test_autocreate() -> None:
    r = Registry()

    ctx = r.get_context('yo', autocreate=True)

    assert r.get_context('yo', autocreate=True) is ctx
    assert r.get_context('yo') is ctx


def test_assert_existence() -> None:
    r = Registry()

    with pytest.raises(errors.UnknownContext):
        r.assert_exists('foo')

    r.register_context('foo')

    with pytest.raises(errors.ContextAlreadyExists):
        r.assert_does_not_exist('foo')

    with pytest.raises(errors.ContextAlreadyExists):
        r.register_context('foo')


def test_replace() -> None:
    r = Registry()

    ctx = r.register_context('gabba gabba')
    ctx.set_setting('test', 'one')

    assert ctx.get_setting('test') == 'one'

    ctx = r.register_context('gabba gabba', replace=True)
    with pytest.raises(errors.UnknownSetting):
        ctx.get_setting('test')

    ctx.lock()

    with pytest.raises(errors.ContextIsLocked):
        ctx = r.register_context('gabba gabba', replace=True)


def test_locked_contexts() -> None:
    r = Registry()

    context = r.register_context('test')
    context.set('foo', 'bar')
    context.lock()

    with pytest.raises(errors.ContextIsLocked):
        context.set('foo', 'bar')

    context.unlock()
    context.set('foo', 'baz')
    assert context.get('foo') == 'baz'


def test_master_fallback() -> None:
    r = create_default_registry()

    my_app = r.register_context('my_app')
    assert my_app.get_setting('allow_future_return') is True
    assert my_app.get_setting('min_duration') is None

    my_app.set_setting('allow_future_return', False)
    assert my_app.get_setting('allow_future_return') is False

    another_app = r.register_context('another_app')
    assert another_app.get_setting('allow_future_return') is True

    with pytest.raises(errors.ContextIsLocked):
        r.master_context.set_setting('dsn', 'sqlite://')


def test_default_services() -> None:
    r = create_default_registry()
    context = r.register_context('app')

    now = context.get_service('clock')()
    assert now.tzinfo is not None

    assert context.get_service('requester_title')('jane') == 'jane'

    context.set_service('requester_title', lambda ctx: str.upper)
    assert context.get_service('requester_title')('jane') == 'JANE'

    with pytest.raises(errors.UnknownService):
        context.get_service('missing')


def test_session_provider_service(tmp_path) -> None:
    r = create_default_registry()
    context = r.register_context('app')
    context.set_setting('dsn', f'sqlite:///{tmp_path / "test.db"}')

    provider = context.get_service('session_provider')

    assert isinstance(provider, SessionProvider)
    assert context.get_service('session_provider') is provider

    provider.stop_service()


def test_services_cache() -> None:
    r = Registry()

    r.master_context.set_service('service', factory=lambda ctx: object())
    assert (
        r.master_context.get_service('service')
        is not r.master_context.get_service('service')
    )

    r.master_context.set_service(
        'service', factory=lambda ctx: object(), cache=True
    )

    first_call = r.master_context.get_service('service')
    second_call = r.master_context.get_service('service')

    assert first_call is second_call


def test_register_with_settings() -> None:
    r = create_default_registry()

    context = r.register_context('app', settings={
        'dsn': 'sqlite://',
        'allow_future_return': False
    })

    assert context.get_setting('dsn') == 'sqlite://'
    assert context.get_setting('allow_future_return') is False
    assert context.get_setting('max_start_in_past') is None

    with pytest.raises(errors.UnknownSetting):
        context.get_setting('max_start_in_the_past')
