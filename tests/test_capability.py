import pytest

from sheoracle.core.capability import ContextStore
from sheoracle.core.params import SchemeFamily, SchemeParameters, resolve_parameters

from conftest import FakeBackend


def _params():
    return resolve_parameters(SchemeParameters(scheme=SchemeFamily.BFVRNS, plaintext_modulus=65537))


def test_store_tracks_and_releases_contexts():
    backend = FakeBackend()
    store = ContextStore(backend)
    first = store.create(_params())
    second = store.create(_params())

    assert store.live_contexts == [first, second]
    assert store.release_all() == 2
    assert first.released and second.released
    assert store.live_contexts == []
    assert backend.release_all_calls == 1
    assert store.stats == {"created": 2, "released": 2}


def test_scope_releases_on_error():
    backend = FakeBackend()
    store = ContextStore(backend)

    with pytest.raises(KeyError):
        with store.scope():
            ctx = store.create(_params())
            raise KeyError("inside case")

    assert ctx.released
    assert backend.live == set()


def test_release_errors_surface_after_full_teardown():
    class StubbornBackend(FakeBackend):
        def release_all(self):
            raise RuntimeError("engine refused")

    backend = StubbornBackend()
    store = ContextStore(backend)
    ctx = store.create(_params())

    with pytest.raises(RuntimeError, match="engine refused"):
        store.release_all()
    assert ctx.released
    assert store.live_contexts == []
