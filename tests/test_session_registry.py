from collections import OrderedDict

import pytest

from tshost.config import BuildConfig
from tshost.exceptions import ConfigurationError, ErrorCode
from tshost.session import CompilationSession
from tshost.session_registry import DEFAULT_SESSIONS, SessionRegistry, create_session, session_key


@pytest.fixture
def counting_factory():
    """A session factory that records every key it bootstraps."""
    created = []

    def _factory(key, build_config):
        created.append(key)
        return create_session(key, build_config)

    _factory.created = created
    return _factory


def test_session_key_combines_context_and_query():
    assert session_key("/p", "") == "/p"
    assert session_key("/p", "?a=1") == "/p?a=1"
    assert session_key("/p", "?a=1") != session_key("/p", "?a=2")


def test_sessions_are_memoised_per_key(tmp_path, counting_factory):
    registry = SessionRegistry(session_factory=counting_factory)
    build_config = BuildConfig(context=str(tmp_path), resource_path=str(tmp_path / "a.ts"))

    first = registry.get_or_create("k1", build_config)
    again = registry.get_or_create("k1", build_config)
    other = registry.get_or_create("k2", build_config)

    assert first is again
    assert first is not other
    assert counting_factory.created == ["k1", "k2"]
    assert "k1" in registry and len(registry) == 2
    assert registry.get("k3") is None


def test_storage_is_injectable(tmp_path):
    storage = OrderedDict()
    registry = SessionRegistry(storage=storage)

    session = registry.get_or_create("k", BuildConfig(context=str(tmp_path), resource_path=str(tmp_path / "a.ts")))

    assert storage == {"k": session}
    assert list(registry.sessions()) == [session]
    registry.clear()
    assert len(storage) == 0


def test_configuration_errors_are_emitted_and_defaults_apply(tmp_path):
    (tmp_path / "tsconfig.json").write_text('{"compilerOptions": {"target": "es1"}}')
    emitted = []
    build_config = BuildConfig(context=str(tmp_path), resource_path=str(tmp_path / "a.ts"), emit_error=emitted.append)

    session = SessionRegistry().get_or_create("k", build_config)

    assert isinstance(session, CompilationSession)
    assert len(emitted) == 1
    assert "target" in emitted[0]
    assert session.config.options.target == "es5"


def test_unknown_compiler_module_raises(tmp_path):
    build_config = BuildConfig(context=str(tmp_path), resource_path=str(tmp_path / "a.ts"), query='?{"compiler": "no.such.compiler"}')

    with pytest.raises(ConfigurationError) as e:
        SessionRegistry().get_or_create("k", build_config)

    assert e.value.code == ErrorCode.COMPILER_NOT_FOUND


def test_modules_without_the_service_entry_points_are_rejected(tmp_path):
    build_config = BuildConfig(context=str(tmp_path), resource_path=str(tmp_path / "a.ts"), query='?{"compiler": "json"}')

    with pytest.raises(ConfigurationError) as e:
        SessionRegistry().get_or_create("k", build_config)

    assert "create_language_service" in str(e.value)


def test_default_registry_is_process_wide():
    assert isinstance(DEFAULT_SESSIONS, SessionRegistry)
