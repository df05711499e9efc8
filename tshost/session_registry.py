import logging
from typing import Callable, Iterator, MutableMapping, Optional

from .config import BuildConfig, resolve_build_config
from .service import load_compiler
from .session import CompilationSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str, BuildConfig], CompilationSession]


def session_key(context: str, query: str) -> str:
    """Distinct build contexts or query strings never share a session."""
    return context + query


def create_session(key: str, build_config: BuildConfig) -> CompilationSession:
    """Resolves configuration once and bootstraps a compiler service for it."""
    loader_options, parsed = resolve_build_config(build_config)

    # Emit configuration errors; the session still runs on defaulted settings.
    for error in parsed.errors:
        logger.warning("%s", error)
        if build_config.emit_error is not None:
            build_config.emit_error(str(error))

    compiler = load_compiler(loader_options.compiler)
    logger.info("Creating compilation session %r (config: %s)", key, parsed.config_file or "defaults")
    return CompilationSession(key, parsed, build_config.context, compiler)


class SessionRegistry:
    """
    Keyed cache of compilation sessions.

    Bootstrapping a compiler service dominates latency, so sessions are memoised by key.
    The storage mapping is injectable: a plain dict keeps sessions for the lifetime of
    the process, while tests or an LRU mapping can choose otherwise.
    """

    def __init__(
        self,
        storage: Optional[MutableMapping[str, CompilationSession]] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        self._storage = storage if storage is not None else {}
        self._session_factory = session_factory or create_session

    def get_or_create(self, key: str, build_config: BuildConfig) -> CompilationSession:
        session = self._storage.get(key)
        if session is None:
            session = self._session_factory(key, build_config)
            self._storage[key] = session
        return session

    def get(self, key: str) -> Optional[CompilationSession]:
        return self._storage.get(key)

    def sessions(self) -> Iterator[CompilationSession]:
        return iter(list(self._storage.values()))

    def clear(self) -> None:
        self._storage.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._storage

    def __len__(self) -> int:
        return len(self._storage)


DEFAULT_SESSIONS = SessionRegistry()
