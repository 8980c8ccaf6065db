import logging
import secrets
import threading
import time
from typing import Any, Dict, Optional, Tuple

from quizbank.schemas.quiz import SessionState

logger = logging.getLogger(__name__)


class InMemorySessionStore:
    """
    Almacén de estado de sesión en memoria del proceso, indexado por token opaco.

    Guarda copias serializadas (no instancias vivas) y descarta las entradas
    inactivas más antiguas que `ttl` segundos.
    """

    def __init__(self, ttl: int = 7200):
        self._ttl = ttl
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_token() -> str:
        return secrets.token_urlsafe(24)

    def _purge_expired(self, now: float) -> None:
        expired = [token for token, (touched, _) in self._entries.items() if now - touched > self._ttl]
        for token in expired:
            del self._entries[token]
        if expired:
            logger.debug(f"Purged {len(expired)} expired sessions")

    def load(self, token: Optional[str]) -> SessionState:
        """Devuelve el estado guardado o uno vacío si no existe o expiró."""
        if not token:
            return SessionState()

        now = time.time()
        with self._lock:
            self._purge_expired(now)
            entry = self._entries.get(token)
            if entry is None:
                return SessionState()
            self._entries[token] = (now, entry[1])
            data = entry[1]

        return SessionState.model_validate(data)

    def save(self, token: str, state: SessionState) -> None:
        payload = state.model_dump(mode="json")
        with self._lock:
            self._entries[token] = (time.time(), payload)

    def delete(self, token: str) -> None:
        with self._lock:
            self._entries.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
