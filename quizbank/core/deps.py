from functools import lru_cache

from fastapi import Depends, Request

from quizbank.core.config import settings
from quizbank.services.catalog_loader import CatalogService
from quizbank.services.quiz_session import QuizSessionService
from quizbank.services.session_store import InMemorySessionStore

SESSION_TOKEN_KEY = "sid"


@lru_cache()
def get_catalog_service() -> CatalogService:
    """
    Dependencia que devuelve el servicio de catálogo compartido por el proceso.
    """
    return CatalogService(settings.QUESTION_BANK_DIR, cache_enabled=settings.CATALOG_CACHE_ENABLED)


@lru_cache()
def get_session_store() -> InMemorySessionStore:
    return InMemorySessionStore(ttl=settings.SESSION_TTL_SECONDS)


def get_quiz_service(
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> QuizSessionService:
    return QuizSessionService(catalog_service, default_question_count=settings.DEFAULT_QUESTION_COUNT)


def get_session_token(request: Request) -> str:
    """
    Token opaco del visitante. La cookie firmada (SessionMiddleware) solo
    transporta este token; el estado vive en el SessionStore.
    """
    token = request.session.get(SESSION_TOKEN_KEY)
    if not token:
        token = InMemorySessionStore.new_token()
        request.session[SESSION_TOKEN_KEY] = token
    return token
