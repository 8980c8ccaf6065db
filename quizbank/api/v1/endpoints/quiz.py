from fastapi import APIRouter, Depends, HTTPException, status
import logging

from quizbank.core.deps import get_quiz_service, get_session_store, get_session_token
from quizbank.schemas.quiz import (
    ActiveQuizView, HistoryViewRequest, SelectRequest, SelectionView, StartQuizRequest,
    SubmitAnswersRequest
)
from quizbank.schemas.result import QuizResult, SubmitResponse
from quizbank.services.quiz_session import (
    QuizSessionService, QuizStateError, QuizValidationError
)
from quizbank.services.result_normalizer import build_history_record
from quizbank.services.session_store import InMemorySessionStore
from quizbank.api.v1.endpoints.metrics import (
    quizbank_quizzes_graded_total, quizbank_quizzes_started_total
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/state", response_model=SelectionView, summary="Selección actual y quiz activo")
def read_state(
    token: str = Depends(get_session_token),
    store: InMemorySessionStore = Depends(get_session_store),
    quiz_service: QuizSessionService = Depends(get_quiz_service)
):
    state = store.load(token)
    view = quiz_service.selection_view(state)
    store.save(token, state)
    return view


@router.post("/select", response_model=SelectionView, summary="Cambia categoría, examen o dificultad")
def select(
    payload: SelectRequest,
    token: str = Depends(get_session_token),
    store: InMemorySessionStore = Depends(get_session_store),
    quiz_service: QuizSessionService = Depends(get_quiz_service)
):
    """
    Actualiza la selección persistente. Se aplica en orden categoría,
    examen y dificultad; cualquier subconjunto de campos es válido.
    """
    state = store.load(token)
    if payload.category_id is not None:
        quiz_service.select_category(state, payload.category_id)
    if payload.exam_id is not None:
        quiz_service.select_exam(state, payload.exam_id)
    if payload.difficulty is not None:
        quiz_service.select_difficulty(state, payload.difficulty)

    view = quiz_service.selection_view(state)
    store.save(token, state)
    return view


@router.post("/start", response_model=ActiveQuizView, summary="Inicia un quiz")
def start_quiz(
    payload: StartQuizRequest,
    token: str = Depends(get_session_token),
    store: InMemorySessionStore = Depends(get_session_store),
    quiz_service: QuizSessionService = Depends(get_quiz_service)
):
    """
    Muestrea las preguntas y devuelve el quiz sin las claves de respuesta.
    """
    state = store.load(token)
    try:
        session = quiz_service.start_quiz(state, payload.exam_id, payload.difficulty, payload.question_count)
    except QuizValidationError as e:
        logger.warning(f"Quiz start rejected for exam '{payload.exam_id}': {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    finally:
        store.save(token, state)

    quizbank_quizzes_started_total.inc()
    return quiz_service.active_quiz_view(session)


@router.post("/submit", response_model=SubmitResponse, summary="Envía las respuestas y califica")
def submit_answers(
    payload: SubmitAnswersRequest,
    token: str = Depends(get_session_token),
    store: InMemorySessionStore = Depends(get_session_store),
    quiz_service: QuizSessionService = Depends(get_quiz_service)
):
    """
    Califica el quiz activo. Devuelve el resultado canónico y el registro
    que el cliente guarda en su historial.
    """
    state = store.load(token)
    try:
        result = quiz_service.submit_answers(state, payload.answers)
    except QuizStateError as e:
        logger.warning(f"Submit rejected: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    finally:
        store.save(token, state)

    quizbank_quizzes_graded_total.inc()
    return SubmitResponse(result=result, history_record=build_history_record(result))


@router.post("/reset", response_model=SelectionView, summary="Descarta el quiz activo")
def reset_session(
    token: str = Depends(get_session_token),
    store: InMemorySessionStore = Depends(get_session_store),
    quiz_service: QuizSessionService = Depends(get_quiz_service)
):
    state = store.load(token)
    quiz_service.reset_session(state)
    view = quiz_service.selection_view(state)
    store.save(token, state)
    return view


@router.post("/landing", response_model=SelectionView, summary="Vuelve a la portada")
def go_to_landing(
    token: str = Depends(get_session_token),
    store: InMemorySessionStore = Depends(get_session_store),
    quiz_service: QuizSessionService = Depends(get_quiz_service)
):
    state = store.load(token)
    quiz_service.go_to_landing(state)
    view = quiz_service.selection_view(state)
    store.save(token, state)
    return view


@router.post("/history/view", response_model=QuizResult, summary="Muestra un resultado del historial")
def view_history_result(
    payload: HistoryViewRequest,
    token: str = Depends(get_session_token),
    store: InMemorySessionStore = Depends(get_session_store),
    quiz_service: QuizSessionService = Depends(get_quiz_service)
):
    state = store.load(token)
    try:
        result = quiz_service.view_history_result(state, payload.payload)
    except QuizValidationError as e:
        logger.warning(f"History payload rejected: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    finally:
        store.save(token, state)

    return result
