import logging
import math
import secrets
import uuid
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple

from quizbank.schemas.result import (
    HistoryMistake, HistoryRecord, MistakeSummary, QuizResult, ResultCategory,
    ResultChoice, ResultExamMeta, ResultQuestion
)
from quizbank.utils.explanations import normalize_explanation
from quizbank.utils.normalizers import (
    DEFAULT_DIFFICULTY, normalize_difficulty, sanitize_difficulty_selection
)
from quizbank.utils.text import scalar_text

logger = logging.getLogger(__name__)


def now_iso() -> str:
    """Marca de tiempo ISO-8601 local con zona horaria, precisión de segundos."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def generate_result_id() -> str:
    """
    Genera un identificador opaco para un resultado.
    Usa aleatoriedad criptográfica y, si el sistema no la ofrece,
    un token basado en tiempo (uuid1).
    """
    try:
        return secrets.token_hex(16)
    except NotImplementedError:
        logger.warning("Secure random source unavailable, using time based result id")
        return f"result_{uuid.uuid1().hex}"


def _optional_int(value: Any) -> Optional[int]:
    """Entero de un contador del cliente; None si falta o no es numérico."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float):
        # inf y nan cuentan como ausentes
        return int(value) if math.isfinite(value) else None
    return None


def _int(value: Any) -> int:
    parsed = _optional_int(value)
    return 0 if parsed is None else parsed


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _entries(value: Any) -> List[Any]:
    """Elementos de una lista JSON o de un objeto con claves numéricas (arreglo PHP)."""
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        return list(value.values())
    return []


def _string_list(value: Any) -> List[str]:
    return [
        scalar_text(entry) for entry in _entries(value)
        if not isinstance(entry, (dict, list, tuple))
    ]


def normalize_result_choice(value: Any) -> ResultChoice:
    if not isinstance(value, Mapping):
        return ResultChoice()

    return ResultChoice(
        key=scalar_text(value.get("key")),
        text=scalar_text(value.get("text")),
        explanation=normalize_explanation(value.get("explanation")),
    )


def normalize_result_question(value: Any) -> ResultQuestion:
    """
    Normaliza una pregunta calificada (recién calificada o leída del historial).

    Acepta `answers` o el formato antiguo `answer`, y `user_answers` o
    `user_answer`. Si `is_correct` falta o es falso pero ambas listas existen,
    se recalcula por igualdad de conjuntos ordenados.
    """
    if not isinstance(value, Mapping):
        return ResultQuestion()

    choices = [normalize_result_choice(choice) for choice in _entries(value.get("choices"))]

    answers = _string_list(value.get("answers"))
    if not answers and value.get("answer") is not None:
        answers = [scalar_text(value.get("answer"))]

    user_answers = _string_list(value.get("user_answers"))
    if not user_answers and value.get("user_answer") is not None:
        user_answers = [scalar_text(value.get("user_answer"))]

    is_correct = bool(value.get("is_correct"))
    if not is_correct and answers and user_answers:
        is_correct = sorted(answers) == sorted(user_answers)

    difficulty = value.get("difficulty")
    return ResultQuestion(
        number=_int(value.get("number")),
        id=scalar_text(value.get("id")),
        question=scalar_text(value.get("question")),
        choices=choices,
        answers=answers,
        explanation=normalize_explanation(value.get("explanation")),
        user_answers=user_answers,
        is_correct=is_correct,
        difficulty=normalize_difficulty(DEFAULT_DIFFICULTY if difficulty is None else difficulty),
        is_multiple_answer=bool(value.get("is_multiple_answer")) or len(answers) > 1,
    )


def normalize_incorrect_question(value: Any) -> MistakeSummary:
    if not isinstance(value, Mapping):
        return MistakeSummary()

    correct_answers = _string_list(value.get("correct_answers"))
    user_answers = _string_list(value.get("user_answers"))

    correct_answer = scalar_text(value.get("correct_answer"))
    if not correct_answer and correct_answers:
        correct_answer = ", ".join(correct_answers)

    user_answer = scalar_text(value.get("user_answer"))
    if not user_answer and user_answers:
        user_answer = ", ".join(user_answers)

    return MistakeSummary(
        number=_int(value.get("number")),
        question=scalar_text(value.get("question")),
        correct_answer=correct_answer,
        correct_answers=correct_answers,
        user_answer=user_answer,
        user_answers=user_answers,
    )


def _reconcile_counters(source: Mapping[str, Any], questions: List[ResultQuestion]) -> Tuple[int, int, int]:
    """
    Concilia total/correct/incorrect con las preguntas presentes.
    total nunca es menor que el número de preguntas.
    """
    question_total = len(questions)

    total = _optional_int(source.get("total"))
    if total is None or total < question_total:
        total = question_total

    correct = _optional_int(source.get("correct"))
    if correct is None or correct < 0 or correct > total:
        correct = sum(1 for question in questions if question.is_correct)

    incorrect = _optional_int(source.get("incorrect"))
    if incorrect is None or incorrect != total - correct:
        incorrect = max(0, total - correct)

    return total, correct, incorrect


def _normalize_questions(source: Mapping[str, Any]) -> List[ResultQuestion]:
    return [normalize_result_question(question) for question in _entries(source.get("questions"))]


def _normalize_incorrect_questions(source: Mapping[str, Any]) -> List[MistakeSummary]:
    return [normalize_incorrect_question(entry) for entry in _entries(source.get("incorrect_questions"))]


def _nested_exam_meta(exam_source: Mapping[str, Any], question_total: int) -> ResultExamMeta:
    category_source = _as_mapping(exam_source.get("category"))
    question_count = _optional_int(exam_source.get("question_count"))
    return ResultExamMeta(
        id=scalar_text(exam_source.get("id")),
        title=scalar_text(exam_source.get("title")),
        description=scalar_text(exam_source.get("description")),
        version=scalar_text(exam_source.get("version")),
        question_count=question_total if question_count is None else question_count,
        category=ResultCategory(
            id=scalar_text(category_source.get("id")),
            name=scalar_text(category_source.get("name")),
        ),
    )


def build_client_result_payload(results: Mapping[str, Any], difficulty: str, completed_at: str) -> QuizResult:
    """
    Reexpresa un resultado recién calificado en el formato canónico
    que guarda el cliente y que se usa para volver a mostrarlo.
    """
    results = _as_mapping(results)
    questions = _normalize_questions(results)
    total, correct, incorrect = _reconcile_counters(results, questions)

    return QuizResult(
        exam=_nested_exam_meta(_as_mapping(results.get("exam")), len(questions)),
        total=total,
        correct=correct,
        incorrect=incorrect,
        difficulty=difficulty,
        questions=questions,
        incorrect_questions=_normalize_incorrect_questions(results),
        completed_at=completed_at,
        result_id=scalar_text(results.get("result_id")),
    )


def _derive_incorrect_questions(questions: List[ResultQuestion]) -> List[MistakeSummary]:
    mistakes: List[MistakeSummary] = []
    for question in questions:
        if sorted(question.answers) == sorted(question.user_answers):
            continue
        mistakes.append(MistakeSummary(
            number=question.number,
            question=question.question,
            correct_answer=", ".join(question.answers),
            correct_answers=list(question.answers),
            user_answer=", ".join(question.user_answers),
            user_answers=list(question.user_answers),
        ))
    return mistakes


def normalize_history_result_payload(payload: Any) -> Optional[QuizResult]:
    """
    Reconstruye un resultado guardado por el cliente, de versión incierta.

    Devuelve None cuando no queda ninguna pregunta válida; es el único
    modo de fallo. Soporta `exam{category{}}` anidado (preferido) y los
    campos planos examId/examTitle/categoryId/categoryName.
    """
    if not isinstance(payload, Mapping):
        return None

    questions = _normalize_questions(payload)
    if not questions:
        return None

    if isinstance(payload.get("exam"), Mapping):
        exam_meta = _nested_exam_meta(payload["exam"], len(questions))
    else:
        exam_meta = ResultExamMeta(
            id=scalar_text(payload.get("examId")),
            title=scalar_text(payload.get("examTitle")),
            question_count=len(questions),
            category=ResultCategory(
                id=scalar_text(payload.get("categoryId")),
                name=scalar_text(payload.get("categoryName")),
            ),
        )

    total, correct, incorrect = _reconcile_counters(payload, questions)

    incorrect_questions = _normalize_incorrect_questions(payload)
    if not incorrect_questions:
        incorrect_questions = _derive_incorrect_questions(questions)

    completed_at = payload.get("completed_at")
    if not isinstance(completed_at, str):
        completed_at = now_iso()

    return QuizResult(
        exam=exam_meta,
        total=total,
        correct=correct,
        incorrect=incorrect,
        difficulty=sanitize_difficulty_selection(payload.get("difficulty")),
        questions=questions,
        incorrect_questions=incorrect_questions,
        completed_at=completed_at,
        result_id=scalar_text(payload.get("result_id")),
    )


def question_status(question: ResultQuestion) -> str:
    return question.status


def calculate_score_percent(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    # half up, no bancario
    return int(correct * 100 / total + 0.5)


def build_history_record(result: QuizResult, saved_at: Optional[str] = None) -> HistoryRecord:
    """
    Proyección del resultado que el cliente guarda en su historial local.
    """
    mistakes = [
        HistoryMistake(
            number=mistake.number,
            question=mistake.question,
            correct_answer=", ".join(mistake.correct_answers) if mistake.correct_answers else mistake.correct_answer,
            user_answer=", ".join(mistake.user_answers) if mistake.user_answers else mistake.user_answer,
        )
        for mistake in result.incorrect_questions
    ]

    return HistoryRecord(
        id=result.result_id or generate_result_id(),
        result_id=result.result_id,
        exam_id=result.exam.id,
        exam_title=result.exam.title,
        category_id=result.exam.category.id,
        category_name=result.exam.category.name,
        difficulty=sanitize_difficulty_selection(result.difficulty),
        correct=result.correct,
        incorrect=result.incorrect,
        total=result.total,
        score_percent=calculate_score_percent(result.correct, result.total),
        completed_at=result.completed_at,
        saved_at=saved_at or now_iso(),
        incorrect_questions=mistakes,
        full_result=result,
    )
