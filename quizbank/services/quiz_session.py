import json
import random
import time
from typing import Any, Dict, List, Mapping, Optional

from quizbank.core.logging_config import get_quiz_logger
from quizbank.schemas.catalog import Exam, ExamCatalog
from quizbank.schemas.quiz import (
    ActiveQuizView, PublicChoice, PublicQuestion, QuizSession, SelectionView, SessionState
)
from quizbank.schemas.result import QuizResult
from quizbank.services.catalog_loader import CatalogService, exam_ids_for_category
from quizbank.services.difficulty_filter import filter_questions_by_difficulty
from quizbank.services.result_normalizer import (
    build_client_result_payload, generate_result_id, normalize_history_result_payload, now_iso
)
from quizbank.utils.answer_keys import answers_match, normalize_answer_keys
from quizbank.utils.normalizers import (
    DEFAULT_DIFFICULTY, DIFFICULTY_RANDOM, difficulty_label, get_difficulty_options,
    sanitize_difficulty_selection
)


class QuizSessionError(Exception):
    """Excepción base para operaciones inválidas del flujo de quiz"""
    pass


class QuizValidationError(QuizSessionError):
    """Selección inválida al iniciar un quiz o historial ilegible"""
    pass


class QuizStateError(QuizSessionError):
    """Operación no permitida en el estado actual de la sesión"""
    pass


class QuizSessionService:
    """
    Máquina de estados del quiz: selección -> inicio -> envío -> resultado.

    Cada operación recibe el `SessionState` del visitante y lo modifica;
    guardar el estado es responsabilidad del llamador.
    """

    def __init__(self, catalog_service: CatalogService, rng: Optional[random.Random] = None,
                 default_question_count: int = 5):
        self.catalog_service = catalog_service
        self.rng = rng or random.SystemRandom()
        self.default_question_count = default_question_count
        self.logger = get_quiz_logger()

    @property
    def catalog(self) -> ExamCatalog:
        return self.catalog_service.get_catalog()

    def _find_exam(self, exam_id: Optional[str]) -> Optional[Exam]:
        if not exam_id:
            return None
        return self.catalog.exams.get(exam_id)

    # --- Selección ---

    def reconcile(self, state: SessionState) -> SessionState:
        """
        Ajusta la selección persistida al catálogo actual: un examen que ya no
        existe se descarta, la categoría sigue siempre al examen elegido y una
        categoría inexistente se descarta.
        """
        catalog = self.catalog
        exam = catalog.exams.get(state.last_selected_exam_id) if state.last_selected_exam_id else None

        if exam is None:
            state.last_selected_exam_id = ""
        else:
            state.last_selected_category_id = exam.meta.category.id

        if state.last_selected_category_id and state.last_selected_category_id not in catalog.categories:
            state.last_selected_category_id = ""
            state.last_selected_exam_id = ""

        state.last_selected_difficulty = sanitize_difficulty_selection(state.last_selected_difficulty)
        return state

    def select_category(self, state: SessionState, category_id: str) -> SessionState:
        if category_id and category_id in self.catalog.categories:
            state.last_selected_category_id = category_id
        state.last_selected_exam_id = ""
        state.question_count_input = ""
        return state

    def select_exam(self, state: SessionState, exam_id: str) -> SessionState:
        exam = self._find_exam(exam_id)
        if exam is not None:
            state.last_selected_exam_id = exam.meta.id
            state.last_selected_category_id = exam.meta.category.id
        state.question_count_input = ""
        return state

    def select_difficulty(self, state: SessionState, difficulty: Any) -> SessionState:
        state.last_selected_difficulty = sanitize_difficulty_selection(difficulty)
        state.question_count_input = ""
        return state

    def selection_view(self, state: SessionState) -> SelectionView:
        """Vista de la pantalla de configuración para el estado actual."""
        self.reconcile(state)

        difficulty = state.last_selected_difficulty
        if state.current_quiz is not None:
            difficulty = state.current_quiz.difficulty

        exam = self._find_exam(state.last_selected_exam_id)
        available = len(filter_questions_by_difficulty(exam.questions, difficulty)) if exam else 0

        default_count = min(self.default_question_count, available) if available > 0 else 1
        if state.question_count_input.isdigit() and int(state.question_count_input) > 0:
            default_count = int(state.question_count_input)

        category_exam_ids: List[str] = []
        if state.last_selected_category_id:
            category_exam_ids = exam_ids_for_category(self.catalog, state.last_selected_category_id)

        return SelectionView(
            selected_category_id=state.last_selected_category_id,
            selected_exam_id=state.last_selected_exam_id,
            selected_difficulty=difficulty,
            difficulty_label=difficulty_label(difficulty),
            difficulty_options=get_difficulty_options(include_random=True),
            category_exam_ids=category_exam_ids,
            available_question_count=available,
            default_question_count=default_count,
            max_question_count=max(1, available),
            can_start_quiz=exam is not None and available > 0,
            active_quiz=self.active_quiz_view(state.current_quiz),
        )

    # --- Flujo del quiz ---

    def start_quiz(self, state: SessionState, exam_id: str, difficulty: Any, count: int) -> QuizSession:
        """
        Inicia un quiz muestreando `count` preguntas sin reemplazo.

        Raises:
            QuizValidationError: examen desconocido, cantidad < 1, sin preguntas
                elegibles o cantidad mayor que las disponibles
        """
        if difficulty is not None:
            state.last_selected_difficulty = sanitize_difficulty_selection(difficulty)
        selected_difficulty = sanitize_difficulty_selection(state.last_selected_difficulty)
        state.question_count_input = str(max(0, count))

        exam = self._find_exam(exam_id)
        if exam is None:
            raise QuizValidationError("選択した試験データが見つかりません。")

        state.last_selected_exam_id = exam.meta.id
        state.last_selected_category_id = exam.meta.category.id

        if count < 1:
            raise QuizValidationError("出題数は1以上を指定してください。")

        pool = filter_questions_by_difficulty(exam.questions, selected_difficulty)
        if not pool:
            if selected_difficulty == DIFFICULTY_RANDOM:
                raise QuizValidationError("出題できる問題が見つかりません。")
            raise QuizValidationError("選択した難易度の問題が登録されていません。")

        if count > len(pool):
            if selected_difficulty == DIFFICULTY_RANDOM:
                raise QuizValidationError(f"出題数が多すぎます。（最大 {len(pool)} 問まで）")
            raise QuizValidationError(f"選択した難易度の問題が不足しています。（最大 {len(pool)} 問まで）")

        questions = self.rng.sample(pool, count)
        session = QuizSession(
            exam_id=exam.meta.id,
            meta=exam.meta.model_copy(deep=True),
            questions=[question.model_copy(deep=True) for question in questions],
            difficulty=selected_difficulty,
            started_at=int(time.time()),
        )
        state.current_quiz = session

        self.logger.info(
            f"Quiz started: exam={exam.meta.id} difficulty={selected_difficulty} questions={count}",
            extra={"exam_id": exam.meta.id, "operation": "start_quiz"}
        )
        return session

    def submit_answers(self, state: SessionState, submitted: Optional[Mapping[str, Any]]) -> QuizResult:
        """
        Califica el quiz activo y lo cierra.

        Raises:
            QuizStateError: si no hay un quiz activo
        """
        quiz = state.current_quiz
        if quiz is None:
            raise QuizStateError("先に問題を開始してください。")

        if not isinstance(submitted, Mapping):
            submitted = {}

        question_results: List[Dict[str, Any]] = []
        incorrect_details: List[Dict[str, Any]] = []
        correct_count = 0

        for number, question in enumerate(quiz.questions, start=1):
            choice_keys = [choice.key for choice in question.choices]
            correct_answers = list(question.answers)
            user_answers = normalize_answer_keys(submitted.get(question.id), choice_keys)

            is_correct = answers_match(correct_answers, user_answers)
            if is_correct:
                correct_count += 1
            else:
                incorrect_details.append({
                    "number": number,
                    "question": question.question,
                    "correct_answer": ", ".join(correct_answers),
                    "correct_answers": correct_answers,
                    "user_answer": ", ".join(user_answers),
                    "user_answers": user_answers,
                })

            question_results.append({
                "number": number,
                "id": question.id,
                "question": question.question,
                "choices": [choice.model_dump() for choice in question.choices],
                "answers": correct_answers,
                "explanation": question.explanation.model_dump(),
                "user_answers": user_answers,
                "is_correct": is_correct,
                "difficulty": question.difficulty or DEFAULT_DIFFICULTY,
                "is_multiple_answer": len(correct_answers) > 1,
            })

        completed_at = now_iso()
        raw_result = {
            "exam": quiz.meta.model_dump(),
            "total": len(question_results),
            "correct": correct_count,
            "incorrect": len(incorrect_details),
            "questions": question_results,
            "incorrect_questions": incorrect_details,
            "result_id": generate_result_id(),
        }
        result = build_client_result_payload(
            raw_result, sanitize_difficulty_selection(quiz.difficulty), completed_at
        )

        state.last_selected_exam_id = quiz.exam_id
        state.last_selected_category_id = quiz.meta.category.id or state.last_selected_category_id
        state.last_selected_difficulty = result.difficulty
        state.current_quiz = None

        self.logger.info(
            f"Quiz graded: exam={quiz.exam_id} correct={result.correct}/{result.total}",
            extra={"exam_id": quiz.exam_id, "operation": "submit_answers"}
        )
        return result

    def reset_session(self, state: SessionState) -> SessionState:
        """Descarta el quiz activo conservando examen/categoría/dificultad como selección."""
        quiz = state.current_quiz
        if quiz is not None:
            state.last_selected_exam_id = quiz.exam_id
            state.last_selected_category_id = quiz.meta.category.id or state.last_selected_category_id
            state.last_selected_difficulty = quiz.difficulty
            self.logger.info(f"Quiz reset: exam={quiz.exam_id}", extra={"exam_id": quiz.exam_id})
        state.current_quiz = None
        return state

    def go_to_landing(self, state: SessionState) -> SessionState:
        state.current_quiz = None
        state.last_selected_category_id = ""
        state.last_selected_exam_id = ""
        state.question_count_input = ""
        return state

    def view_history_result(self, state: SessionState, payload: Any) -> QuizResult:
        """
        Reconstruye un resultado guardado por el cliente.

        No toca el quiz activo; solo mueve la selección al examen del
        resultado cuando ese examen existe en el catálogo.

        Raises:
            QuizValidationError: si el payload no produce un resultado válido
        """
        if isinstance(payload, str):
            if not payload:
                raise QuizValidationError("履歴の読み込みに失敗しました。")
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                self.logger.warning("History payload is not valid JSON")
                raise QuizValidationError("履歴の読み込みに失敗しました。")

        result = normalize_history_result_payload(payload)
        if result is None:
            raise QuizValidationError("履歴の読み込みに失敗しました。")

        exam = self._find_exam(result.exam.id)
        if exam is not None:
            state.last_selected_exam_id = exam.meta.id
            state.last_selected_category_id = exam.meta.category.id or state.last_selected_category_id

        return result

    # --- Vistas ---

    def active_quiz_view(self, quiz: Optional[QuizSession]) -> Optional[ActiveQuizView]:
        """Proyección del quiz activo para el cliente, sin las respuestas."""
        if quiz is None:
            return None

        return ActiveQuizView(
            exam=quiz.meta,
            difficulty=quiz.difficulty,
            difficulty_label=difficulty_label(quiz.difficulty),
            started_at=quiz.started_at,
            questions=[
                PublicQuestion(
                    number=number,
                    id=question.id,
                    question=question.question,
                    choices=[PublicChoice(key=choice.key, text=choice.text) for choice in question.choices],
                    difficulty=question.difficulty,
                    is_multiple_answer=question.is_multiple_answer,
                )
                for number, question in enumerate(quiz.questions, start=1)
            ],
        )
