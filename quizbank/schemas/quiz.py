from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from quizbank.schemas.catalog import ExamMeta, Question
from quizbank.utils.normalizers import DIFFICULTY_RANDOM

# --- Estado de sesión (servidor) ---

class QuizSession(BaseModel):
    """
    Quiz en curso. Guarda su propia copia de las preguntas muestreadas,
    independiente de recargas posteriores del catálogo.
    """
    exam_id: str
    meta: ExamMeta
    questions: List[Question]
    difficulty: str = DIFFICULTY_RANDOM
    started_at: int = Field(..., description="Epoch en segundos")


class SessionState(BaseModel):
    current_quiz: Optional[QuizSession] = None
    last_selected_category_id: str = ""
    last_selected_exam_id: str = ""
    last_selected_difficulty: str = DIFFICULTY_RANDOM
    question_count_input: str = ""

# --- Peticiones ---

class SelectRequest(BaseModel):
    category_id: Optional[str] = None
    exam_id: Optional[str] = None
    difficulty: Optional[str] = None


class StartQuizRequest(BaseModel):
    exam_id: str
    question_count: int
    difficulty: Optional[str] = None


class SubmitAnswersRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict, description="id de pregunta -> clave o lista de claves")


class HistoryViewRequest(BaseModel):
    payload: Any = Field(None, description="Resultado guardado por el cliente (objeto o cadena JSON)")

# --- Respuestas ---

class PublicChoice(BaseModel):
    key: str
    text: str


class PublicQuestion(BaseModel):
    """Pregunta tal como se envía al cliente durante el quiz (sin respuestas)."""
    number: int
    id: str
    question: str
    choices: List[PublicChoice]
    difficulty: str
    is_multiple_answer: bool


class ActiveQuizView(BaseModel):
    exam: ExamMeta
    difficulty: str
    difficulty_label: str
    started_at: int
    questions: List[PublicQuestion]


class SelectionView(BaseModel):
    selected_category_id: str = ""
    selected_exam_id: str = ""
    selected_difficulty: str = DIFFICULTY_RANDOM
    difficulty_label: str = ""
    difficulty_options: Dict[str, str] = Field(default_factory=dict)
    category_exam_ids: List[str] = Field(default_factory=list)
    available_question_count: int = 0
    default_question_count: int = 1
    max_question_count: int = 1
    can_start_quiz: bool = False
    active_quiz: Optional[ActiveQuizView] = None
