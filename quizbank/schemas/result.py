from typing import List
from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from quizbank.schemas.catalog import Explanation

# --- Resultado canónico (mismo formato para resultados recién calificados y para el historial) ---

class ResultChoice(BaseModel):
    key: str = ""
    text: str = ""
    explanation: Explanation = Field(default_factory=Explanation)


class ResultQuestion(BaseModel):
    number: int = 0
    id: str = ""
    question: str = ""
    choices: List[ResultChoice] = Field(default_factory=list)
    answers: List[str] = Field(default_factory=list)
    explanation: Explanation = Field(default_factory=Explanation)
    user_answers: List[str] = Field(default_factory=list)
    is_correct: bool = False
    difficulty: str = "normal"
    is_multiple_answer: bool = False

    @computed_field
    @property
    def status(self) -> str:
        """Estado para la vista de resultados: correct | incorrect | unanswered (solo visual)."""
        if self.is_correct:
            return "correct"
        if not self.user_answers:
            return "unanswered"
        return "incorrect"


class MistakeSummary(BaseModel):
    number: int = 0
    question: str = ""
    correct_answer: str = ""
    correct_answers: List[str] = Field(default_factory=list)
    user_answer: str = ""
    user_answers: List[str] = Field(default_factory=list)


class ResultCategory(BaseModel):
    id: str = ""
    name: str = ""


class ResultExamMeta(BaseModel):
    id: str = ""
    title: str = ""
    description: str = ""
    version: str = ""
    question_count: int = 0
    category: ResultCategory = Field(default_factory=ResultCategory)


class QuizResult(BaseModel):
    exam: ResultExamMeta = Field(default_factory=ResultExamMeta)
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    difficulty: str = "random"
    questions: List[ResultQuestion] = Field(default_factory=list)
    incorrect_questions: List[MistakeSummary] = Field(default_factory=list)
    completed_at: str = ""
    result_id: str = ""

# --- Registro de historial guardado por el cliente (camelCase) ---

class HistoryMistake(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    number: int = 0
    question: str = ""
    correct_answer: str = ""
    user_answer: str = ""


class HistoryRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    result_id: str = ""
    exam_id: str = ""
    exam_title: str = ""
    category_id: str = ""
    category_name: str = ""
    difficulty: str = "random"
    correct: int = 0
    incorrect: int = 0
    total: int = 0
    score_percent: int = 0
    completed_at: str = ""
    saved_at: str = ""
    incorrect_questions: List[HistoryMistake] = Field(default_factory=list)
    full_result: QuizResult

# --- API Responses ---

class SubmitResponse(BaseModel):
    result: QuizResult
    history_record: HistoryRecord
