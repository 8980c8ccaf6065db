from typing import Dict, List
from pydantic import BaseModel, Field

# --- Modelo interno del catálogo ---

class Explanation(BaseModel):
    """Explicación canónica de una pregunta o de una opción."""
    text: str = ""
    reference: str = ""
    reference_label: str = ""


class Choice(BaseModel):
    key: str
    text: str
    explanation: Explanation = Field(default_factory=Explanation)


class Question(BaseModel):
    id: str
    question: str
    choices: List[Choice]
    answers: List[str] = Field(..., description="Claves correctas en el orden definido por las opciones")
    explanation: Explanation = Field(default_factory=Explanation)
    difficulty: str = "normal"
    is_multiple_answer: bool = False


class CategoryRef(BaseModel):
    id: str
    name: str


class ExamMeta(BaseModel):
    id: str
    title: str
    description: str = ""
    version: str = ""
    question_count: int = 0
    source_file: str = ""
    category: CategoryRef


class Exam(BaseModel):
    meta: ExamMeta
    questions: List[Question] = Field(default_factory=list)


class Category(BaseModel):
    id: str
    name: str
    exam_ids: List[str] = Field(default_factory=list)


class ExamCatalog(BaseModel):
    """
    Resultado de la carga del banco de preguntas.
    `exams` y `categories` conservan el orden de presentación (ordenados por título/nombre).
    `errors` acumula los diagnósticos no fatales de la carga.
    """
    exams: Dict[str, Exam] = Field(default_factory=dict)
    categories: Dict[str, Category] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)

# --- API Responses ---

class ExamSummary(BaseModel):
    meta: ExamMeta
    difficulty_counts: Dict[str, int] = Field(default_factory=dict, description="Preguntas disponibles por dificultad")


class CategorySummary(Category):
    question_count: int = 0


class CatalogResponse(BaseModel):
    exams: List[ExamMeta]
    categories: List[CategorySummary]
    errors: List[str]
    total_exams: int
    total_categories: int
    total_questions: int


class CategoryDetailResponse(BaseModel):
    category: CategorySummary
    exams: List[ExamMeta]


class SearchResponse(BaseModel):
    query: str
    keywords: List[str]
    exams: List[ExamMeta]


class CatalogReloadResponse(BaseModel):
    exams: int
    categories: int
    errors: List[str]
