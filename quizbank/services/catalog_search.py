# quizbank/services/catalog_search.py
from typing import Iterable, List

from quizbank.schemas.catalog import Exam
from quizbank.utils.normalizers import normalize_search_text


def extract_search_keywords(query: str) -> List[str]:
    """
    Divide la consulta en palabras clave normalizadas.
    Se descartan vacías y duplicados (gana la primera aparición).
    """
    keywords: List[str] = []
    for token in (query or "").split():
        keyword = normalize_search_text(token)
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords


def build_exam_search_index(exam: Exam) -> str:
    meta = exam.meta
    parts = [
        meta.id,
        meta.title,
        meta.description,
        meta.version,
        meta.category.id,
        meta.category.name,
    ]
    return normalize_search_text(" ".join(part for part in parts if part))


def search_exams_by_keywords(exams: Iterable[Exam], query: str) -> List[Exam]:
    """
    Búsqueda AND por subcadena sobre el índice de cada examen.
    Sin palabras clave el resultado es vacío (no "todos").
    """
    keywords = extract_search_keywords(query)
    if not keywords:
        return []

    matches: List[Exam] = []
    for exam in exams:
        index = build_exam_search_index(exam)
        if all(keyword in index for keyword in keywords):
            matches.append(exam)
    return matches
