from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from quizbank.core.deps import get_catalog_service
from quizbank.schemas.catalog import (
    CatalogReloadResponse, CatalogResponse, CategoryDetailResponse, CategorySummary,
    ExamCatalog, ExamSummary, SearchResponse
)
from quizbank.services.catalog_loader import (
    CatalogService, exam_ids_for_category, question_count_for_category, question_count_for_exam
)
from quizbank.services.catalog_search import extract_search_keywords, search_exams_by_keywords
from quizbank.services.difficulty_filter import count_questions_by_difficulty
from quizbank.api.v1.endpoints.metrics import update_catalog_metrics

router = APIRouter()
logger = logging.getLogger(__name__)


def get_catalog(catalog_service: CatalogService = Depends(get_catalog_service)) -> ExamCatalog:
    """
    Dependency que devuelve el catálogo actual y actualiza sus métricas
    """
    catalog = catalog_service.get_catalog()
    update_catalog_metrics(catalog)
    return catalog


def _category_summary(catalog: ExamCatalog, category_id: str) -> CategorySummary:
    category = catalog.categories[category_id]
    return CategorySummary(
        id=category.id,
        name=category.name,
        exam_ids=exam_ids_for_category(catalog, category_id),
        question_count=question_count_for_category(catalog, category_id),
    )


@router.get("", response_model=CatalogResponse, summary="Catálogo completo de exámenes")
def read_catalog(catalog: ExamCatalog = Depends(get_catalog)):
    """
    Devuelve exámenes y categorías en orden de presentación junto con
    los diagnósticos de la última carga (siempre presentes, quizá vacíos).
    """
    return CatalogResponse(
        exams=[exam.meta for exam in catalog.exams.values()],
        categories=[_category_summary(catalog, category_id) for category_id in catalog.categories],
        errors=catalog.errors,
        total_exams=len(catalog.exams),
        total_categories=len(catalog.categories),
        total_questions=sum(question_count_for_exam(exam) for exam in catalog.exams.values()),
    )


@router.get("/exams/{exam_id}", response_model=ExamSummary, summary="Detalle de un examen")
def read_exam(exam_id: str, catalog: ExamCatalog = Depends(get_catalog)):
    exam = catalog.exams.get(exam_id)
    if exam is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="選択した試験データが見つかりません。")

    return ExamSummary(meta=exam.meta, difficulty_counts=count_questions_by_difficulty(exam.questions))


@router.get("/categories/{category_id}", response_model=CategoryDetailResponse, summary="Detalle de una categoría")
def read_category(category_id: str, catalog: ExamCatalog = Depends(get_catalog)):
    if category_id not in catalog.categories:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="選択したカテゴリが見つかりません。")

    return CategoryDetailResponse(
        category=_category_summary(catalog, category_id),
        exams=[catalog.exams[exam_id].meta for exam_id in exam_ids_for_category(catalog, category_id)],
    )


@router.get("/search", response_model=SearchResponse, summary="Búsqueda de exámenes por palabras clave")
def search_catalog(
    q: str = Query("", description="Palabras clave separadas por espacios (AND)"),
    catalog: ExamCatalog = Depends(get_catalog)
):
    query = q.strip()
    matches = search_exams_by_keywords(catalog.exams.values(), query)
    logger.info(f"Catalog search '{query}' matched {len(matches)} exams")
    return SearchResponse(
        query=query,
        keywords=extract_search_keywords(query),
        exams=[exam.meta for exam in matches],
    )


@router.post("/reload", response_model=CatalogReloadResponse, summary="Recarga el catálogo desde disco")
def reload_catalog(catalog_service: CatalogService = Depends(get_catalog_service)):
    catalog = catalog_service.reload()
    update_catalog_metrics(catalog)
    return CatalogReloadResponse(
        exams=len(catalog.exams),
        categories=len(catalog.categories),
        errors=catalog.errors,
    )
