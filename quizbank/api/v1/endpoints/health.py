# quizbank/api/v1/endpoints/health.py
from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone

from quizbank.core.deps import get_catalog_service
from quizbank.services.catalog_loader import CatalogService

router = APIRouter()


def check_question_bank(catalog_service: CatalogService) -> dict:
    """
    Verifica el directorio del banco de preguntas y el catálogo cargado.
    """
    if not catalog_service.directory.is_dir():
        return {"status": "unavailable", "directory": str(catalog_service.directory)}

    catalog = catalog_service.get_catalog()
    return {
        "status": "degraded" if catalog.errors else "healthy",
        "directory": str(catalog_service.directory),
        "exams": len(catalog.exams),
        "categories": len(catalog.categories),
        "diagnostics": len(catalog.errors),
    }


@router.get("/health", summary="Verifica el estado completo del servicio")
def check_health(catalog_service: CatalogService = Depends(get_catalog_service)):
    """
    Endpoint de Health Check consolidado.
    Verifica que la API está activa y que el banco de preguntas es legible.
    """
    health_status = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "question_bank": check_question_bank(catalog_service),
        }
    }

    bank_status = health_status["services"]["question_bank"]["status"]
    if bank_status == "unavailable":
        health_status["status"] = "unhealthy"
        raise HTTPException(status_code=503, detail=health_status)

    if bank_status == "degraded":
        health_status["status"] = "degraded"

    return health_status
