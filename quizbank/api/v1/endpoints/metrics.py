from fastapi import APIRouter, Response
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
import time

from quizbank.schemas.catalog import ExamCatalog

router = APIRouter()

# Métricas de Prometheus para el API
quizbank_api_requests_total = Counter(
    'quizbank_api_requests_total',
    'Total quizbank API requests',
    ['method', 'endpoint', 'status']
)

quizbank_api_request_duration_seconds = Histogram(
    'quizbank_api_request_duration_seconds',
    'Quizbank API request duration in seconds',
    ['method', 'endpoint']
)

# Métricas del flujo de quiz
quizbank_quizzes_started_total = Counter(
    'quizbank_quizzes_started_total',
    'Total quizzes started'
)

quizbank_quizzes_graded_total = Counter(
    'quizbank_quizzes_graded_total',
    'Total quizzes graded'
)

# Métricas del catálogo
quizbank_catalog_exams = Gauge(
    'quizbank_catalog_exams',
    'Exams available in the loaded catalog'
)

quizbank_catalog_diagnostics = Gauge(
    'quizbank_catalog_diagnostics',
    'Diagnostics produced by the last catalog load'
)

# Métricas del sistema
system_uptime_seconds = Gauge(
    'system_uptime_seconds',
    'System uptime in seconds'
)

start_time = time.time()


def update_catalog_metrics(catalog: ExamCatalog) -> None:
    quizbank_catalog_exams.set(len(catalog.exams))
    quizbank_catalog_diagnostics.set(len(catalog.errors))


@router.get("/metrics", include_in_schema=False)
def get_metrics():
    """
    Endpoint de métricas para Prometheus.
    No incluido en la documentación de la API.
    """
    # Actualizar uptime
    system_uptime_seconds.set(time.time() - start_time)

    return Response(
        generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
