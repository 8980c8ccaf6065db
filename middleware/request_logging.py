# MIDDLEWARE DE LOGGING DE PETICIONES
# Registra cada peticion con su duracion y actualiza las metricas de Prometheus

import time
import json
import uuid
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from quizbank.core.logging_config import log_api_request
from quizbank.api.v1.endpoints.metrics import (
    quizbank_api_request_duration_seconds, quizbank_api_requests_total
)

logger = logging.getLogger(__name__)


def generate_request_id() -> str:
    return f'req_{uuid.uuid4().hex[:12]}'


def _endpoint_label(request: Request) -> str:
    # Plantilla de la ruta, p. ej. /api/v1/catalog/exams/{exam_id}
    route = request.scope.get('route')
    return getattr(route, 'path', request.url.path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        request.state.request_id = request_id
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f'Unhandled error processing {request.method} {request.url.path}')
            response = Response(
                content=json.dumps({'detail': 'Internal server error', 'request_id': request_id}),
                status_code=500,
                media_type='application/json'
            )

        duration = time.time() - start_time
        endpoint = _endpoint_label(request)

        quizbank_api_requests_total.labels(
            method=request.method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        quizbank_api_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(duration)

        log_api_request(
            logger,
            request.method,
            request.url.path,
            status_code=response.status_code,
            response_time_ms=int(duration * 1000),
            request_id=request_id,
        )

        response.headers['X-Request-ID'] = request_id
        return response
