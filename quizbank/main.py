# quizbank/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
from quizbank.api.v1.endpoints import health, catalog, quiz, metrics
from quizbank.core.config import settings
from quizbank.core.logging_config import setup_logging
from middleware.request_logging import RequestLoggingMiddleware
import logging

# Configurar logging al inicio de la aplicacion
setup_logging()
logger = logging.getLogger('quizbank')

app = FastAPI(
    title='Quizbank API',
    description='''
    ## Backend de práctica de exámenes

    **Servicios Disponibles:**
    - **Health Check**: Estado del banco de preguntas
    - **Catalog**: Exámenes y categorías cargados desde archivos JSON, búsqueda y recarga
    - **Quiz**: Selección, inicio, calificación y reproducción de resultados del historial
    - **Metrics**: Métricas de Prometheus

    El historial de resultados lo guarda el cliente; el servidor solo
    mantiene el quiz en curso de cada visitante.
    ''',
    version='1.0.0',
    openapi_url='/openapi.json',
    docs_url='/docs',
    redoc_url='/redoc'
)

logger.info(f'Quizbank API starting up, question bank: {settings.QUESTION_BANK_DIR}')

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGIN_LIST,
    allow_credentials=settings.CORS_ORIGIN_LIST != ['*'],
    allow_methods=['*'],
    allow_headers=['*'],
)

# Middleware de sesion: la cookie firmada solo lleva el token del visitante
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie=settings.SESSION_COOKIE_NAME,
    max_age=settings.SESSION_TTL_SECONDS,
)

# Logging de peticiones y metricas para todas las requests
app.add_middleware(RequestLoggingMiddleware)

# Incluir rutas
app.include_router(health.router, prefix='/api/v1', tags=['Health Check'])
app.include_router(catalog.router, prefix='/api/v1/catalog', tags=['Catalog'])
app.include_router(quiz.router, prefix='/api/v1/quiz', tags=['Quiz'])
app.include_router(metrics.router, tags=['Metrics'])

@app.get('/')
async def root():
    return {
        'message': 'Quizbank API',
        'status': 'operativo',
        'version': '1.0.0',
        'docs': '/docs',
        'available_services': ['health', 'catalog', 'quiz', 'metrics'],
        'quiz_endpoints': {
            'state': '/api/v1/quiz/state',
            'start': '/api/v1/quiz/start',
            'submit': '/api/v1/quiz/submit',
            'history': '/api/v1/quiz/history/view'
        }
    }

if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=8000)
