import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from beautyshop.core import config
from beautyshop.database import Base, engine, ensure_appointment_schema
from beautyshop.models import appointment, client, expense, service, user  # noqa: F401
from beautyshop.routes import (
    appointments_routes,
    auth_routes,
    clients_routes,
    expenses_routes,
    public_routes,
    services_routes,
    stats_routes,
)
from beautyshop.routes.common import DATABASE_UNAVAILABLE_DETAIL

app = FastAPI(title='BeautyShop API', version=config.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error('Unhandled database error on %s %s', request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={'detail': DATABASE_UNAVAILABLE_DETAIL},
    )


@app.get('/health')
def health():
    return {
        'status': 'OK',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'message': 'BeautyShop backend is running',
        'version': config.APP_VERSION,
    }


@app.get('/api')
def api_index():
    return {
        'message': 'BeautyShop API',
        'version': config.APP_VERSION,
        'endpoints': {
            'auth': ['POST /api/auth/register', 'POST /api/auth/login', 'GET /api/auth/me'],
            'public': ['GET /api/public/{slug}', 'POST /api/public/{slug}/book'],
            'services': [
                'GET /api/services',
                'POST /api/services',
                'PUT /api/services/{id}',
                'DELETE /api/services/{id}',
            ],
            'appointments': [
                'GET /api/appointments',
                'POST /api/appointments',
                'POST /api/appointments/availability',
                'PUT /api/appointments/{id}',
            ],
            'clients': ['GET /api/clients', 'POST /api/clients', 'PUT /api/clients/{id}'],
            'expenses': ['GET /api/expenses', 'POST /api/expenses'],
            'stats': ['GET /api/stats'],
        },
    }


app.include_router(auth_routes.router, prefix='/api/auth')
app.include_router(public_routes.router, prefix='/api/public')
app.include_router(services_routes.router, prefix='/api/services')
app.include_router(appointments_routes.router, prefix='/api/appointments')
app.include_router(clients_routes.router, prefix='/api/clients')
app.include_router(expenses_routes.router, prefix='/api/expenses')
app.include_router(stats_routes.router, prefix='/api/stats')
