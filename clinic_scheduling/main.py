import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduling.core import config
from clinic_scheduling.core.cache import SchedulingCache
from clinic_scheduling.database import Base, engine, ensure_appointment_schema
from clinic_scheduling.models import appointment, availability, clinic_settings  # noqa: F401
from clinic_scheduling.routes import appointment_routes, availability_routes, clinic_routes

logging.basicConfig(level=logging.DEBUG if config.DEBUG else logging.INFO)

app = FastAPI()
app.state.cache = SchedulingCache(default_ttl=config.CACHE_TTL_SECONDS)

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
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Scheduling API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(clinic_routes.router, prefix='/clinic')
