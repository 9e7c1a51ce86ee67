import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hospital_admin.core import config
from hospital_admin.hospital_api import HospitalAPIError
from hospital_admin.routes import (
    appointment_routes,
    auth_routes,
    calendar_routes,
    dashboard_routes,
    department_routes,
    patient_routes,
    report_routes,
    user_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='Hospital Admin Portal')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(HospitalAPIError)
async def hospital_api_error_handler(request: Request, exc: HospitalAPIError) -> JSONResponse:
    if exc.retryable:
        logger.error('Hospital API failure on %s %s: %s', request.method, request.url.path, exc.message)
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = exc.status_code

    return JSONResponse(
        status_code=status_code,
        content={
            'detail': exc.message,
            'retryable': exc.retryable,
            'session_expired': exc.session_expired,
        },
    )


@app.get('/')
def root():
    return {'status': 'Hospital Admin Portal Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(dashboard_routes.router, prefix='/dashboard')
app.include_router(calendar_routes.router, prefix='/calendar')
app.include_router(patient_routes.router, prefix='/patients')
app.include_router(department_routes.router, prefix='/departments')
app.include_router(user_routes.router, prefix='/users')
app.include_router(report_routes.router, prefix='/reports')
