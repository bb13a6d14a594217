"""
CourseHub Feature Flag API
FastAPI backend for flag checks and the admin targeting console
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coursehub.api.schemas import HealthResponse
from coursehub.api.v1 import v1_router
from coursehub.core.config import settings
from coursehub.core.container import container, register_services
from coursehub.core.exceptions import CourseHubException
from coursehub.core.logging_config import configure_logging
from coursehub.core.middleware import (
	RequestLoggingMiddleware,
	RequestSizeLimitMiddleware,
	SecurityHeadersMiddleware,
)

VERSION = '1.0.0'

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	"""Register services on startup, release connections on shutdown."""
	logger.info(f'CourseHub API starting (environment: {settings.environment})')
	if not container.has('feature_flags'):
		register_services(container, settings)

	yield

	logger.info('CourseHub API shutting down')
	try:
		cache = container.resolve('flag_cache') if container.has('flag_cache') else None
		if cache:
			await cache.close()
			logger.info('Flag cache connection closed')
	except Exception as e:
		logger.warning(f'Flag cache cleanup error: {e}')


app = FastAPI(
	title='CourseHub Feature Flags API',
	description='Feature flag evaluation and targeting administration',
	version=VERSION,
	lifespan=lifespan,
	docs_url='/docs' if settings.is_development else None,
	redoc_url='/redoc' if settings.is_development else None,
	openapi_url='/openapi.json' if settings.is_development else None,
)


@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
	logger.warning(f'HTTP error {exc.status_code}: {exc.detail}')
	return JSONResponse(
		status_code=exc.status_code,
		content={'error': True, 'code': f'HTTP_{exc.status_code}', 'message': str(exc.detail)},
	)


@app.exception_handler(CourseHubException)
async def coursehub_exception_handler(request: Request, exc: CourseHubException):
	logger.warning(f'CourseHub error [{exc.code}]: {exc.message}')
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
	logger.error(f'Global error: {str(exc)}', exc_info=True)
	content = {'error': True, 'code': 'INTERNAL_ERROR', 'message': 'Internal Server Error'}
	if not settings.is_production:
		content['detail'] = str(exc)
	return JSONResponse(status_code=500, content=content)


# ============================================
# Middleware Stack (order matters - last added = first executed)
# ============================================

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.max_request_size)
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.get_cors_origins(),
	allow_credentials=True,
	allow_methods=['*'],
	allow_headers=['*'],
)

app.include_router(v1_router)


@app.get('/')
async def root():
	return {'status': 'ok', 'message': f'CourseHub Feature Flags API v{VERSION}'}


@app.get('/api/health', response_model=HealthResponse)
async def health_check():
	return HealthResponse(
		service='coursehub-feature-flags',
		version=VERSION,
		environment=settings.environment,
		services=container.health_check(),
	)


if __name__ == '__main__':
	logger.info(f'Starting Uvicorn (environment: {settings.environment})...')
	uvicorn.run(
		'coursehub.main:app',
		host=settings.host,
		port=settings.port,
		reload=settings.is_development,
		log_level=settings.log_level.lower(),
	)
