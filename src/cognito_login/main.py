"""Cognito Login Service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cognito_login.config.settings import get_settings
from cognito_login.api.middleware.login import CognitoLoginMiddleware
from cognito_login.api.routes import auth
from cognito_login.infrastructure.redis.client import get_redis_client, close_redis_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(
        f"Login options: username_attribute={settings.username_attribute}, "
        f"create_new_user={settings.create_new_user}, homepage={settings.homepage or '-'}"
    )

    # Initialize Redis
    try:
        await get_redis_client()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down Cognito Login Service")
    await close_redis_client()
    logger.info("Redis connection closed")


# Create FastAPI application
settings = get_settings()
app = FastAPI(
    title="Cognito Login Service",
    version=settings.service_version,
    description="Federated login through an AWS Cognito user pool",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Provider callbacks may land on any page
app.add_middleware(CognitoLoginMiddleware)


# Health check endpoint
@app.get("/health")
async def root_health_check():
    """Service health, including the Redis user directory"""
    try:
        redis_client = await get_redis_client()
        redis_healthy = await redis_client.health_check()
    except Exception as e:
        logger.error(f"Health check could not reach Redis: {e}")
        redis_healthy = False

    return {
        "status": "healthy" if redis_healthy else "degraded",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "services": {
            "redis": "healthy" if redis_healthy else "unhealthy",
        },
    }


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "description": "Cognito Login Service",
        "login": "/api/v1/auth/login",
        "health": "/health"
    }


app.include_router(auth.router, tags=["authentication"])


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cognito_login.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
