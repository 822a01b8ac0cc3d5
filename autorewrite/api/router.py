from fastapi import APIRouter
from autorewrite.api.routes import health, taxonomy, webhooks

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
api_router.include_router(taxonomy.router, prefix="/taxonomy", tags=["Taxonomy"])
