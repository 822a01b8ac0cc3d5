import logging
from fastapi import FastAPI
from autorewrite.api.router import api_router
from autorewrite.config import settings
from autorewrite.services.context import EnrichmentContext

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = FastAPI(title="Shopify Product Auto-Rewrite")


@app.on_event("startup")
async def startup_event():
    # taxonomy and collection map are loaded once here and shared by every request
    app.state.context = EnrichmentContext.from_settings(settings)


app.include_router(api_router)


@app.get("/")
def root():
    return {"status": "running", "message": "Shopify Product Auto-Rewrite"}
