"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from menu_pricing.config import get_settings
from menu_pricing.api import analysis, ingredients, products, settings as settings_api

settings = get_settings()

app = FastAPI(
    title="Menu Pricing",
    description="Cost rollup and channel pricing for small food businesses",
    version="0.1.0",
)

# CORS configuration from environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(ingredients.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(analysis.router, prefix="/api/v1")
app.include_router(settings_api.router, prefix="/api/v1")
app.include_router(settings_api.channels_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
