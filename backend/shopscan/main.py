"""
ShopScan API - FastAPI Main Entry

✅ LOCAL:
    cd backend
    pip install -e ..
    python -m uvicorn shopscan.main:app --reload --host 0.0.0.0 --port 8000

✅ TEST:
    curl -i http://127.0.0.1:8000/health
    curl -i http://127.0.0.1:8000/v1/lookup/012345678905
    curl -i -X POST http://127.0.0.1:8000/v1/identifiers -H 'content-type: application/json' \
        -d '{"text": "UPC 012345678905"}'

✅ PRODUCTION:
    python -m uvicorn shopscan.main:app --host 0.0.0.0 --port $PORT
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shopscan.core.config import settings
from shopscan.core.log_config import setup_logging

# ✅ Routers
from shopscan.api.routes_identify import router as identify_router
from shopscan.api.routes_meta import router as meta_router
from shopscan.api.routes_offers import router as offers_router
from shopscan.api.routes_trends import router as trends_router


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="ShopScan API",
        version=settings.APP_VERSION,
        description="Barcode identification, product lookup and retailer price comparison",
    )

    # ✅ CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ✅ Mount routers
    app.include_router(meta_router)
    app.include_router(identify_router)
    app.include_router(offers_router)
    app.include_router(trends_router)

    return app


app = create_app()
