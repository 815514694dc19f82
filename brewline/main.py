# Brewline API Main Entry Point
import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .settings import settings
from .routers.ready import router as ready_router
from .routers.units import router as units_router
from .routers.nutrition import router as nutrition_router
from .routers.pricing import router as pricing_router
from .routers.drinks import router as drinks_router
from .routers.promos import router as promos_router
from .routers.orders import router as orders_router

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("brewline")

# Rate limiter (per-IP)
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.default_rate_limit])

app = FastAPI(title="Brewline API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(units_router, prefix="/api/units", tags=["units"])
app.include_router(nutrition_router, prefix="/api", tags=["nutrition"])
app.include_router(pricing_router, prefix="/api", tags=["pricing"])
app.include_router(drinks_router, prefix="/api", tags=["drinks"])
app.include_router(promos_router, prefix="/api", tags=["promos"])
app.include_router(orders_router, prefix="/api", tags=["orders"])
