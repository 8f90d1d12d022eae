from fastapi import APIRouter

from .config import router as config_router
from .ledger import router as ledger_router
from .pool import router as pool_router
from .ranks import router as ranks_router

api_router = APIRouter()
api_router.include_router(ledger_router, prefix="/ledger", tags=["ledger"])
api_router.include_router(pool_router, prefix="/pool", tags=["pool"])
api_router.include_router(ranks_router, prefix="/ranks", tags=["ranks"])
api_router.include_router(config_router, prefix="/config", tags=["config"])
