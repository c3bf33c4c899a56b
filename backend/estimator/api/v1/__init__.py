"""
API v1 Routes
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from estimator.api.v1 import estimates, finance, payments, presets, projects

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(estimates.router)
api_v1_router.include_router(payments.router)
api_v1_router.include_router(finance.router)
api_v1_router.include_router(projects.router)
api_v1_router.include_router(presets.router)

# Esportazione
__all__ = ["api_v1_router"]
