"""
API Routes
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Modulo per l'aggregazione dei router versionati.
"""

from estimator.api.v1 import api_v1_router

# Esportazione router
__all__ = ["api_v1_router"]
