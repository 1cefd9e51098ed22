"""
app/services package marker.
"""

from app.services.import_orchestrator_service import (
    ImportOrchestratorService,
    get_import_orchestrator_service,
)
from app.services.promotion_engine import PromotionEngine

__all__ = [
    "ImportOrchestratorService",
    "PromotionEngine",
    "get_import_orchestrator_service",
]
