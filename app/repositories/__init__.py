"""
app/repositories package marker.
"""

from app.repositories.data_point_repository import DataPointRepository
from app.repositories.failure_log_repository import FailureLogRepository
from app.repositories.import_event_repository import ImportEventRepository
from app.repositories.promotion_history_repository import PromotionHistoryRepository
from app.repositories.staging_repository import StagingRepository

__all__ = [
    "DataPointRepository",
    "FailureLogRepository",
    "ImportEventRepository",
    "PromotionHistoryRepository",
    "StagingRepository",
]
