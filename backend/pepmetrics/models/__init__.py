from pepmetrics.models.user import User
from pepmetrics.models.garmin_data import GarminDailyData
from pepmetrics.models.garmin_activity import GarminActivity
from pepmetrics.models.garmin_import import GarminImport
from pepmetrics.models.protocol import Protocol
from pepmetrics.models.dose_log import DoseLog
from pepmetrics.models.ai_insight import AIInsight

__all__ = [
    "User",
    "GarminDailyData",
    "GarminActivity",
    "GarminImport",
    "Protocol",
    "DoseLog",
    "AIInsight",
]
