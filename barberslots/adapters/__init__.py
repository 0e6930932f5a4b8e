"""
Adapters layer - Schedule data sources (JSON document, booking backend API).
"""

from .api_client import ScheduleApiClient
from .json_store import JsonScheduleStore

__all__ = ["JsonScheduleStore", "ScheduleApiClient"]
