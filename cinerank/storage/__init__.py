"""Storage module for database operations."""

from cinerank.storage.db import Base, close_engine, create_tables, get_engine, get_session_factory
from cinerank.storage.json_utils import (
    dump_json_list,
    load_json_list,
    safe_json_dumps,
    safe_json_loads,
)
from cinerank.storage.models import ApiCallCount, KeyValueEntry
from cinerank.storage.repo_dismissed import NotInterestedStore
from cinerank.storage.repo_feedback import NegativeFeedbackStore
from cinerank.storage.repo_kv import KeyValueRepo
from cinerank.storage.repo_quota import DailyQuotaTracker, QuotaLimits
from cinerank.storage.repo_ratings import RatingsStore

__all__ = [
    # Database
    "Base",
    "get_engine",
    "get_session_factory",
    "create_tables",
    "close_engine",
    # JSON utilities
    "dump_json_list",
    "load_json_list",
    "safe_json_dumps",
    "safe_json_loads",
    # Models
    "KeyValueEntry",
    "ApiCallCount",
    # Repositories
    "KeyValueRepo",
    "NegativeFeedbackStore",
    "NotInterestedStore",
    "RatingsStore",
    "DailyQuotaTracker",
    "QuotaLimits",
]
