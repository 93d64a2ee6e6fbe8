"""Service layer modules."""

from .fallback_cache import FallbackCache, FallbackEntry
from .orchestrator import (
    CategoryOutcome,
    CyclePhase,
    CycleResult,
    CycleStatus,
    IngestionOrchestrator,
    create_orchestrator,
    get_orchestrator,
    init_orchestrator,
)
from .rate_service import RateService, get_rate_service, init_rate_service
from .rate_store import RateRecord, RateStore, SqlRateStore
from .scheduler import RateRefreshScheduler, init_scheduler
from .seed import SUPPORTED_CURRENCIES, seed_currencies
