"""ProgScope: progress reporting for parallel computations."""

from .aggregation import FirstOnly, SumAll, Weighted, get_strategy
from .config import Settings, get_settings
from .errors import NoActiveScopeError, ProgScopeError, ScopeAlreadyActiveError
from .models import AggregateState, AggregationStrategy, ProgressEvent
from .parallel import async_progress_map, progress_map, with_progress
from .registry import get_default_handlers, reset_default_handlers, set_default_handlers
from .scope import ProgressScope, enter_scope, progress_scope
from .signaler import Signaler, create_signaler, signal

__version__ = "0.1.0"

__all__ = [
    "AggregateState",
    "AggregationStrategy",
    "FirstOnly",
    "NoActiveScopeError",
    "ProgScopeError",
    "ProgressEvent",
    "ProgressScope",
    "ScopeAlreadyActiveError",
    "Settings",
    "Signaler",
    "SumAll",
    "Weighted",
    "async_progress_map",
    "create_signaler",
    "enter_scope",
    "get_default_handlers",
    "get_settings",
    "get_strategy",
    "progress_map",
    "progress_scope",
    "reset_default_handlers",
    "set_default_handlers",
    "signal",
    "with_progress",
]
