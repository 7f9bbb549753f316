"""Utility functions and helpers."""

from .exceptions import (
    BackendRejectionError,
    CacheError,
    InvalidDateError,
    InvalidInputError,
    InvalidTransitionError,
    SessionError,
    StorageError,
    TrackerError,
    TransientNetworkError,
    UnknownRecordTypeError,
)
from .helpers import epoch_millis, round_half_up, to_date

__all__ = [
    "BackendRejectionError",
    "CacheError",
    "InvalidDateError",
    "InvalidInputError",
    "InvalidTransitionError",
    "SessionError",
    "StorageError",
    "TrackerError",
    "TransientNetworkError",
    "UnknownRecordTypeError",
    "epoch_millis",
    "round_half_up",
    "to_date",
]
