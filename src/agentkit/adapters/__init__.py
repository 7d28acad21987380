"""Adapters implementing the uniform logging and inference contracts."""

from .base import DALoggingAdapter, VerifiableInferenceAdapter
from .eigenda import EigenDAAdapter
from .opacity import OpacityAdapter

__all__ = [
    "DALoggingAdapter",
    "EigenDAAdapter",
    "OpacityAdapter",
    "VerifiableInferenceAdapter",
]
