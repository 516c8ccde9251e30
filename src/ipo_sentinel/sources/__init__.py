"""ipo_sentinel.sources — Provider adapters and key normalization."""

from ipo_sentinel.sources.base import BaseSourceAdapter, InvocationObserver, SourceAdapter
from ipo_sentinel.sources.chittorgarh import ChittorgarhAdapter
from ipo_sentinel.sources.groww import GrowwAdapter
from ipo_sentinel.sources.investorgain import InvestorGainAdapter
from ipo_sentinel.sources.normalize import normalize_key
from ipo_sentinel.sources.nse import NseAdapter
from ipo_sentinel.sources.registry import ADAPTER_CLASSES, build_adapters

__all__ = [
    "SourceAdapter",
    "InvocationObserver",
    "BaseSourceAdapter",
    "ChittorgarhAdapter",
    "GrowwAdapter",
    "InvestorGainAdapter",
    "NseAdapter",
    "ADAPTER_CLASSES",
    "build_adapters",
    "normalize_key",
]
