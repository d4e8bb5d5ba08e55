"""
Search orchestration engine for searchscope.
"""

from .aggregator import ResultAggregator
from .session import SearchSession
from .sink import LoggingSink, PresentationSink

__all__ = ['ResultAggregator', 'SearchSession', 'LoggingSink', 'PresentationSink']
