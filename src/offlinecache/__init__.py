"""
OfflineCache

Client-side cache orchestration: named buckets, fetch/store strategies,
request routing, a control protocol and install/activate/evict lifecycle.
"""

from offlinecache.engine import CacheEngine
from offlinecache.http import Request, Response

__version__ = "0.1.0"

__all__ = [
    'CacheEngine',
    'Request',
    'Response',
    '__version__',
]
