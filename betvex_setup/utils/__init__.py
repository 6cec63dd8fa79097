from betvex_setup.utils.adapters import DummyStream, TimeOutHTTPAdapter

__all__ = [
    "TimeOutHTTPAdapter",
    "DummyStream",
]
