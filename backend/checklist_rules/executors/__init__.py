"""Action executors shipped with the engine"""
from .http_endpoint import HttpEndpointExecutor

__all__ = [
    "HttpEndpointExecutor",
]
