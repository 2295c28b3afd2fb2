"""Rootly incident management adapter."""

from adapters.rootly.adapter import RootlyAdapter
from adapters.rootly.config import RootlyConfig
from adapters.rootly.datasource import RootlyDatasource

__all__ = ["RootlyAdapter", "RootlyConfig", "RootlyDatasource"]
