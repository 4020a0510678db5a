"""
Layer Storage Module
"""
from .layer_store import LayerStore

__all__ = ["LayerStore"]
