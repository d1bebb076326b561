"""
In-memory model registry.
"""

from .model_registry import ModelRegistry, RegistryEntry

__all__ = ["ModelRegistry", "RegistryEntry"]
