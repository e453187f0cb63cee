"""
Services package for spawn input mapping.

Contains the async facade that runs mapping calls on worker threads.
"""
from .mapping_service import InputMappingService

__all__ = [
    "InputMappingService",
]
