"""
API Package
===========

REST endpoints for the product research pipeline.
"""

from .routes import register_routes
from .schemas import StartJobRequest

__all__ = ['register_routes', 'StartJobRequest']
