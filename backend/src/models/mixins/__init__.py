"""
Model mixins for shared functionality across lodge entities.
"""

from backend.src.models.mixins.guid import GuidMixin

__all__ = ["GuidMixin"]
