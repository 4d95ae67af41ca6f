"""
Networking matcher services
"""

from .data_validator import DataValidator, ValidationError

__all__ = ['DataValidator', 'ValidationError']
