# src/core/access/__init__.py
"""
Политика доступа к заявкам.
"""

from src.core.access.policy import AccessPolicy, Action, Actor

__all__ = ["AccessPolicy", "Action", "Actor"]
