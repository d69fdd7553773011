"""Configuration package for bankview."""

from .settings import load_config

__all__ = ['load_config']
