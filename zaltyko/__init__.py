"""Zaltyko: multi-tenant management backend for gymnastics academies."""

__version__ = "1.0.0"
