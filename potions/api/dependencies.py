"""Shared engine instance for the API routes."""

from functools import lru_cache

from potions.engine import FormulationEngine


@lru_cache
def get_engine() -> FormulationEngine:
    return FormulationEngine.from_settings()
