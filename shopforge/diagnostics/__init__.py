"""Diagnostics for tuning assortment generation."""

from .assortment_simulator import AssortmentSimulator, SimulationResult

__all__ = ["AssortmentSimulator", "SimulationResult"]
