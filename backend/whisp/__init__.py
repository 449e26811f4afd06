"""Whisp: settlement and claim service for encrypted prediction-market wagers."""

__version__ = "0.1.0"
__author__ = "Whisp Team"

__all__ = ["__version__", "__author__"]
