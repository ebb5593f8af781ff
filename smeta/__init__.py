"""Smeta: floor-plan PDF analysis pipeline for renovation cost estimates."""

__version__ = "0.1.0"
