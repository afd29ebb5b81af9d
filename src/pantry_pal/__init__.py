"""
Pantry Pal - ingredient-driven recipe discovery and meal planning.
"""

__version__ = "0.1.0"
