"""
Species richness data fusion and model comparison.
"""

__version__ = "0.1.0"
