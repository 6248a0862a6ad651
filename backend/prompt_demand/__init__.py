"""Prompt demand estimator.

Expands a natural-language prompt into keyword variants, looks up their
search volume and combines the results into a weighted, confidence-scored
demand estimate.
"""

__version__ = "0.1.0"
