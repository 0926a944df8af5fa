"""Elution curves for mixed precursors and deconvoluted isomers.

Examples
--------
>>> from isomerflow.xic import ElutionCurve
>>>
>>> curve = ElutionCurve([0.0, 1000.0, 2000.0], [0.0, 40.0, 10.0])
>>> curve.interpolate(1500.0)
25.0
>>> curve.local_area(0.0, 1000.0)
20000.0
>>> curve.area  # quadratic fit over the three samples
"""

from .elution_curve import ElutionCurve

__all__ = [
    "ElutionCurve",
]
