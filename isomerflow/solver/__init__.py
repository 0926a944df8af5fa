"""Non-negative mixture solver."""

from .max_flow import (
    solve_max_flow,
    solve_mixture,
    compute_step_size,
    coefficients_to_ratios,
    MixtureSolution,
)

__all__ = [
    'solve_max_flow',
    'solve_mixture',
    'compute_step_size',
    'coefficients_to_ratios',
    'MixtureSolution',
]
