"""
Numerical constants, reference values and solver guards for the world model.

Centralizes tolerances and thresholds so that sectors, the integrator and the
validation checks agree on them.
"""

# Small epsilon for numerical comparisons and bounds
# Used for:
# - Floors on denominators (e.g., industrial output per reference person)
# - Root finding bracket offsets
EPSILON = 1e-12

# Looser epsilon for iterative convergence tolerances
# Used as the absolute tolerance of the food-ratio root solve in agriculture
LOOSE_EPSILON = 1e-8

# Maximum iterations for root solves
MAX_ITERATIONS = 100

# Number of integrable stocks in the world state vector
N_STOCKS = 10

# World population in 1970 (persons)
# Used for:
# - Crowding ratio in the population sector
# - Normalizing industrial output when allocating output to services
REFERENCE_POPULATION = 3.6e9

# Year from which technological progress compounds
TECHNOLOGY_REFERENCE_YEAR = 1970.0

# Divergence guards checked after every accepted integration step
# Population above this (persons) is treated as numerical blow-up
POPULATION_CEILING = 1e13

# Industrial or service capital above this (USD) is treated as numerical blow-up
CAPITAL_CEILING = 1e18
