"""Protocol constants for the Equilibrium stable-value AMM.

All ratios are integers over a fixed denominator:
- weights and withdrawal ratios are basis points (x/10000)
- swap fees are parts per thousand (x/1000)
- prices are parts per thousand around parity (1000 == 1.000)
"""

# Basis points (10000 = 100%)
BASIS_POINTS = 10_000

# Dynamic fee model, expressed over FEE_DENOMINATOR
BASE_FEE = 1  # 0.1%
MAX_FEE = 5  # 0.5%
FEE_MULTIPLIER = 1  # 0.1% per 10 percentage points of weight deviation
FEE_DENOMINATOR = 1000

# Concentrated liquidity price window
MIN_PRICE = 995  # 0.995
MAX_PRICE = 1005  # 1.005
PRICE_DENOMINATOR = 1000
# One unit of concentration widens the range by 0.005 on each side
PRICE_INCREMENT = 5

# Newton-Raphson iteration cap for the invariant
MAX_ITERATIONS = 255

# Pool arities
SEED_POOL_ARITY = 3
GROWTH_POOL_ARITY = 2

# Growth pools are always balanced 50/50
GROWTH_TARGET_WEIGHTS = (5000, 5000)

# Token amounts are unsigned 64-bit integers
U64_MAX = 2**64 - 1
