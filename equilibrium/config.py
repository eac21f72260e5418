"""AMM configuration.

A single configuration governs every pool: who may create pools, where fees
are reported, and the defaults used when a pool is created without explicit
amplification or weights.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from equilibrium.constants import BASIS_POINTS, SEED_POOL_ARITY
from equilibrium.errors import InvalidAmplification, InvalidInputLength, InvalidWeights

DEFAULT_AUTHORITY = "authority"
DEFAULT_AMPLIFICATION = 200
DEFAULT_TARGET_WEIGHTS = (4500, 3500, 2000)


@dataclass(frozen=True)
class AmmConfig:
    """Protocol-wide configuration.

    Attributes:
        authority: Identity allowed to create pools
        fee_recipient: Identity credited with protocol fees
        default_amplification: Amplification used when a pool omits one
        default_target_weights: Seed pool weights used when a pool omits them
    """

    authority: str = DEFAULT_AUTHORITY
    fee_recipient: str = DEFAULT_AUTHORITY
    default_amplification: int = DEFAULT_AMPLIFICATION
    default_target_weights: tuple[int, ...] = DEFAULT_TARGET_WEIGHTS

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_target_weights", tuple(self.default_target_weights))
        validate_amplification(self.default_amplification)
        validate_target_weights(self.default_target_weights, SEED_POOL_ARITY)

    def is_authority(self, caller: str) -> bool:
        return caller == self.authority

    @classmethod
    def from_env(cls) -> AmmConfig:
        """Build a configuration from environment variables.

        - EQUILIBRIUM_AUTHORITY: Pool creation authority (default: "authority")
        - EQUILIBRIUM_FEE_RECIPIENT: Fee recipient (default: the authority)
        - EQUILIBRIUM_DEFAULT_AMPLIFICATION: Default A (default: 200)
        - EQUILIBRIUM_DEFAULT_TARGET_WEIGHTS: Comma separated bps (default: 4500,3500,2000)

        Raises:
            InvalidAmplification: If the amplification is not a positive integer
            InvalidWeights: If the weights are malformed or don't sum to 10000
        """
        authority = os.environ.get("EQUILIBRIUM_AUTHORITY", DEFAULT_AUTHORITY)
        fee_recipient = os.environ.get("EQUILIBRIUM_FEE_RECIPIENT", authority)

        raw_amp = os.environ.get("EQUILIBRIUM_DEFAULT_AMPLIFICATION", str(DEFAULT_AMPLIFICATION))
        try:
            amplification = int(raw_amp)
        except ValueError as err:
            raise InvalidAmplification(f"Amplification must be an integer: {raw_amp!r}") from err

        raw_weights = os.environ.get("EQUILIBRIUM_DEFAULT_TARGET_WEIGHTS")
        if raw_weights is None:
            weights = DEFAULT_TARGET_WEIGHTS
        else:
            try:
                weights = tuple(int(part) for part in raw_weights.split(","))
            except ValueError as err:
                raise InvalidWeights(f"Weights must be integers: {raw_weights!r}") from err

        return cls(
            authority=authority,
            fee_recipient=fee_recipient,
            default_amplification=amplification,
            default_target_weights=weights,
        )


def validate_amplification(amplification: int) -> None:
    """Raise InvalidAmplification unless amplification >= 1."""
    if amplification < 1:
        raise InvalidAmplification(f"Amplification must be >= 1, got {amplification}")


def validate_target_weights(weights: tuple[int, ...], arity: int) -> None:
    """Check a weight vector's arity and that it sums to 10000 basis points.

    Raises:
        InvalidInputLength: If len(weights) != arity
        InvalidWeights: If a weight is negative or the sum is not 10000
    """
    if len(weights) != arity:
        raise InvalidInputLength(f"Expected {arity} target weights, got {len(weights)}")
    if any(weight < 0 for weight in weights) or sum(weights) != BASIS_POINTS:
        raise InvalidWeights(f"Target weights {weights} must sum to {BASIS_POINTS}")


def initialize_config(
    authority: str,
    default_amplification: int = DEFAULT_AMPLIFICATION,
    default_target_weights: tuple[int, ...] = DEFAULT_TARGET_WEIGHTS,
    fee_recipient: str | None = None,
) -> AmmConfig:
    """Create the protocol configuration. The fee recipient defaults to the authority."""
    return AmmConfig(
        authority=authority,
        fee_recipient=fee_recipient if fee_recipient is not None else authority,
        default_amplification=default_amplification,
        default_target_weights=default_target_weights,
    )


# Default configuration instance
DEFAULT_AMM_CONFIG = AmmConfig()
