"""Loyalty program rules, point accrual, statistics and simulation."""

from .program import (
    DEFAULT_PROGRAM,
    DEFAULT_TIERS,
    LoyaltyAccount,
    LoyaltyProgram,
    LoyaltyTier,
    ProgramAlreadyExistsError,
    ProgramStore,
    ensure_program_exists,
)
from .calculator import (
    LoyaltyStats,
    TierDistribution,
    compute_loyalty_stats,
    points_for_amount,
    points_for_receipt,
    points_value,
    resolve_tier,
)
from .simulation import SimulationConfig, SimulationRequest, SimulationResult, simulate

__all__ = [
    "DEFAULT_PROGRAM",
    "DEFAULT_TIERS",
    "LoyaltyAccount",
    "LoyaltyProgram",
    "LoyaltyTier",
    "ProgramAlreadyExistsError",
    "ProgramStore",
    "ensure_program_exists",
    "LoyaltyStats",
    "TierDistribution",
    "compute_loyalty_stats",
    "points_for_amount",
    "points_for_receipt",
    "points_value",
    "resolve_tier",
    "SimulationConfig",
    "SimulationRequest",
    "SimulationResult",
    "simulate",
]
