from tradejournal.growth.model import GrowthModel, compound
from tradejournal.growth.policies import (
    FractionPolicy,
    ReturnFormula,
    ConstantFraction,
    ExpectedValueTierFraction,
    AdaptiveFraction,
    KellyFractionFormula,
    HybridPowerLawFormula,
    FlatPowerLawFormula,
    MultiFactorFormula,
    RiskRewardScalingFormula,
    LinearAccuracyFormula,
    calibrated_tier_policy,
    initial_tier_policy,
    formula_registry,
    build_policy,
)

__all__ = [
    "GrowthModel",
    "compound",
    "FractionPolicy",
    "ReturnFormula",
    "ConstantFraction",
    "ExpectedValueTierFraction",
    "AdaptiveFraction",
    "KellyFractionFormula",
    "HybridPowerLawFormula",
    "FlatPowerLawFormula",
    "MultiFactorFormula",
    "RiskRewardScalingFormula",
    "LinearAccuracyFormula",
    "calibrated_tier_policy",
    "initial_tier_policy",
    "formula_registry",
    "build_policy",
]
