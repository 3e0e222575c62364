"""The five validation stages, in the order the pipeline runs them."""

from fixgate.validation.stages.base import StageContext, ValidationStage
from fixgate.validation.stages.functional import FunctionalStage
from fixgate.validation.stages.performance import PerformanceStage
from fixgate.validation.stages.regression import RegressionStage
from fixgate.validation.stages.side_effects import SideEffectStage
from fixgate.validation.stages.syntax import SyntaxStage

ALL_STAGES: list[type[ValidationStage]] = [
    SyntaxStage,
    FunctionalStage,
    RegressionStage,
    PerformanceStage,
    SideEffectStage,
]

__all__ = [
    "ALL_STAGES",
    "FunctionalStage",
    "PerformanceStage",
    "RegressionStage",
    "SideEffectStage",
    "StageContext",
    "SyntaxStage",
    "ValidationStage",
]
