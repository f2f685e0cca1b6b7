"""Optimization services."""

from invopt.services.optimizer_client import OptimizerClient, OptimizerError
from invopt.services.pipeline import OptimizationPipeline, PipelineOutcome

__all__ = [
    "OptimizerClient",
    "OptimizerError",
    "OptimizationPipeline",
    "PipelineOutcome",
]
