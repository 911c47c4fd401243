"""Quire transformations: handler registry, prompts, slide parsing, orchestrator."""

from quire.transform.handlers import HandlerKind, TransformationHandler, get_handler
from quire.transform.orchestrator import (
    OrchestratorSettings,
    TransformationOrchestrator,
    TransformationRequest,
)
from quire.transform.slides import Slide, parse_slides

__all__ = [
    "HandlerKind",
    "OrchestratorSettings",
    "Slide",
    "TransformationHandler",
    "TransformationOrchestrator",
    "TransformationRequest",
    "get_handler",
    "parse_slides",
]
