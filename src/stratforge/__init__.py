"""
StratForge - AI trading strategy and smart contract generator

Turns a crypto asset or a plain-language contract request into a Python
strategy script or a compiled Solidity contract, with every model and tool
call paced through one rate-limited request queue.
"""

__version__ = "1.0.0"
__author__ = "StratForge Team"

from stratforge.core.models import ArtifactKind, CompletionRequest, CompletionResponse, Message
from stratforge.generation.service import GenerationService
from stratforge.pipeline import contract_pipeline, strategy_pipeline
from stratforge.queue import QueueStatus, RateLimitConfig, RequestQueue

__all__ = [
    "ArtifactKind",
    "CompletionRequest",
    "CompletionResponse",
    "Message",
    "GenerationService",
    "contract_pipeline",
    "strategy_pipeline",
    "QueueStatus",
    "RateLimitConfig",
    "RequestQueue",
]
