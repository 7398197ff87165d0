"""Core configuration and data models."""

from stratforge.core.config import Settings, get_settings, reload_settings
from stratforge.core.models import (
    Architecture,
    ArtifactKind,
    CompilationResult,
    CompletionRequest,
    CompletionResponse,
    ExecutionResult,
    FunctionSignature,
    ImplementedFunction,
    Message,
    ModelConfig,
)

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "Architecture",
    "ArtifactKind",
    "CompilationResult",
    "CompletionRequest",
    "CompletionResponse",
    "ExecutionResult",
    "FunctionSignature",
    "ImplementedFunction",
    "Message",
    "ModelConfig",
]
