"""
Core data models for StratForge.

Defines the chat completion types shared by the provider and the generation
service, plus the artifact models produced by the generation stages.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ArtifactKind(str, Enum):
    """Kind of code artifact a pipeline produces."""

    PYTHON = "python"
    SOLIDITY = "solidity"


# Assets offered by the strategy pipeline
CRYPTO_ASSETS: dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "SOL": "Solana",
    "ADA": "Cardano",
    "MATIC": "Polygon",
    "DOT": "Polkadot",
    "LINK": "Chainlink",
    "AVAX": "Avalanche",
}


class MessageRole(str, Enum):
    """Message roles in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        """Create an assistant message."""
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content)


class ModelConfig(BaseModel):
    """Configuration for a model request."""

    model_config = ConfigDict(frozen=True)

    model: str = "anthropic/claude-sonnet-4"
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1500, gt=0)


class CompletionRequest(BaseModel):
    """Request for a chat completion."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message]
    config: ModelConfig = Field(default_factory=ModelConfig)
    metadata: dict[str, Any] = Field(default_factory=dict)


class UsageStats(BaseModel):
    """Token usage statistics."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class CompletionResponse(BaseModel):
    """Response from a model completion."""

    model_config = ConfigDict(frozen=True)

    id: str
    model: str
    content: str
    finish_reason: str | None = None
    usage: UsageStats = Field(default_factory=UsageStats)
    latency_ms: float = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = Field(default_factory=dict)


class FunctionDocumentation(BaseModel):
    """NatSpec-style documentation attached to a function signature."""

    notice: str = ""
    params: list[str] = Field(default_factory=list)
    returns: str = ""
    security: str = ""


class FunctionSignature(BaseModel):
    """One function of a generated architecture."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    signature: str
    purpose: str = ""
    dependencies: list[str] = Field(default_factory=list)
    return_type: str = Field(default="", alias="returnType")
    parameters: list[str] = Field(default_factory=list)
    documentation: FunctionDocumentation | None = None


class Architecture(BaseModel):
    """Structured architecture produced by the architect stage."""

    model_config = ConfigDict(populate_by_name=True)

    functions: list[FunctionSignature]
    contract_name: str | None = Field(default=None, alias="contractName")
    data_structures: dict[str, str] = Field(default_factory=dict, alias="dataStructures")
    state_variables: dict[str, str] = Field(default_factory=dict, alias="stateVariables")
    main_flow: list[str] = Field(default_factory=list, alias="mainFlow")
    events: list[str] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=list)

    @field_validator("data_structures", "state_variables", mode="before")
    @classmethod
    def stringify_values(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v


class ImplementedFunction(BaseModel):
    """Code produced for a single function."""

    name: str
    code: str
    approved: bool = True
    error: str | None = None


class ReviewResult(BaseModel):
    """Verdict of the reviewer model on one implementation."""

    model_config = ConfigDict(frozen=True)

    approved: bool
    feedback: str = ""


class CompilationResult(BaseModel):
    """Outcome of a Solidity compilation request."""

    success: bool
    errors: list[str] = Field(default_factory=list)
    contract_name: str | None = None
    abi: list[dict[str, Any]] = Field(default_factory=list)
    bytecode_size: int = 0

    @property
    def estimated_deploy_gas(self) -> int:
        """Rough deployment gas estimate (20 gas per bytecode byte)."""
        return self.bytecode_size * 20

    def to_markdown(self) -> str:
        """Render the result for the stage display."""
        if self.errors:
            joined = "\n".join(self.errors)
            return f"**Compilation Errors:**\n```\n{joined}\n```"
        if not self.success:
            return "**Compilation Failed.**"
        if not self.contract_name:
            return "Contract compiled successfully but no output generated."
        return (
            f"**Compilation Successful!** (`{self.contract_name}`)\n\n"
            f"**Contract ABI:**\n```json\n{json.dumps(self.abi, indent=2)}\n```\n\n"
            f"**Bytecode Size:** {self.bytecode_size} bytes\n\n"
            f"**Gas Estimation:** ~{self.estimated_deploy_gas} gas for deployment"
        )


class ExecutionResult(BaseModel):
    """Outcome of running a Python artifact in the execution sandbox."""

    success: bool
    output: str = ""
    error: str | None = None

    def to_markdown(self) -> str:
        """Render the result for the stage display."""
        if self.success:
            return f"**Execution Successful!**\n\n```\n{self.output}\n```"
        return f"**Execution Failed:**\n\n```\n{self.error or self.output}\n```"
