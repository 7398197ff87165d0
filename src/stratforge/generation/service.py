"""
Generation service - every model and tool call the pipelines make.

All outbound requests go through one RequestQueue so the whole run shares a
single rate budget.
"""

from __future__ import annotations

from typing import Callable

import structlog

from stratforge.core.config import GenerationSettings, Settings, get_settings
from stratforge.core.models import (
    Architecture,
    ArtifactKind,
    CompilationResult,
    CompletionRequest,
    ExecutionResult,
    FunctionSignature,
    ImplementedFunction,
    Message,
    ModelConfig,
    ReviewResult,
)
from stratforge.generation import prompts
from stratforge.generation.aggregation import aggregate_contract, aggregate_python
from stratforge.generation.architecture import parse_architecture
from stratforge.generation.extraction import extract_python_code, extract_solidity_code
from stratforge.generation.validation import ValidationReport, validate_python
from stratforge.providers.base import AuthenticationError, BaseProvider, ProviderError
from stratforge.providers.openrouter_provider import OpenRouterProvider
from stratforge.queue.rate_limiter import RateLimitConfig, RequestQueue
from stratforge.services.compiler import CompilerService
from stratforge.services.executor import ExecutorService

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int], None]


class GenerationService:
    """
    Model and tool calls for the strategy and contract pipelines.

    Example:
        service = GenerationService.from_settings(api_key="sk-or-...")
        strategy = await service.generate_strategy("BTC")
        raw = await service.design_architecture(strategy, ArtifactKind.PYTHON)
    """

    def __init__(
        self,
        provider: BaseProvider,
        queue: RequestQueue | None = None,
        compiler: CompilerService | None = None,
        executor: ExecutorService | None = None,
        settings: GenerationSettings | None = None,
    ):
        self.provider = provider
        self.queue = queue or RequestQueue()
        self.compiler = compiler
        self.executor = executor
        self.settings = settings or get_settings().generation

    @classmethod
    def from_settings(
        cls,
        api_key: str | None = None,
        settings: Settings | None = None,
    ) -> "GenerationService":
        """Build a service with its own queue from application settings."""
        settings = settings or get_settings()
        providers = settings.providers

        if api_key is None and providers.openrouter_api_key is not None:
            api_key = providers.openrouter_api_key.get_secret_value()
        if not api_key:
            raise AuthenticationError("No OpenRouter API key configured", provider="openrouter")

        timeout = settings.generation.http_timeout
        return cls(
            provider=OpenRouterProvider(api_key=api_key, base_url=providers.openrouter_base_url),
            queue=RequestQueue(
                RateLimitConfig(
                    requests_per_minute=settings.queue.requests_per_minute,
                    retry_delay_seconds=settings.queue.retry_delay_seconds,
                    max_retries=settings.queue.max_retries,
                )
            ),
            compiler=CompilerService(providers.compiler_url, timeout=timeout),
            executor=ExecutorService(providers.executor_url, timeout=timeout),
            settings=settings.generation,
        )

    async def aclose(self) -> None:
        """Release HTTP clients."""
        if self.compiler:
            await self.compiler.aclose()
        if self.executor:
            await self.executor.aclose()
        client = getattr(self.provider, "client", None)
        if client is not None and hasattr(client, "close"):
            await client.close()

    async def _complete(
        self,
        messages: list[Message],
        model: str,
        temperature: float,
        max_tokens: int,
        unit_id: str,
    ) -> str:
        """Submit one chat completion to the queue and return its text."""
        request = CompletionRequest(
            messages=messages,
            config=ModelConfig(model=model, temperature=temperature, max_tokens=max_tokens),
        )
        logger.debug(
            "Submitting completion",
            unit_id=unit_id,
            model=model,
            messages=len(messages),
        )
        response = await self.queue.submit(lambda: self.provider.complete_async(request), unit_id)
        return response.content

    # Research stage

    async def generate_strategy(self, asset: str, brief: str | None = None) -> str:
        """Ask the research model for a plain-language trading strategy."""
        return await self._complete(
            prompts.strategy_messages(asset, brief),
            model=self.settings.research_model,
            temperature=self.settings.research_temperature,
            max_tokens=self.settings.research_max_tokens,
            unit_id="strategy",
        )

    async def analyze_request(self, request: str) -> str:
        """Ask the research model to turn a contract request into requirements."""
        return await self._complete(
            prompts.analysis_messages(request),
            model=self.settings.research_model,
            temperature=self.settings.research_temperature,
            max_tokens=self.settings.research_max_tokens,
            unit_id="analyze",
        )

    # Architecture stage

    async def design_architecture(self, text: str, kind: ArtifactKind) -> str:
        """
        Ask the architect for a JSON function architecture.

        Returns the raw reply; the caller validates it with parse_architecture
        so a bad reply fails the architecture stage rather than a later one.
        """
        return await self._complete(
            prompts.architecture_messages(text, kind),
            model=self.settings.architect_model,
            temperature=self.settings.code_temperature,
            max_tokens=self.settings.architecture_max_tokens,
            unit_id="architect",
        )

    # Implementation stage

    async def implement_function(
        self,
        signature: FunctionSignature,
        context: str,
        all_functions: list[FunctionSignature],
        kind: ArtifactKind,
        feedback: str | None = None,
    ) -> str:
        """Generate the code for one function."""
        raw = await self._complete(
            prompts.implementation_messages(signature, context, all_functions, kind, feedback),
            model=self.settings.implementer_model,
            temperature=self.settings.code_temperature,
            max_tokens=self.settings.function_max_tokens,
            unit_id=f"function-{signature.name}",
        )
        if kind == ArtifactKind.SOLIDITY:
            return extract_solidity_code(raw)
        return extract_python_code(raw)

    async def review_function(
        self,
        signature: FunctionSignature,
        code: str,
        kind: ArtifactKind,
    ) -> ReviewResult:
        """Ask the reviewer to approve or reject one implementation."""
        reply = await self._complete(
            prompts.review_messages(signature, code, kind),
            model=self.settings.reviewer_model,
            temperature=0.0,
            max_tokens=self.settings.review_max_tokens,
            unit_id=f"review-{signature.name}",
        )
        return parse_review(reply)

    async def implement_functions(
        self,
        architecture: Architecture,
        context: str,
        kind: ArtifactKind,
        on_progress: ProgressCallback | None = None,
    ) -> list[ImplementedFunction]:
        """
        Implement every function of an architecture, one at a time.

        Each function gets up to ``review_attempts`` implement/review rounds,
        with the reviewer's feedback passed to the next round. A function that
        is never approved keeps its last code under an error comment; a
        function whose calls fail gets a stub that reports the failure.
        """
        comment = "//" if kind == ArtifactKind.SOLIDITY else "#"
        total = len(architecture.functions)
        implemented: list[ImplementedFunction] = []

        for signature in architecture.functions:
            try:
                implemented.append(
                    await self._implement_reviewed(signature, context, architecture.functions, kind)
                )
            except AuthenticationError:
                raise
            except ProviderError as e:
                logger.error("Function implementation failed", function=signature.name, error=str(e))
                implemented.append(
                    ImplementedFunction(
                        name=signature.name,
                        code=(
                            f"{comment} ERROR: Failed to implement {signature.name}\n"
                            f"{comment} {e}\n"
                            f"{_stub(signature, kind)}"
                        ),
                        approved=False,
                        error=str(e),
                    )
                )

            if on_progress:
                on_progress(len(implemented), total)

        return implemented

    async def _implement_reviewed(
        self,
        signature: FunctionSignature,
        context: str,
        all_functions: list[FunctionSignature],
        kind: ArtifactKind,
    ) -> ImplementedFunction:
        feedback: str | None = None
        code = ""

        for attempt in range(self.settings.review_attempts):
            code = await self.implement_function(signature, context, all_functions, kind, feedback)
            review = await self.review_function(signature, code, kind)
            if review.approved:
                return ImplementedFunction(name=signature.name, code=code)
            feedback = review.feedback
            logger.info(
                "Implementation rejected",
                function=signature.name,
                attempt=attempt + 1,
                feedback=feedback,
            )

        comment = "//" if kind == ArtifactKind.SOLIDITY else "#"
        return ImplementedFunction(
            name=signature.name,
            code=(
                f"{comment} ERROR: Review failed for {signature.name}\n"
                f"{comment} {feedback or 'Unknown error'}\n"
                f"{code}"
            ),
            approved=False,
            error=feedback or "Review failed",
        )

    # Aggregation and validation stages

    def aggregate(
        self,
        functions: list[ImplementedFunction],
        context: str,
        kind: ArtifactKind,
        architecture: Architecture | None = None,
    ) -> str:
        """Combine implemented functions into the final artifact."""
        if kind == ArtifactKind.SOLIDITY:
            return aggregate_contract(functions, architecture)
        return aggregate_python(functions, context, architecture)

    def validate(self, code: str) -> ValidationReport:
        """Shallow quality check of a Python artifact."""
        return validate_python(code)

    async def compile_solidity(self, source: str) -> CompilationResult:
        """Compile a contract through the queue."""
        if self.compiler is None:
            raise ProviderError("No compiler service configured", provider="compiler")
        return await self.queue.submit(lambda: self.compiler.compile(source), "compilation")

    async def execute_python(self, source: str) -> ExecutionResult:
        """Run a Python artifact in the sandbox through the queue."""
        if self.executor is None:
            raise ProviderError("No executor service configured", provider="executor")
        return await self.queue.submit(lambda: self.executor.execute(source), "execution")

    async def test_connection(self) -> bool:
        """Check that the completion API answers with the configured key."""
        return await self.provider.health_check()


def parse_review(reply: str) -> ReviewResult:
    """Turn a reviewer reply (``APPROVED`` / ``REJECTED: ...``) into a ReviewResult."""
    text = reply.strip()
    if text.upper().startswith("APPROVED"):
        return ReviewResult(approved=True)
    if text.upper().startswith("REJECTED"):
        text = text[len("REJECTED") :].lstrip(" :")
    return ReviewResult(approved=False, feedback=text)


def _stub(signature: FunctionSignature, kind: ArtifactKind) -> str:
    if kind == ArtifactKind.SOLIDITY:
        return (
            f"function {signature.name}() public pure {{\n"
            '    revert("Function implementation failed");\n'
            "}"
        )
    header = signature.signature.strip().rstrip(":")
    if not header.startswith(("def ", "async def ")):
        header = f"def {signature.name}(*args, **kwargs)"
    return f"{header}:\n    raise NotImplementedError(\"Function implementation failed\")"
