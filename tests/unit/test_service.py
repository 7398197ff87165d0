"""Tests for GenerationService."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from stratforge.core.config import GenerationSettings, ProviderSettings, Settings
from stratforge.core.models import (
    Architecture,
    ArtifactKind,
    CompilationResult,
    FunctionSignature,
)
from stratforge.generation import GenerationService
from stratforge.providers.base import AuthenticationError, ProviderError, RateLimitError

SMA_CODE = "def sma(prices, period):\n    return sum(prices[-period:]) / period"


@pytest.fixture
def settings():
    return GenerationSettings()


@pytest.fixture
def architecture():
    return Architecture(
        functions=[
            FunctionSignature(name="sma", signature="def sma(prices, period):"),
            FunctionSignature(name="main", signature="def main():"),
        ]
    )


def make_service(provider, queue, settings, **kwargs):
    return GenerationService(provider, queue=queue, settings=settings, **kwargs)


class TestResearch:
    """Tests for the research calls."""

    @pytest.mark.asyncio
    async def test_generate_strategy_uses_research_model(
        self, provider_factory, fast_queue, settings
    ):
        provider = provider_factory(["Buy BTC when RSI < 30."])
        service = make_service(provider, fast_queue, settings)

        strategy = await service.generate_strategy("BTC")

        assert strategy == "Buy BTC when RSI < 30."
        request = provider.requests[0]
        assert request.config.model == "perplexity/sonar-pro"
        assert "Asset: BTC" in request.messages[-1].content

    @pytest.mark.asyncio
    async def test_custom_brief(self, provider_factory, fast_queue, settings):
        provider = provider_factory(["ok"])
        service = make_service(provider, fast_queue, settings)

        await service.generate_strategy("ETH", "Mean reversion on 4h candles")

        assert "Mean reversion on 4h candles" in provider.requests[0].messages[-1].content

    @pytest.mark.asyncio
    async def test_throttled_call_is_retried_by_queue(
        self, provider_factory, fast_queue, settings
    ):
        provider = provider_factory([RateLimitError("429"), "analysis"])
        service = make_service(provider, fast_queue, settings)

        assert await service.analyze_request("ERC-20 with staking") == "analysis"
        assert len(provider.requests) == 2
        assert fast_queue.get_stats().total_retries == 1

    @pytest.mark.asyncio
    async def test_completion_does_not_tokenize_prompt(
        self, provider_factory, fast_queue, settings
    ):
        provider = provider_factory(["ok"])
        provider.count_tokens = MagicMock(side_effect=AssertionError("tokenized"))
        service = make_service(provider, fast_queue, settings)

        assert await service.generate_strategy("SOL") == "ok"
        provider.count_tokens.assert_not_called()


class TestImplementFunctions:
    """Tests for the implement/review loop."""

    @pytest.mark.asyncio
    async def test_approved_first_try(self, provider_factory, fast_queue, settings, architecture):
        provider = provider_factory(
            [SMA_CODE, "APPROVED", "def main():\n    print(1)", "APPROVED"]
        )
        service = make_service(provider, fast_queue, settings)
        progress = []

        functions = await service.implement_functions(
            architecture,
            "strategy",
            ArtifactKind.PYTHON,
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert [f.name for f in functions] == ["sma", "main"]
        assert all(f.approved for f in functions)
        assert functions[0].code == SMA_CODE
        assert progress == [(1, 2), (2, 2)]

    @pytest.mark.asyncio
    async def test_feedback_passed_to_second_attempt(
        self, provider_factory, fast_queue, settings
    ):
        provider = provider_factory(
            ["def sma():\n    pass", "REJECTED: handle empty input", SMA_CODE, "APPROVED"]
        )
        service = make_service(provider, fast_queue, settings)
        arch = Architecture(functions=[FunctionSignature(name="sma", signature="def sma():")])

        functions = await service.implement_functions(arch, "strategy", ArtifactKind.PYTHON)

        assert functions[0].approved
        assert functions[0].code == SMA_CODE
        second_attempt = provider.requests[2].messages
        assert any("handle empty input" in m.content for m in second_attempt)

    @pytest.mark.asyncio
    async def test_rejected_twice_is_marked(self, provider_factory, fast_queue, settings):
        provider = provider_factory(
            [
                "function f() public {}",
                "REJECTED: no events",
                "function f() public { emit X(); }",
                "REJECTED: still wrong",
            ]
        )
        service = make_service(provider, fast_queue, settings)
        arch = Architecture(functions=[FunctionSignature(name="f", signature="function f()")])

        functions = await service.implement_functions(arch, "request", ArtifactKind.SOLIDITY)

        assert not functions[0].approved
        assert functions[0].error == "still wrong"
        assert functions[0].code.startswith("// ERROR: Review failed for f\n// still wrong\n")
        assert functions[0].code.endswith("function f() public { emit X(); }")
        assert len(provider.requests) == 4

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_stub(
        self, provider_factory, fast_queue, settings, architecture
    ):
        provider = provider_factory(
            [ProviderError("upstream exploded"), "def main():\n    print(1)", "APPROVED"]
        )
        service = make_service(provider, fast_queue, settings)

        functions = await service.implement_functions(architecture, "s", ArtifactKind.PYTHON)

        assert not functions[0].approved
        assert functions[0].code.startswith("# ERROR: Failed to implement sma")
        assert "def sma(prices, period):\n    raise NotImplementedError" in functions[0].code
        assert functions[1].approved

    @pytest.mark.asyncio
    async def test_authentication_error_propagates(
        self, provider_factory, fast_queue, settings, architecture
    ):
        provider = provider_factory([AuthenticationError("bad key")])
        service = make_service(provider, fast_queue, settings)

        with pytest.raises(AuthenticationError):
            await service.implement_functions(architecture, "s", ArtifactKind.PYTHON)

    @pytest.mark.asyncio
    async def test_solidity_reply_is_extracted(self, provider_factory, fast_queue, settings):
        provider = provider_factory(
            ["Here you go:\n```solidity\nfunction f() public {}\n```\nDone.", "APPROVED"]
        )
        service = make_service(provider, fast_queue, settings)
        arch = Architecture(functions=[FunctionSignature(name="f", signature="function f()")])

        functions = await service.implement_functions(arch, "request", ArtifactKind.SOLIDITY)

        assert functions[0].code == "function f() public {}"


class TestTools:
    """Tests for compilation and execution through the queue."""

    @pytest.mark.asyncio
    async def test_compile_without_compiler(self, provider_factory, fast_queue, settings):
        service = make_service(provider_factory(), fast_queue, settings)

        with pytest.raises(ProviderError):
            await service.compile_solidity("contract A {}")

    @pytest.mark.asyncio
    async def test_compile_through_queue(self, provider_factory, fast_queue, settings):
        compiler = MagicMock()
        compiler.compile = AsyncMock(
            return_value=CompilationResult(success=True, contract_name="A")
        )
        service = make_service(provider_factory(), fast_queue, settings, compiler=compiler)

        result = await service.compile_solidity("contract A {}")

        assert result.contract_name == "A"
        compiler.compile.assert_awaited_once_with("contract A {}")
        assert fast_queue.get_stats().total_succeeded == 1

    @pytest.mark.asyncio
    async def test_connection(self, provider_factory, fast_queue, settings):
        service = make_service(provider_factory(["pong"]), fast_queue, settings)
        assert await service.test_connection() is True


class TestFromSettings:
    """Tests for building a service from settings."""

    def test_requires_key(self):
        settings = Settings(providers=ProviderSettings(OPENROUTER_API_KEY=None))
        with pytest.raises(AuthenticationError):
            GenerationService.from_settings(settings=settings)

    def test_explicit_key(self):
        service = GenerationService.from_settings(api_key="sk-or-test", settings=Settings())

        assert service.provider.api_key == "sk-or-test"
        assert service.queue.config.requests_per_minute == Settings().queue.requests_per_minute
        assert service.compiler is not None
        assert service.executor is not None
