"""Tests for the pipeline orchestrator and the generation pipelines."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from stratforge.core.config import GenerationSettings
from stratforge.core.models import CompilationResult, ExecutionResult
from stratforge.generation import GenerationService
from stratforge.pipeline import (
    PipelineOrchestrator,
    PipelineRun,
    StageDefinition,
    StageStatus,
    contract_pipeline,
    strategy_pipeline,
)

PYTHON_ARCHITECTURE = json.dumps(
    {
        "functions": [
            {"name": "sma", "signature": "def sma(prices, period):"},
            {"name": "main", "signature": "def main():"},
        ],
        "mainFlow": ["main"],
    }
)

SOLIDITY_ARCHITECTURE = json.dumps(
    {
        "contractName": "Token",
        "functions": [
            {"name": "mint", "signature": "function mint(address to, uint256 amount) external"}
        ],
    }
)


def handler(result=None, error=None, calls=None, name=None):
    async def run(data, report):
        if calls is not None:
            calls.append(name)
        if error:
            raise error
        return result

    return run


class TestPipelineOrchestrator:
    """Tests for stage sequencing."""

    @pytest.mark.asyncio
    async def test_runs_stages_in_order(self):
        calls = []
        orchestrator = PipelineOrchestrator(
            [
                StageDefinition(name, name.title(), "", handler(f"{name} done", calls=calls, name=name))
                for name in ("one", "two", "three")
            ]
        )

        run = await orchestrator.run()

        assert run.success
        assert calls == ["one", "two", "three"]
        assert [s.status for s in run.stages] == [StageStatus.COMPLETED] * 3
        assert run.stage("two").content == "two done"

    @pytest.mark.asyncio
    async def test_failure_halts_later_stages(self):
        calls = []
        orchestrator = PipelineOrchestrator(
            [
                StageDefinition("one", "One", "", handler("ok", calls=calls, name="one")),
                StageDefinition(
                    "two", "Two", "", handler(error=RuntimeError("boom"), calls=calls, name="two")
                ),
                StageDefinition("three", "Three", "", handler("never", calls=calls, name="three")),
            ]
        )

        run = await orchestrator.run()

        assert not run.success
        assert run.failed_stage == "two"
        assert run.error == "boom"
        assert calls == ["one", "two"]
        assert run.stage("one").status == StageStatus.COMPLETED
        assert run.stage("two").status == StageStatus.ERROR
        assert run.stage("two").content == "Error: boom"
        assert run.stage("three").status == StageStatus.PENDING
        assert run.stage("three").content is None

    @pytest.mark.asyncio
    async def test_reports_transitions(self):
        seen = []

        async def slow(data, report):
            report("halfway")
            return "done"

        orchestrator = PipelineOrchestrator(
            [StageDefinition("only", "Only", "", slow)],
            on_change=lambda stage: seen.append((stage.status, stage.content)),
        )

        await orchestrator.run()

        assert seen == [
            (StageStatus.PENDING, None),
            (StageStatus.RUNNING, None),
            (StageStatus.RUNNING, "halfway"),
            (StageStatus.COMPLETED, "done"),
        ]

    @pytest.mark.asyncio
    async def test_rerun_resets_stages(self):
        outcomes = [RuntimeError("first"), None]

        async def flaky(data, report):
            outcome = outcomes.pop(0)
            if outcome:
                raise outcome
            return "ok"

        orchestrator = PipelineOrchestrator([StageDefinition("s", "S", "", flaky)])

        assert not (await orchestrator.run()).success
        run = await orchestrator.run()

        assert run.success
        assert run.stage("s").error is None

    def test_duplicate_ids_rejected(self):
        definitions = [
            StageDefinition("a", "A", "", handler()),
            StageDefinition("a", "A again", "", handler()),
        ]
        with pytest.raises(ValueError):
            PipelineOrchestrator(definitions)

    def test_unknown_stage_lookup(self):
        orchestrator = PipelineOrchestrator([StageDefinition("a", "A", "", handler())])
        run = PipelineRun(success=True, stages=orchestrator.stages)
        with pytest.raises(KeyError):
            run.stage("missing")


class TestStrategyPipeline:
    """Tests for the Python strategy pipeline."""

    def _service(self, provider, queue, execution=None):
        executor = MagicMock()
        executor.execute = AsyncMock(
            return_value=execution or ExecutionResult(success=True, output="Final balance: 1050")
        )
        return GenerationService(
            provider, queue=queue, executor=executor, settings=GenerationSettings()
        )

    @pytest.mark.asyncio
    async def test_full_run(self, provider_factory, fast_queue):
        provider = provider_factory(
            [
                "Buy when price crosses above the 2-period SMA.",
                PYTHON_ARCHITECTURE,
                "def sma(prices, period):\n    return sum(prices[-period:]) / period",
                "APPROVED",
                "def main():\n    print(sma([1.0, 2.0, 3.0], 2))",
                "APPROVED",
            ]
        )
        service = self._service(provider, fast_queue)

        run = await strategy_pipeline(service).run({"asset": "btc"})

        assert run.success, run.error
        assert [s.id for s in run.stages] == [
            "strategy",
            "architecture",
            "implementation",
            "aggregation",
            "validation",
            "execution",
        ]
        assert all(s.status == StageStatus.COMPLETED for s in run.stages)
        assert "def sma" in run.data["code"]
        assert "PASSED" in run.stage("validation").content
        assert "Final balance: 1050" in run.stage("execution").content
        assert "Implemented 2 functions" in run.stage("implementation").content
        service.executor.execute.assert_awaited_once_with(run.data["code"])

    @pytest.mark.asyncio
    async def test_bad_architecture_stops_pipeline(self, provider_factory, fast_queue):
        provider = provider_factory(["A strategy.", "Sorry, I cannot produce JSON."])
        service = self._service(provider, fast_queue)

        run = await strategy_pipeline(service).run({"asset": "ETH"})

        assert not run.success
        assert run.failed_stage == "architecture"
        assert run.stage("strategy").status == StageStatus.COMPLETED
        assert run.stage("architecture").status == StageStatus.ERROR
        assert "No valid JSON" in run.stage("architecture").content
        assert run.stage("implementation").status == StageStatus.PENDING
        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_unsupported_asset(self, provider_factory, fast_queue):
        provider = provider_factory()
        run = await strategy_pipeline(self._service(provider, fast_queue)).run({"asset": "DOGE"})

        assert run.failed_stage == "strategy"
        assert "Unsupported asset" in run.error
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_failed_execution_still_completes(self, provider_factory, fast_queue):
        provider = provider_factory(
            [
                "A strategy.",
                json.dumps({"functions": [{"name": "main", "signature": "def main():"}]}),
                "def main():\n    print(undefined_name)",
                "APPROVED",
            ]
        )
        service = self._service(
            provider, fast_queue, ExecutionResult(success=False, error="NameError: undefined_name")
        )

        run = await strategy_pipeline(service).run({"asset": "SOL"})

        assert run.success
        assert run.stage("execution").status == StageStatus.COMPLETED
        assert "Execution Failed" in run.stage("execution").content


class TestContractPipeline:
    """Tests for the Solidity contract pipeline."""

    def _service(self, provider, queue, compilation):
        compiler = MagicMock()
        compiler.compile = AsyncMock(return_value=compilation)
        return GenerationService(
            provider, queue=queue, compiler=compiler, settings=GenerationSettings()
        )

    def _provider(self, provider_factory):
        return provider_factory(
            [
                "Requirements: mintable token.",
                SOLIDITY_ARCHITECTURE,
                "function mint(address to, uint256 amount) external onlyOwner {\n"
                "    balances[to] += amount;\n}",
                "APPROVED",
            ]
        )

    @pytest.mark.asyncio
    async def test_full_run(self, provider_factory, fast_queue):
        service = self._service(
            self._provider(provider_factory),
            fast_queue,
            CompilationResult(success=True, contract_name="Token", bytecode_size=100),
        )

        run = await contract_pipeline(service).run({"request": "A mintable token"})

        assert run.success, run.error
        assert [s.id for s in run.stages] == [
            "analyze",
            "architecture",
            "implementation",
            "contract",
            "compilation",
            "results",
        ]
        assert "contract Token is Ownable, ReentrancyGuard" in run.data["code"]
        assert "Compilation Successful" in run.stage("compilation").content
        assert "ready to deploy" in run.stage("results").content

    @pytest.mark.asyncio
    async def test_compile_errors_reported_in_results(self, provider_factory, fast_queue):
        service = self._service(
            self._provider(provider_factory),
            fast_queue,
            CompilationResult(success=False, errors=["DeclarationError: balances"]),
        )

        run = await contract_pipeline(service).run({"request": "A mintable token"})

        assert run.success
        assert "DeclarationError" in run.stage("compilation").content
        assert "did not compile" in run.stage("results").content

    @pytest.mark.asyncio
    async def test_empty_request(self, provider_factory, fast_queue):
        service = self._service(provider_factory(), fast_queue, CompilationResult(success=True))

        run = await contract_pipeline(service).run({"request": "   "})

        assert run.failed_stage == "analyze"
