"""
The two generation pipelines: Python strategy and Solidity contract.
"""

from __future__ import annotations

from typing import Any

from stratforge.core.models import CRYPTO_ASSETS, ArtifactKind
from stratforge.generation.architecture import parse_architecture
from stratforge.generation.service import GenerationService
from stratforge.pipeline.orchestrator import (
    PipelineOrchestrator,
    Reporter,
    StageDefinition,
    StageListener,
)


def _implementation_summary(data: dict[str, Any]) -> str:
    functions = data["functions"]
    names = "\n".join(
        f"- {f.name}" + ("" if f.approved else " (needs attention)") for f in functions
    )
    return f"Implemented {len(functions)} functions:\n{names}"


def strategy_pipeline(
    service: GenerationService,
    on_change: StageListener | None = None,
) -> PipelineOrchestrator:
    """
    Strategy text -> architecture -> functions -> single Python file ->
    quality check -> sandbox run.

    Run with ``{"asset": "BTC", "brief": None}``.
    """
    kind = ArtifactKind.PYTHON

    async def strategy(data: dict[str, Any], report: Reporter) -> str:
        asset = data["asset"].upper()
        if asset not in CRYPTO_ASSETS:
            raise ValueError(
                f"Unsupported asset: {asset}. Choose one of {', '.join(CRYPTO_ASSETS)}"
            )
        data["strategy"] = await service.generate_strategy(asset, data.get("brief"))
        return data["strategy"]

    async def architecture(data: dict[str, Any], report: Reporter) -> str:
        raw = await service.design_architecture(data["strategy"], kind)
        data["architecture"] = parse_architecture(raw)
        return raw

    async def implementation(data: dict[str, Any], report: Reporter) -> str:
        data["functions"] = await service.implement_functions(
            data["architecture"],
            data["strategy"],
            kind,
            on_progress=lambda done, total: report(f"Implemented {done}/{total} functions"),
        )
        return _implementation_summary(data)

    async def aggregation(data: dict[str, Any], report: Reporter) -> str:
        data["code"] = service.aggregate(
            data["functions"], data["strategy"], kind, data["architecture"]
        )
        return data["code"]

    async def validation(data: dict[str, Any], report: Reporter) -> str:
        data["validation"] = service.validate(data["code"])
        return data["validation"].to_markdown()

    async def execution(data: dict[str, Any], report: Reporter) -> str:
        data["execution"] = await service.execute_python(data["code"])
        return data["execution"].to_markdown()

    return PipelineOrchestrator(
        [
            StageDefinition(
                "strategy",
                "Generate Trading Strategy",
                "Research model writes a pure trading strategy (no code)",
                strategy,
            ),
            StageDefinition(
                "architecture",
                "Generate Architecture",
                "Convert the strategy into JSON function signatures and dependencies",
                architecture,
            ),
            StageDefinition(
                "implementation",
                "Implement Functions",
                "Implement and review each function from the architecture",
                implementation,
            ),
            StageDefinition(
                "aggregation",
                "Build Final Code",
                "Combine all functions into a single Python file",
                aggregation,
            ),
            StageDefinition(
                "validation",
                "Code Quality Check",
                "Validate code structure and native library usage",
                validation,
            ),
            StageDefinition(
                "execution",
                "Sandbox Test",
                "Run the script on the remote Python executor",
                execution,
            ),
        ],
        on_change=on_change,
    )


def contract_pipeline(
    service: GenerationService,
    on_change: StageListener | None = None,
) -> PipelineOrchestrator:
    """
    Request analysis -> architecture -> functions -> Solidity contract ->
    compilation -> results.

    Run with ``{"request": "Create an ERC-20 token with staking rewards"}``.
    """
    kind = ArtifactKind.SOLIDITY

    async def analyze(data: dict[str, Any], report: Reporter) -> str:
        request = data["request"].strip()
        if not request:
            raise ValueError("Contract request is empty")
        data["analysis"] = await service.analyze_request(request)
        return data["analysis"]

    async def architecture(data: dict[str, Any], report: Reporter) -> str:
        raw = await service.design_architecture(data["analysis"], kind)
        data["architecture"] = parse_architecture(raw)
        return raw

    async def implementation(data: dict[str, Any], report: Reporter) -> str:
        data["functions"] = await service.implement_functions(
            data["architecture"],
            data["analysis"],
            kind,
            on_progress=lambda done, total: report(f"Implemented {done}/{total} functions"),
        )
        return _implementation_summary(data)

    async def contract(data: dict[str, Any], report: Reporter) -> str:
        data["code"] = service.aggregate(
            data["functions"], data["analysis"], kind, data["architecture"]
        )
        return data["code"]

    async def compilation(data: dict[str, Any], report: Reporter) -> str:
        data["compilation"] = await service.compile_solidity(data["code"])
        return data["compilation"].to_markdown()

    async def results(data: dict[str, Any], report: Reporter) -> str:
        status = "ready to deploy" if data["compilation"].success else "did not compile"
        return (
            f"## Contract Analysis\n{data['analysis']}\n\n"
            f"## Generated Solidity Contract\n```solidity\n{data['code']}\n```\n\n"
            f"## Compilation Results\n{data['compilation'].to_markdown()}\n\n"
            f"The contract {status}."
        )

    return PipelineOrchestrator(
        [
            StageDefinition(
                "analyze",
                "Analyze Request",
                "Understand the smart contract requirements",
                analyze,
            ),
            StageDefinition(
                "architecture",
                "Generate Architecture",
                "Create the contract structure with function signatures",
                architecture,
            ),
            StageDefinition(
                "implementation",
                "Implement Functions",
                "Generate and review each Solidity function",
                implementation,
            ),
            StageDefinition(
                "contract",
                "Build Contract",
                "Combine everything into a complete Solidity contract",
                contract,
            ),
            StageDefinition(
                "compilation",
                "Compile Contract",
                "Validate and compile with the Solidity compiler",
                compilation,
            ),
            StageDefinition(
                "results",
                "Display Results",
                "Summarize the contract, ABI and deployment info",
                results,
            ),
        ],
        on_change=on_change,
    )
