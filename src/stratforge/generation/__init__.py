"""Code generation: prompts, parsing, extraction, aggregation and validation."""

from stratforge.generation.aggregation import aggregate_contract, aggregate_python
from stratforge.generation.architecture import ArchitectureError, parse_architecture
from stratforge.generation.extraction import extract_python_code, extract_solidity_code
from stratforge.generation.service import GenerationService, parse_review
from stratforge.generation.validation import ValidationReport, validate_python

__all__ = [
    "ArchitectureError",
    "GenerationService",
    "ValidationReport",
    "aggregate_contract",
    "aggregate_python",
    "extract_python_code",
    "extract_solidity_code",
    "parse_architecture",
    "parse_review",
    "validate_python",
]
