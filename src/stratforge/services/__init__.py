"""Remote tool services: Solidity compiler and Python execution sandbox."""

from stratforge.services.compiler import CompilerService, parse_compiler_output
from stratforge.services.executor import ExecutorService

__all__ = [
    "CompilerService",
    "ExecutorService",
    "parse_compiler_output",
]
