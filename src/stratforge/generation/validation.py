"""
Shallow quality checks for generated Python strategies.

These are heuristics only: the script is parsed, never executed.
"""

from __future__ import annotations

import ast
import sys

from pydantic import BaseModel, Field


class ValidationReport(BaseModel):
    """Outcome of the code quality check."""

    syntax_ok: bool
    syntax_error: str | None = None
    function_count: int = 0
    has_main_guard: bool = False
    third_party_imports: list[str] = Field(default_factory=list)
    line_count: int = 0

    @property
    def passed(self) -> bool:
        return self.syntax_ok and self.function_count > 0 and not self.third_party_imports

    def to_markdown(self) -> str:
        """Render the report for the stage display."""

        def mark(ok: bool) -> str:
            return "[x]" if ok else "[ ]"

        lines = [
            f"**Code Quality Check: {'PASSED' if self.passed else 'ISSUES FOUND'}**",
            "",
            f"- {mark(self.syntax_ok)} Valid Python syntax"
            + (f" ({self.syntax_error})" if self.syntax_error else ""),
            f"- {mark(self.function_count > 0)} {self.function_count} functions defined",
            f"- {mark(self.has_main_guard)} `__main__` entry point",
            f"- {mark(not self.third_party_imports)} Native libraries only"
            + (
                f" (found: {', '.join(self.third_party_imports)})"
                if self.third_party_imports
                else ""
            ),
            f"- {self.line_count} lines",
        ]
        return "\n".join(lines)


def _top_level_module(name: str | None) -> str:
    return (name or "").split(".")[0]


def validate_python(code: str) -> ValidationReport:
    """Check syntax, structure and that only standard-library modules are imported."""
    line_count = len(code.splitlines())
    try:
        tree = ast.parse(code)
    except SyntaxError as e:
        return ValidationReport(
            syntax_ok=False,
            syntax_error=f"line {e.lineno}: {e.msg}",
            line_count=line_count,
        )

    functions = [
        node for node in ast.walk(tree) if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    ]

    modules: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            modules.update(_top_level_module(alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.level == 0:
            modules.add(_top_level_module(node.module))

    stdlib = sys.stdlib_module_names
    third_party = sorted(m for m in modules if m and m not in stdlib)

    has_main_guard = any(
        isinstance(node, ast.If)
        and isinstance(node.test, ast.Compare)
        and isinstance(node.test.left, ast.Name)
        and node.test.left.id == "__name__"
        for node in tree.body
    )

    return ValidationReport(
        syntax_ok=True,
        function_count=len(functions),
        has_main_guard=has_main_guard,
        third_party_imports=third_party,
        line_count=line_count,
    )
