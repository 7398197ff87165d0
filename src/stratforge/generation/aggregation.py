"""
Assemble implemented functions into a single artifact.
"""

from __future__ import annotations

import re

from stratforge.core.models import Architecture, ImplementedFunction

DEFAULT_CONTRACT_NAME = "SmartContract"
SOLIDITY_PRAGMA = "pragma solidity ^0.8.19;"
BASE_CONTRACT_IMPORTS = [
    "@openzeppelin/contracts/access/Ownable.sol",
    "@openzeppelin/contracts/utils/ReentrancyGuard.sol",
]

PYTHON_BASE_IMPORTS = [
    "import json",
    "import math",
    "import random",
    "import statistics",
    "from datetime import datetime, timedelta",
]

_IDENTIFIER_RE = re.compile(r"[^A-Za-z0-9_]")


def _contract_identifier(name: str | None) -> str:
    ident = _IDENTIFIER_RE.sub("", name or "")
    if not ident or ident[0].isdigit():
        return DEFAULT_CONTRACT_NAME
    return ident


def _indent(code: str, prefix: str = "    ") -> str:
    return "\n".join(prefix + line if line.strip() else "" for line in code.split("\n"))


def aggregate_contract(
    functions: list[ImplementedFunction],
    architecture: Architecture | None = None,
) -> str:
    """
    Build a complete Solidity contract around the implemented functions.

    Contract name, imports, state variables and events come from the
    architecture when it provides them; otherwise a minimal token skeleton is
    used.
    """
    architecture = architecture or Architecture(functions=[])
    name = _contract_identifier(architecture.contract_name)

    imports = list(BASE_CONTRACT_IMPORTS)
    for path in architecture.imports:
        path = path.strip().removeprefix("import").strip().strip('";\'')
        if path and path not in imports:
            imports.append(path)

    if architecture.state_variables:
        state = [
            decl.strip().rstrip(";") + ";" for decl in architecture.state_variables.values()
        ]
    else:
        state = [
            "mapping(address => uint256) private balances;",
            "uint256 public totalSupply;",
            "string public name;",
            "string public symbol;",
        ]

    if architecture.events:
        events = [
            "event " + ev.strip().removeprefix("event").strip().rstrip(";") + ";"
            for ev in architecture.events
        ]
    else:
        events = [
            "event Transfer(address indexed from, address indexed to, uint256 value);",
            "event Approval(address indexed owner, address indexed spender, uint256 value);",
        ]

    has_constructor = any(
        f.code.lstrip().startswith("constructor") or f.name == "constructor" for f in functions
    )

    parts = [
        "// SPDX-License-Identifier: MIT",
        SOLIDITY_PRAGMA,
        "",
        *[f'import "{path}";' for path in imports],
        "",
        f"contract {name} is Ownable, ReentrancyGuard {{",
        *["    " + line for line in state],
        "",
        *["    " + line for line in events],
        "",
    ]
    if not has_constructor:
        parts += ["    constructor() Ownable(msg.sender) {}", ""]

    parts.append("\n\n".join(_indent(f.code.strip()) for f in functions))
    parts.append("}")
    return "\n".join(parts) + "\n"


def aggregate_python(
    functions: list[ImplementedFunction],
    strategy: str,
    architecture: Architecture | None = None,
) -> str:
    """
    Build a single-file Python strategy script.

    Top-level imports from the functions are hoisted and de-duplicated; the
    script ends with a ``__main__`` runner that calls the architecture's
    entry point when one can be found.
    """
    imports = list(PYTHON_BASE_IMPORTS)
    bodies: list[str] = []

    for func in functions:
        body_lines = []
        for line in func.code.strip().split("\n"):
            if line.startswith(("import ", "from ")):
                if line not in imports:
                    imports.append(line)
            else:
                body_lines.append(line)
        bodies.append("\n".join(body_lines).strip())

    summary = " ".join(strategy.split())
    if len(summary) > 600:
        summary = summary[:597] + "..."
    summary = summary.replace('"""', "'''")

    entry = _entry_point(functions, architecture)
    runner = (
        f"    {entry}()" if entry else "    print(\"No entry point was generated.\")"
    )

    parts = [
        '"""',
        "Generated trading strategy.",
        "",
        summary,
        '"""',
        "",
        *imports,
        "",
        "",
        "\n\n\n".join(bodies),
        "",
        "",
        'if __name__ == "__main__":',
        runner,
    ]
    return "\n".join(parts) + "\n"


def _entry_point(
    functions: list[ImplementedFunction],
    architecture: Architecture | None,
) -> str | None:
    names = [f.name for f in functions]
    for candidate in ("main", "run_backtest", "backtest", "run_strategy", "run"):
        if candidate in names:
            return candidate
    if architecture and architecture.main_flow:
        for step in architecture.main_flow:
            if step in names:
                return step
    return None
