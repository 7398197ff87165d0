"""
Recover bare function code from model replies.
"""

from __future__ import annotations

import re

import structlog

logger = structlog.get_logger()

_SOLIDITY_FENCE_RE = re.compile(r"```(?:solidity|sol)?\n?")
_PYTHON_FENCE_RE = re.compile(r"```(?:python|py)?\n?")


def extract_solidity_code(raw: str) -> str:
    """
    Keep the first complete Solidity function of a reply.

    Markdown fences and any prose before the first ``function`` are dropped;
    the function ends where its braces balance. NatSpec comment lines right
    above the function are kept. Falls back to the raw reply when no function
    is found.
    """
    cleaned = _SOLIDITY_FENCE_RE.sub("", raw).strip()
    lines = cleaned.split("\n")

    start = next(
        (i for i, line in enumerate(lines) if line.strip().startswith("function ")),
        None,
    )
    if start is None:
        logger.debug("No Solidity function found in reply")
        return raw

    doc_start = start
    while doc_start > 0 and lines[doc_start - 1].strip().startswith(("///", "/**", "*", "*/")):
        doc_start -= 1

    body: list[str] = []
    depth = 0
    opened = False
    for line in lines[start:]:
        body.append(line)
        depth += line.count("{") - line.count("}")
        opened = opened or "{" in line
        if opened and depth <= 0:
            break

    code = "\n".join(lines[doc_start:start] + body).strip()
    return code or raw


def extract_python_code(raw: str) -> str:
    """
    Keep the first top-level Python function of a reply.

    Markdown fences and prose are dropped; top-level imports in the reply are
    kept above the function; the function ends at the next non-indented line.
    Falls back to the raw reply when no function is found.
    """
    cleaned = _PYTHON_FENCE_RE.sub("", raw).strip("\n")
    lines = cleaned.split("\n")

    start = next(
        (
            i
            for i, line in enumerate(lines)
            if line.startswith(("def ", "async def ", "@"))
        ),
        None,
    )
    if start is None:
        logger.debug("No Python function found in reply")
        return raw

    imports = [
        line for line in lines[:start] if line.startswith(("import ", "from "))
    ]

    body = [lines[start]]
    in_header = lines[start].startswith("@")
    parens = lines[start].count("(") - lines[start].count(")")
    for line in lines[start + 1 :]:
        # Decorators and multi-line signatures may continue at column 0
        if in_header or parens > 0:
            body.append(line)
            parens += line.count("(") - line.count(")")
            if in_header and line.startswith(("def ", "async def ")):
                in_header = False
            continue
        if line.strip() and not line[0].isspace():
            break
        body.append(line)

    code = "\n".join(body).rstrip()
    if imports:
        code = "\n".join(imports) + "\n\n" + code
    return code or raw
