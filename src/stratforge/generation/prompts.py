"""
Prompt templates for each generation stage.
"""

from __future__ import annotations

from stratforge.core.models import ArtifactKind, FunctionSignature, Message

DEFAULT_STRATEGY_BRIEF = (
    "Create a detailed algorithmic trading strategy focused on {asset} cryptocurrency "
    "using 4-hour intervals. Include momentum indicators, volatility analysis, and "
    "risk management specific to crypto markets."
)

STRATEGY_SYSTEM = """You are a quantitative trading researcher. Describe a complete trading \
strategy in plain language: market thesis, indicators with exact parameters, entry and exit \
rules, position sizing, and risk management. Do NOT write any code."""

ANALYSIS_SYSTEM = """You are a senior smart contract analyst. Turn the user's request into a \
precise requirements document: purpose, roles and permissions, state, functions, events, \
security considerations, and edge cases. Do NOT write any code."""

PYTHON_ARCHITECT_SYSTEM = """You are an expert Python architect for single-file trading \
strategies that use only the Python standard library. Output ONLY a valid JSON object.

REQUIRED JSON FORMAT:
{
  "functions": [
    {
      "name": "function_name",
      "signature": "def function_name(prices: list[float], period: int) -> float",
      "purpose": "What the function does and how it fits the strategy",
      "dependencies": ["other", "functions", "it", "calls"],
      "returnType": "float",
      "parameters": ["prices: list[float]", "period: int"]
    }
  ],
  "dataStructures": {
    "Candle": "dict with open, high, low, close, volume, timestamp"
  },
  "mainFlow": ["load data", "compute indicators", "generate signals", "backtest"]
}

CRITICAL: Output ONLY the JSON object, no explanations, no markdown, no additional text."""

SOLIDITY_ARCHITECT_SYSTEM = """You are an expert Solidity architect specializing in \
high-quality, well-documented smart contracts. Output ONLY a valid JSON object with \
comprehensive function signatures.

REQUIRED JSON FORMAT:
{
  "contractName": "ContractName",
  "functions": [
    {
      "name": "functionName",
      "signature": "function functionName(address param1, uint256 param2) public returns (bool)",
      "purpose": "Function purpose, security considerations, and business logic",
      "dependencies": ["other", "functions", "it", "calls"],
      "returnType": "bool",
      "parameters": ["address param1", "uint256 param2"],
      "documentation": {
        "notice": "High-level description for NatSpec",
        "params": ["param1: Description", "param2: Description"],
        "returns": "Description of return value",
        "security": "Security considerations"
      }
    }
  ],
  "stateVariables": {
    "balances": "mapping(address => uint256) private balances"
  },
  "events": ["Transfer(address indexed from, address indexed to, uint256 value)"],
  "imports": ["@openzeppelin/contracts/access/Ownable.sol"]
}

CRITICAL: Output ONLY the JSON object, no explanations, no markdown, no additional text."""

PYTHON_IMPLEMENTER_SYSTEM = """You are an expert Python developer. Generate a single, complete \
function with a docstring and type hints.

CRITICAL RULES:
- OUTPUT ONLY PYTHON CODE
- Use only the Python standard library (math, statistics, datetime, json, csv, random)
- Follow the exact signature provided
- Handle empty or short inputs without raising
- NO markdown blocks, just raw Python code starting with 'def'"""

SOLIDITY_IMPLEMENTER_SYSTEM = """You are an expert Solidity developer. Generate a single, \
complete, well-documented function with comprehensive NatSpec documentation.

CRITICAL RULES:
- OUTPUT ONLY SOLIDITY CODE WITH NATSPEC DOCUMENTATION
- Start with /// @notice and include all relevant NatSpec tags
- Include proper access control and security patterns
- Add error handling with descriptive revert messages
- Include event emissions for state changes
- Follow the exact signature provided
- NO markdown blocks, just raw Solidity code"""

REVIEWER_SYSTEM = """You are a {language} code reviewer. Examine the specification and \
implementation. If the implementation is valid, well-written, and contains only {language} \
code with comments, respond exactly with 'APPROVED'. If there are issues or extraneous text \
outside comments, respond with 'REJECTED: <feedback>'."""


def _language(kind: ArtifactKind) -> str:
    return "Python" if kind == ArtifactKind.PYTHON else "Solidity"


def strategy_messages(asset: str, brief: str | None = None) -> list[Message]:
    """Messages for the strategy research stage."""
    brief = brief or DEFAULT_STRATEGY_BRIEF.format(asset=asset)
    return [
        Message.system(STRATEGY_SYSTEM),
        Message.user(f"Asset: {asset}\n\n{brief}"),
    ]


def analysis_messages(request: str) -> list[Message]:
    """Messages for the contract request analysis stage."""
    return [
        Message.system(ANALYSIS_SYSTEM),
        Message.user(
            f"Analyze this smart contract request and provide detailed requirements: {request}"
        ),
    ]


def architecture_messages(text: str, kind: ArtifactKind) -> list[Message]:
    """Messages asking the architect for a JSON function architecture."""
    if kind == ArtifactKind.SOLIDITY:
        return [
            Message.system(SOLIDITY_ARCHITECT_SYSTEM),
            Message.user(
                "Convert this smart contract request into a JSON function architecture:\n\n"
                f"{text}\n\n"
                "Create function signatures for:\n"
                "- Core contract functionality\n"
                "- Access control and security functions\n"
                "- Business logic specific to the contract type\n"
                "- View functions for reading state\n"
                "- Event emissions for important state changes\n\n"
                "Output ONLY valid JSON with the exact format specified."
            ),
        ]
    return [
        Message.system(PYTHON_ARCHITECT_SYSTEM),
        Message.user(
            "Convert this trading strategy into a JSON function architecture:\n\n"
            f"{text}\n\n"
            "Create function signatures for:\n"
            "- Market data loading and candle handling\n"
            "- Each indicator the strategy uses\n"
            "- Signal generation and position sizing\n"
            "- Risk management checks\n"
            "- A backtesting loop that reports performance\n\n"
            "Output ONLY valid JSON with the exact format specified."
        ),
    ]


def implementation_messages(
    signature: FunctionSignature,
    context: str,
    all_functions: list[FunctionSignature],
    kind: ArtifactKind,
    feedback: str | None = None,
) -> list[Message]:
    """Messages asking for one function body."""
    system = (
        SOLIDITY_IMPLEMENTER_SYSTEM if kind == ArtifactKind.SOLIDITY else PYTHON_IMPLEMENTER_SYSTEM
    )
    messages = [Message.system(system)]
    if feedback:
        messages.append(
            Message.system(
                "The previous implementation was rejected for the following reasons: "
                f"{feedback}. Please correct these issues."
            )
        )

    others = "\n".join(f"- {f.signature}" for f in all_functions)
    start = "function" if kind == ArtifactKind.SOLIDITY else "def"
    messages.append(
        Message.user(
            f"IMPLEMENT THIS FUNCTION:\n{signature.signature}\n\n"
            f"PURPOSE: {signature.purpose}\n\n"
            f"CONTEXT:\n{context}\n\n"
            f"OTHER FUNCTIONS AVAILABLE:\n{others}\n\n"
            f"OUTPUT ONLY THE {_language(kind).upper()} FUNCTION CODE. NO MARKDOWN. "
            f"NO EXPLANATIONS. START WITH '{start}'."
        )
    )
    return messages


def review_messages(signature: FunctionSignature, code: str, kind: ArtifactKind) -> list[Message]:
    """Messages asking the reviewer to approve or reject an implementation."""
    return [
        Message.system(REVIEWER_SYSTEM.format(language=_language(kind))),
        Message.user(
            f"SPECIFICATION:\n{signature.signature}\n\n"
            f"PURPOSE: {signature.purpose}\n\n"
            f"IMPLEMENTATION:\n{code}"
        ),
    ]
