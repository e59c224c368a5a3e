"""
Built-in tools.

- web_fetch: fetch the first URL found in the step output and return readable
  text (httpx + trafilatura, SSRF guard, in-memory cache)
- calculator: evaluate the first arithmetic expression in the step output

Tools raise on failure; the execution engine records the error as a failed
ToolOutput.
"""

import ast
import hashlib
import logging
import math
import operator
import re
import time
from typing import Dict, List, Optional, Tuple

import httpx
import trafilatura

from .decorator import tool

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# web_fetch
# ---------------------------------------------------------------------------

_cache: Dict[str, Tuple[str, float]] = {}
_CACHE_TTL_S = 300  # 5 minutes
_MAX_CACHE_ENTRIES = 64

_MAX_CONTENT_CHARS = 12000
_USER_AGENT = "Mozilla/5.0 (compatible; TaskPilot/1.0)"

_URL_PATTERN = re.compile(r"https?://[^\s<>\"')\]]+", re.IGNORECASE)

_BLOCKED_PATTERNS = re.compile(
    r"^https?://"
    r"(localhost|127\.|10\.|172\.(1[6-9]|2\d|3[01])\.|192\.168\.|0\.0\.0\.0|\[::1?\])",
    re.IGNORECASE,
)


def _cache_get(url: str) -> Optional[str]:
    key = hashlib.sha256(url.encode()).hexdigest()
    entry = _cache.get(key)
    if entry and entry[1] > time.time():
        return entry[0]
    _cache.pop(key, None)
    return None


def _cache_set(url: str, content: str) -> None:
    if len(_cache) >= _MAX_CACHE_ENTRIES:
        oldest_key = min(_cache, key=lambda k: _cache[k][1])
        _cache.pop(oldest_key, None)
    key = hashlib.sha256(url.encode()).hexdigest()
    _cache[key] = (content, time.time() + _CACHE_TTL_S)


def _is_safe_url(url: str) -> bool:
    return not _BLOCKED_PATTERNS.match(url)


def extract_url(text: str) -> Optional[str]:
    match = _URL_PATTERN.search(text or "")
    return match.group(0).rstrip(".,;") if match else None


@tool(tags=["data", "reasoning"])
async def web_fetch(text: str) -> str:
    """Fetch the first URL mentioned in the input and return its readable text."""
    url = extract_url(text)
    if not url:
        raise ValueError("no URL found in input")
    if not _is_safe_url(url):
        raise ValueError(f"refusing to fetch internal or private network URL: {url}")

    cached = _cache_get(url)
    if cached:
        return cached

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=20.0,
        headers={"User-Agent": _USER_AGENT},
    ) as client:
        resp = await client.get(url)
    resp.raise_for_status()

    content_type = resp.headers.get("content-type", "")
    if "text/plain" in content_type or "application/json" in content_type:
        text_out = resp.text[:_MAX_CONTENT_CHARS]
    else:
        text_out = trafilatura.extract(
            resp.text,
            url=url,
            include_tables=True,
            output_format="txt",
            favor_recall=True,
        )
        if not text_out or len(text_out.strip()) < 30:
            raise ValueError(f"could not extract meaningful content from {url}")
        if len(text_out) > _MAX_CONTENT_CHARS:
            text_out = text_out[:_MAX_CONTENT_CHARS] + "\n\n[Content truncated]"

    result = f"Content from {url}\n\n{text_out}"
    _cache_set(url, result)
    return result


# ---------------------------------------------------------------------------
# calculator
# ---------------------------------------------------------------------------

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_FUNCTIONS = {
    "sqrt": math.sqrt,
    "log": math.log,
    "log10": math.log10,
    "exp": math.exp,
    "abs": abs,
    "round": round,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}
_CONSTANTS = {"pi": math.pi, "e": math.e}
_MAX_EXPONENT = 1000

# Runs of digits, operators, parentheses and known names
_EXPRESSION_PATTERN = re.compile(
    r"(?:\b(?:sqrt|log10|log|exp|abs|round|sin|cos|tan|pi|e)\b|[\d.]+|[-+*/%()^,\s])+"
)


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        return _FUNCTIONS[node.func.id](*[_eval_node(a) for a in node.args])
    raise ValueError(f"unsupported expression element: {ast.dump(node)}")


def evaluate(expression: str) -> float:
    """Safely evaluate an arithmetic expression (``^`` is treated as power)."""
    tree = ast.parse(expression.replace("^", "**").strip(), mode="eval")
    return _eval_node(tree)


def _candidate_expressions(text: str) -> List[str]:
    candidates = [m.group(0).strip() for m in _EXPRESSION_PATTERN.finditer(text or "")]
    # Longest first, and only runs that contain a digit or a constant
    candidates = [c for c in candidates if re.search(r"\d|\bpi\b", c)]
    return sorted(candidates, key=len, reverse=True)


@tool(tags=["code", "data"])
def calculator(text: str) -> str:
    """Evaluate the first arithmetic expression found in the input."""
    for candidate in _candidate_expressions(text):
        try:
            value = evaluate(candidate)
        except (SyntaxError, ValueError, TypeError, ZeroDivisionError, OverflowError):
            continue
        return f"{candidate} = {value:g}" if isinstance(value, float) else f"{candidate} = {value}"
    raise ValueError("no evaluable arithmetic expression in input")


BUILTIN_TOOLS = [web_fetch, calculator]
