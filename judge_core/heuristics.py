# judge_core/heuristics.py
from __future__ import annotations
import ast, hashlib, re
from typing import List, Optional, Tuple, Union

Number = Union[int, float]

TIME_LIMIT_SEC = 2.0

_SYNTAX_MARKER_RX = re.compile(r"syntax\s+error", re.I)
_LOOP_MARKER_RX   = re.compile(r"infinite\s+loop", re.I)

_THROW_RX    = re.compile(r"\bthrow\s+(?:new\s+)?\w+")
_RAISE_RX    = re.compile(r"^\s*raise\b", re.M)
_DIV_ZERO_RX = re.compile(r"(?://|/|%)\s*0(?:\.0*)?(?![\w.])")
_ABORT_RX    = re.compile(r"\b(?:System\.exit|process\.exit|sys\.exit|exit)\s*\(\s*[1-9]\d*\s*\)|\babort\s*\(\s*\)")

_FOREVER_RX  = re.compile(r"\bwhile\s*\(\s*(?:true|1)\s*\)|\bwhile\s+(?:True|1)\s*:|\bfor\s*\(\s*;\s*;\s*\)")
_BREAK_RX    = re.compile(r"\bbreak\b")

_FOLD_RX     = re.compile(r"\breduce\s*\(|\bsum\s*\(|\+=")
_PAIR_RX     = re.compile(r"\b\w+\s*\+\s*\w+")

_TOKEN_SPLIT_RX = re.compile(r"[\s,\[\]]+")

_PROGRAMMING_RX = re.compile(
    r"\b(algorithm|array|linked list|hash ?map|recursion|function|variable|loop|compiler|python|javascript|java|"
    r"c\+\+|pointer|stack|queue|binary search|sorting|big-?o|complexity|data structure|class|object-oriented|api)\b",
    re.I,
)

_BRACKETS = {")": "(", "]": "[", "}": "{"}


def strip_literals(source: str, language: str) -> str:
    """Blank out string literals and comments so patterns only see code."""

    out: List[str] = []
    i, n = 0, len(source)
    hash_comments = language == "python"
    while i < n:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < n else ""
        if hash_comments and ch == "#":
            while i < n and source[i] != "\n":
                i += 1
            continue
        if not hash_comments and ch == "/" and nxt == "/":
            while i < n and source[i] != "\n":
                i += 1
            continue
        if not hash_comments and ch == "/" and nxt == "*":
            end = source.find("*/", i + 2)
            i = n if end < 0 else end + 2
            out.append(" ")
            continue
        if ch in ("'", '"', "`"):
            quote = ch
            i += 1
            while i < n and source[i] != quote:
                if source[i] == "\\":
                    i += 1
                if i < n and source[i] == "\n" and quote != "`":
                    break
                i += 1
            i += 1
            out.append('""')
            continue
        out.append(ch)
        i += 1
    return "".join(out)


_EXIT_CALLS = {"exit", "_exit"}
_FOLD_CALLS = {"sum", "reduce"}
_LOOP_NODES = (ast.For, ast.AsyncFor, ast.While)
_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)


def _call_name(node: ast.Call) -> str:
    fn = node.func
    if isinstance(fn, ast.Name):
        return fn.id
    if isinstance(fn, ast.Attribute):
        return fn.attr
    return ""


def _is_zero(node: ast.AST) -> bool:
    return (isinstance(node, ast.Constant) and not isinstance(node.value, bool)
            and isinstance(node.value, (int, float)) and node.value == 0)


def _leaves_loop(body: List[ast.stmt]) -> bool:
    # break/return reachable without entering a nested loop or scope
    todo: List[ast.AST] = list(body)
    while todo:
        node = todo.pop()
        if isinstance(node, (ast.Break, ast.Return)):
            return True
        if isinstance(node, _LOOP_NODES + _SCOPE_NODES):
            continue
        todo.extend(ast.iter_child_nodes(node))
    return False


class PythonFacts(ast.NodeVisitor):
    """What the heuristic rules need from a parsed Python program.

    Only code nodes are visited for meaning; string constants (docstrings included) never match.
    """

    def __init__(self) -> None:
        self.raise_line: Optional[int] = None
        self.div_zero = False
        self.aborts = False
        self.forever = False
        self.fold = False
        self.pair = False

    def visit_Raise(self, node: ast.Raise) -> None:
        if self.raise_line is None:
            self.raise_line = node.lineno
        self.generic_visit(node)

    def visit_BinOp(self, node: ast.BinOp) -> None:
        if isinstance(node.op, (ast.Div, ast.FloorDiv, ast.Mod)) and _is_zero(node.right):
            self.div_zero = True
        if isinstance(node.op, ast.Add) and not any(
            isinstance(side, ast.Constant) and isinstance(side.value, str) for side in (node.left, node.right)
        ):
            self.pair = True
        self.generic_visit(node)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        if isinstance(node.op, ast.Add):
            self.fold = True
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        name = _call_name(node)
        if name in _FOLD_CALLS:
            self.fold = True
        elif name == "abort" and not node.args:
            self.aborts = True
        elif name in _EXIT_CALLS and node.args:
            code = node.args[0]
            if isinstance(code, ast.Constant) and isinstance(code.value, int) and code.value != 0:
                self.aborts = True
        self.generic_visit(node)

    def visit_While(self, node: ast.While) -> None:
        test = node.test
        if isinstance(test, ast.Constant) and test.value and not _leaves_loop(node.body):
            self.forever = True
        self.generic_visit(node)


def python_facts(source: str) -> Optional[PythonFacts]:
    """None when the source does not parse; compile_error reports that case."""

    try:
        tree = ast.parse(source)
    except (SyntaxError, ValueError):
        return None
    facts = PythonFacts()
    facts.visit(tree)
    return facts


def _brackets_balanced(code: str) -> Optional[str]:
    stack: List[Tuple[str, int]] = []
    for lineno, line in enumerate(code.splitlines(), start=1):
        for ch in line:
            if ch in "([{":
                stack.append((ch, lineno))
            elif ch in _BRACKETS:
                if not stack or stack[-1][0] != _BRACKETS[ch]:
                    return f"SyntaxError: Unexpected token '{ch}' on line {lineno}"
                stack.pop()
    if stack:
        ch, lineno = stack[-1]
        return f"SyntaxError: Unclosed '{ch}' opened on line {lineno}"
    return None


def compile_error(language: str, source: str) -> Optional[str]:
    if not isinstance(source, str) or not source.strip():
        return "SyntaxError: Empty submission"
    if _SYNTAX_MARKER_RX.search(source):
        return "SyntaxError: Invalid token on line 3"
    if language == "python":
        try:
            ast.parse(source)
        except (SyntaxError, ValueError) as e:
            line = getattr(e, "lineno", None)
            return f"SyntaxError: {getattr(e, 'msg', str(e))}" + (f" on line {line}" if line else "")
        return None
    return _brackets_balanced(strip_literals(source, language))


def _facts(language: str, source: str) -> Optional[PythonFacts]:
    return python_facts(source) if language == "python" else None


def runtime_fault(language: str, source: str) -> Optional[str]:
    facts = _facts(language, source)
    if facts is not None:
        if facts.raise_line is not None:
            return f"Error: Something went wrong on line {facts.raise_line}."
        if facts.div_zero:
            return "ZeroDivisionError: division by zero"
        return "Process exited with a non-zero status" if facts.aborts else None
    code = strip_literals(source, language)
    if _THROW_RX.search(code) or (language == "python" and _RAISE_RX.search(code)):
        return "Error: Something went wrong on line 5."
    if _DIV_ZERO_RX.search(code):
        return "ZeroDivisionError: division by zero"
    if _ABORT_RX.search(code):
        return "Process exited with a non-zero status"
    return None


def non_terminating(language: str, source: str) -> bool:
    if _LOOP_MARKER_RX.search(source):
        return True
    facts = _facts(language, source)
    if facts is not None:
        return facts.forever
    code = strip_literals(source, language)
    return bool(_FOREVER_RX.search(code)) and not _BREAK_RX.search(code)


def parse_numbers(stdin: str) -> List[Number]:
    """Numbers separated by whitespace, commas or list brackets; ValueError otherwise."""

    out: List[Number] = []
    for tok in _TOKEN_SPLIT_RX.split(stdin or ""):
        if not tok:
            continue
        try:
            out.append(int(tok))
            continue
        except ValueError:
            pass
        try:
            out.append(float(tok))
        except ValueError:
            raise ValueError("Could not parse input.") from None
    return out


def _fmt(x: Number) -> str:
    if isinstance(x, float) and x.is_integer():
        return str(int(x))
    return str(x)


def simulate_stdout(language: str, source: str, stdin: str) -> str:
    """Deterministic stand-in for running the program on stdin.

    Raises ValueError when the input cannot be interpreted by the simulated program.
    """

    facts = _facts(language, source)
    if facts is not None:
        fold, pair = facts.fold, facts.pair
    else:
        code = strip_literals(source, language)
        fold, pair = bool(_FOLD_RX.search(code)), bool(_PAIR_RX.search(code))
    if fold:
        return _fmt(sum(parse_numbers(stdin)))
    if pair:
        nums = parse_numbers(stdin)
        if len(nums) < 2:
            raise ValueError("Input has fewer than two operands.")
        return _fmt(nums[0] + nums[1])
    return "0"


def synthetic_telemetry(language: str, source: str, stdin: str) -> Tuple[float, int]:
    """(elapsed seconds, memory KB) derived from a digest; cosmetic only."""

    d = hashlib.sha256(f"{language}\0{source}\0{stdin}".encode("utf-8")).digest()
    elapsed = round(0.01 + (d[0] % 90) / 1000.0, 3)
    memory = 9000 + int.from_bytes(d[1:3], "big") % 8000
    return elapsed, memory


def is_programming_topic(text: str) -> bool:
    if not isinstance(text, str) or not text.strip():
        return False
    hits = _PROGRAMMING_RX.findall(text[:4000])
    return len(hits) >= 2
