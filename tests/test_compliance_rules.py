import ast
import re
from pathlib import Path

DB_SESSION_METHODS = {
    "add",
    "add_all",
    "commit",
    "delete",
    "execute",
    "flush",
    "get",
    "query",
    "refresh",
    "rollback",
    "scalar",
    "scalars",
}
NUMBERED_STEP = re.compile(r"^\s*1\.\s", re.MULTILINE)


def _test_files() -> list[Path]:
    root = Path(__file__).resolve().parent
    return sorted(
        path
        for path in root.rglob("test_*.py")
        if "helpers" not in path.parts and path.name != "test_compliance_rules.py"
    )


def _test_functions(file_path: Path) -> list[ast.FunctionDef]:
    tree = ast.parse(file_path.read_text(encoding="utf-8"))
    return [node for node in tree.body if isinstance(node, ast.FunctionDef) and node.name.startswith("test_")]


def _relative(file_path: Path) -> Path:
    return file_path.relative_to(Path(__file__).resolve().parent)


def _db_session_calls(node: ast.FunctionDef) -> list[int]:
    lines = []
    for subnode in ast.walk(node):
        if not isinstance(subnode, ast.Call):
            continue
        func = subnode.func
        if (
            isinstance(func, ast.Attribute)
            and isinstance(func.value, ast.Name)
            and func.value.id == "db_session"
            and func.attr in DB_SESSION_METHODS
        ):
            lines.append(subnode.lineno)
    return lines


def test_no_direct_db_session_calls_inside_test_functions():
    """
    Validate test methods avoid direct db_session operations.

    1. Discover all test files excluding helpers.
    2. Parse each file AST and inspect only test_* function bodies.
    3. Detect any direct db_session call and report its location.
    """
    errors = [
        f"{_relative(file_path)}:{line} in {node.name}"
        for file_path in _test_files()
        for node in _test_functions(file_path)
        for line in _db_session_calls(node)
    ]
    assert not errors, "Direct db_session calls found in test methods:\n" + "\n".join(errors)


def test_every_test_documents_numbered_steps():
    """
    Validate test docstrings describe their steps.

    1. Discover all test files excluding helpers.
    2. Read the docstring of every test_* function.
    3. Validate each docstring exists and lists numbered steps.
    """
    errors = [
        f"{_relative(file_path)}:{node.lineno} {node.name}"
        for file_path in _test_files()
        for node in _test_functions(file_path)
        if not NUMBERED_STEP.search(ast.get_docstring(node) or "")
    ]
    assert not errors, "Tests without numbered-step docstrings:\n" + "\n".join(errors)
