"""
Import-boundary enforcement for the invoflow packages.

1. Engine purity      -- invoflow_engines/** may not import the ORM, models,
                         selectors, services, batch or config layers.
2. Engine no-impure   -- invoflow_engines/** and the kernel domain may not
                         read the wall clock or the environment.
3. Kernel isolation   -- invoflow_kernel/** may not import any outer package.
4. Dependency direction -- services never import batch; config imports no
                         invoflow package.

All scanning is done via AST -- these tests are read-only.
"""

import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _python_files(package: str) -> list[Path]:
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _parse(path: Path) -> ast.AST:
    return ast.parse(path.read_text(), filename=str(path))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """(line_number, module) for every import in *path*."""
    results: list[tuple[int, str]] = []
    for node in ast.walk(_parse(path)):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{path.relative_to(REPO_ROOT)}:{lineno} imports {module}")
    return found


def _attribute_refs(path: Path) -> list[tuple[int, str]]:
    """Two-level attribute references such as ``datetime.now``."""
    return [
        (node.lineno, f"{node.value.id}.{node.attr}")
        for node in ast.walk(_parse(path))
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name)
    ]


# ---------------------------------------------------------------------------
# 1. Engine purity
# ---------------------------------------------------------------------------


class TestEnginePurity:

    FORBIDDEN = (
        "sqlalchemy",
        "invoflow_kernel.models",
        "invoflow_kernel.selectors",
        "invoflow_kernel.services",
        "invoflow_kernel.db.engine",
        "invoflow_services",
        "invoflow_batch",
        "invoflow_config",
    )

    def test_engines_do_not_import_io_layers(self):
        assert _violations("invoflow_engines", self.FORBIDDEN) == []


# ---------------------------------------------------------------------------
# 2. No wall clock or environment in pure code
# ---------------------------------------------------------------------------


class TestNoImpureCalls:

    IMPURE = {"datetime.now", "datetime.utcnow", "date.today", "os.environ", "os.getenv"}

    def _impure_refs(self, package: str, allowed: frozenset[str] = frozenset()) -> list[str]:
        found = []
        for path in _python_files(package):
            if path.name in allowed:
                continue
            for lineno, ref in _attribute_refs(path):
                if ref in self.IMPURE:
                    found.append(f"{path.relative_to(REPO_ROOT)}:{lineno} uses {ref}")
        return found

    def test_engines(self):
        assert self._impure_refs("invoflow_engines") == []

    def test_kernel_domain_outside_clock(self):
        assert self._impure_refs(
            "invoflow_kernel/domain", allowed=frozenset({"clock.py"})
        ) == []


# ---------------------------------------------------------------------------
# 3. Kernel isolation
# ---------------------------------------------------------------------------


class TestKernelIsolation:

    def test_kernel_imports_no_outer_package(self):
        forbidden = ("invoflow_engines", "invoflow_services", "invoflow_batch", "invoflow_config")

        assert _violations("invoflow_kernel", forbidden) == []


# ---------------------------------------------------------------------------
# 4. Dependency direction
# ---------------------------------------------------------------------------


class TestDependencyDirection:

    def test_services_do_not_import_batch(self):
        assert _violations("invoflow_services", ("invoflow_batch",)) == []

    def test_config_is_a_leaf(self):
        forbidden = ("invoflow_kernel", "invoflow_engines", "invoflow_services", "invoflow_batch")

        assert _violations("invoflow_config", forbidden) == []
