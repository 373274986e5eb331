from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


REPO_ROOT = Path(__file__).resolve().parents[1]
PKG_ROOT = REPO_ROOT / "extpack"

# Layer -> module prefixes it must not import.
FORBIDDEN_BY_LAYER = {
    "extpack/core": ("extpack.release", "extpack.codecs", "extpack.cli"),
    "extpack/codecs": ("extpack.release", "extpack.cli"),
    "extpack/release": ("extpack.cli",),
}

# Pipeline stages are orchestrated by the CLI only; no stage drives another.
STAGE_MODULES = {
    "extpack/release/version.py": "extpack.release.version",
    "extpack/release/package.py": "extpack.release.package",
    "extpack/release/archive.py": "extpack.release.archive",
    "extpack/release/publish.py": "extpack.release.publish",
    "extpack/release/pipeline.py": "extpack.release.pipeline",
}


@dataclass(frozen=True)
class Hit:
    path: str
    lineno: int
    module: str


def iter_py_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.rglob("*.py")):
        if "__pycache__" in p.parts:
            continue
        yield p


def imported_modules(tree: ast.AST) -> Iterable[tuple[int, str]]:
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            yield node.lineno, node.module


def find_layer_violations() -> list[Hit]:
    hits: list[Hit] = []
    for p in iter_py_files(PKG_ROOT):
        rel = p.relative_to(REPO_ROOT).as_posix()
        forbidden: tuple[str, ...] = ()
        for layer, prefixes in FORBIDDEN_BY_LAYER.items():
            if rel.startswith(layer + "/"):
                forbidden = prefixes
        stage_self = STAGE_MODULES.get(rel)
        if stage_self is not None:
            forbidden = forbidden + tuple(m for m in STAGE_MODULES.values() if m != stage_self)

        tree = ast.parse(p.read_text(encoding="utf-8"), filename=str(p))
        for lineno, mod in imported_modules(tree):
            if any(mod == f or mod.startswith(f + ".") for f in forbidden):
                # Builders read the current version; that is the only shared stage helper.
                if mod == "extpack.release.version" and rel in STAGE_MODULES and rel != "extpack/release/pipeline.py":
                    continue
                hits.append(Hit(path=rel, lineno=lineno, module=mod))
    return hits


def test_layering_is_respected() -> None:
    hits = find_layer_violations()
    msg = "\n".join(f"{h.path}:{h.lineno}: imports {h.module}" for h in hits)
    assert not hits, "Layering violations:\n" + msg


def test_top_level_imports_without_cycles() -> None:
    import extpack.cli  # noqa: F401
    import extpack.codecs  # noqa: F401
    import extpack.core  # noqa: F401
    import extpack.release  # noqa: F401
