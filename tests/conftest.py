"""Shared test fixtures for flashdoc tests."""

import re
import threading
from dataclasses import replace
from pathlib import Path
from typing import Optional

import pytest

from flashdoc.model.entities import ANONYMOUS, Access, Entity, EntityKind, SourceSpan
from flashdoc.scanning import TREE_SITTER_AVAILABLE, CompileArgs, EntityAdapter
from flashdoc.scanning.models import SourceUnit, TranslationUnit
from flashdoc.scanning.treesitter_parser import hash_content


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure markers."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# ── Cache storage ────────────────────────────────────────────────


class MemoryStorage:
    """Dict-backed CacheStorage with switchable failures."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.closed = False

    def get(self, key: str) -> Optional[bytes]:
        if self.fail_reads:
            raise OSError("disk on fire")
        return self.data.get(key)

    def put(self, key: str, value: bytes) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def clear(self) -> None:
        self.data.clear()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def memory_storage():
    return MemoryStorage()


# ── Entities and units ───────────────────────────────────────────

_PARAMS_RE = re.compile(r"\([^()]*\)[^()]*$")


def make_entity(
    entity_id: str,
    kind: EntityKind = EntityKind.CLASS,
    line: int = 1,
    **fields,
) -> Entity:
    """Entity whose name and scope are derived from a ``::`` id."""
    path = entity_id
    if not path.endswith(ANONYMOUS):
        path = _PARAMS_RE.sub("", path)
    *scope, name = path.split("::")
    fields.setdefault("signature", f"{kind.value} {name}")
    fields.setdefault("span", SourceSpan("", line, 1, line, 10))
    return Entity(id=entity_id, kind=kind, name=name, scope=tuple(scope), **fields)


def make_unit(path: str, *entities: Entity, diagnostics=()) -> SourceUnit:
    """SourceUnit owning ``entities``; unit and span paths are set to ``path``."""
    owned = []
    for entity in entities:
        span = replace(entity.span, path=path) if entity.span else None
        owned.append(replace(entity, unit=path, span=span))
    return SourceUnit(
        path=path,
        content_hash=hash_content(path.encode()),
        fingerprint="test",
        entities=tuple(owned),
        diagnostics=tuple(diagnostics),
    )


@pytest.fixture
def entity_factory():
    return make_entity


@pytest.fixture
def unit_factory():
    return make_unit


# ── Scheduler doubles ────────────────────────────────────────────


class FakeBackend:
    """ParsingBackend that reads the file and records every call.

    ``behaviour`` maps a file name to an exception to raise or to a
    threading.Event to wait on before returning.
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: list[str] = []
        self.behaviour: dict[str, object] = {}
        self._lock = threading.Lock()

    def parse_translation_unit(self, path: Path, args: CompileArgs) -> TranslationUnit:
        with self._lock:
            self.calls.append(str(path))
        action = self.behaviour.get(Path(path).name)
        if isinstance(action, BaseException):
            raise action
        if isinstance(action, threading.Event):
            action.wait(5)
        if self.delay:
            threading.Event().wait(self.delay)
        raw = Path(path).read_bytes()
        return TranslationUnit(
            path=str(path), source=raw, tree=None, content_hash=hash_content(raw)
        )


class FakeAdapter:
    """UnitAdapter producing one namespace entity named after the file stem."""

    def adapt(self, tu: TranslationUnit, fingerprint: str) -> SourceUnit:
        name = Path(tu.path).stem
        entity = Entity(
            id=name,
            kind=EntityKind.NAMESPACE,
            name=name,
            signature=f"namespace {name}",
            span=SourceSpan(tu.path, 1, 1, 1, 1),
            unit=tu.path,
            access=Access.PUBLIC,
        )
        return SourceUnit(tu.path, tu.content_hash, fingerprint, (entity,))


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def source_files(tmp_path):
    """Five small files on disk."""
    paths = []
    for i in range(5):
        path = tmp_path / f"file{i}.hpp"
        path.write_text(f"// file {i}\n")
        paths.append(path)
    return paths


# ── Real tree-sitter parsing ─────────────────────────────────────


@pytest.fixture(scope="session")
def cpp_backend():
    if not TREE_SITTER_AVAILABLE:
        pytest.skip("tree-sitter not installed")
    from flashdoc.scanning import TreeSitterBackend

    return TreeSitterBackend()


@pytest.fixture
def adapt(cpp_backend, tmp_path):
    """Parse C++ source text and return the adapted SourceUnit."""

    def _adapt(source: str, name: str = "test.hpp", args: CompileArgs = CompileArgs()):
        path = tmp_path / name
        path.write_text(source)
        tu = cpp_backend.parse_translation_unit(path, args)
        return EntityAdapter().adapt(tu, "test-fingerprint")

    return _adapt


def by_id(unit: SourceUnit) -> dict[str, Entity]:
    return {e.id: e for e in unit.entities}


@pytest.fixture
def entities_of():
    return by_id
