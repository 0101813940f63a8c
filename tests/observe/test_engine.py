"""Tests for the observation engine."""

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from hostkit.core.errors import ObserveError, UnsupportedTargetError
from hostkit.namespace.tree import Namespace, PropertyTrap, get_slot
from hostkit.observe import Hooks, ObservationEngine


def fs_read(path: str) -> str:
    return f"read:{path}"


def fs_write(path: str, data: str) -> int:
    return len(data)


def fs_exists(path: str) -> bool:
    return path == "yes"


async def fetch(url: str) -> str:
    return f"got:{url}"


def explode() -> None:
    raise ValueError("boom")


class Toolbox:
    @staticmethod
    def double(n: int) -> int:
        return n * 2

    @classmethod
    def name(cls) -> str:
        return cls.__name__

    def greet(self) -> str:
        return "hello"


@pytest.fixture
def tree() -> Namespace:
    return Namespace(
        "hk",
        {
            "modules": {},
            "core": {
                "io": {"fs": {"read": fs_read, "write": fs_write, "exists": fs_exists, "SEP": "/"}},
                "net": {"fetch": fetch},
                "boom": explode,
            },
            "settings": {"theme": "dark"},
            "lib": {"Toolbox": Toolbox, "explode": explode},
        },
    )


@pytest.fixture
def engine(tree: Namespace, files: Any) -> ObservationEngine:
    return ObservationEngine(tree, files)


class TestClassify:
    """Target classification."""

    @pytest.mark.parametrize(
        ("target", "kind", "key"),
        [
            ("hk.core.io.fs.read", "namespace", "hk.core.io.fs.read"),
            ("core.io.fs.read", "namespace", "hk.core.io.fs.read"),
            ("hk.core.io.fs.*", "pattern", "hk.core.io.fs.*"),
            ("core.io.*", "pattern", "hk.core.io.*"),
        ],
    )
    def test_namespace_targets(
        self, engine: ObservationEngine, target: str, kind: str, key: str
    ) -> None:
        assert engine.classify(target) == (kind, key)

    def test_file_targets(self, engine: ObservationEngine, tmp_path: Path) -> None:
        file = tmp_path / "notes.txt"

        assert engine.classify(str(file)) == ("file", str(file.resolve()))
        assert engine.classify(file) == ("file", str(file.resolve()))
        assert engine.classify("./notes.txt")[0] == "file"
        assert engine.classify("notes.txt")[0] == "file"

    @pytest.mark.parametrize("target", [42, None, "", "   ", "unknown"])
    def test_unclassifiable_targets(self, engine: ObservationEngine, target: Any) -> None:
        with pytest.raises(UnsupportedTargetError):
            engine.classify(target)

    def test_multi_level_pattern_rejected(self, engine: ObservationEngine) -> None:
        with pytest.raises(UnsupportedTargetError):
            engine.classify("hk.*.fs.read")


class TestFunctionObservation:
    """Call interception on namespace functions."""

    def test_given_observed_function_when_unobserved_then_identity_restored(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        # Given
        original = tree.core.io.fs.read
        engine.observe("hk.core.io.fs.read", before=lambda args, path: None)
        assert tree.core.io.fs.read is not original

        # When
        removed = engine.unobserve("hk.core.io.fs.read")

        # Then
        assert removed is True
        assert tree.core.io.fs.read is original

    def test_given_two_observes_when_unobserved_then_original_not_intermediate(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        # Given
        original = tree.core.io.fs.read
        first, second = MagicMock(return_value=None), MagicMock(return_value=None)
        engine.observe("hk.core.io.fs.read", before=first)
        engine.observe("hk.core.io.fs.read", before=second)

        # When
        tree.core.io.fs.read("a.txt")
        engine.unobserve("hk.core.io.fs.read")

        # Then
        first.assert_not_called()
        second.assert_called_once_with(("a.txt",), "hk.core.io.fs.read")
        assert tree.core.io.fs.read is original
        assert engine.list() == []

    def test_wrapper_keeps_function_identity(self, engine: ObservationEngine, tree: Namespace) -> None:
        engine.observe("hk.core.io.fs.read", after=lambda result, args, path: None)

        wrapped = tree.core.io.fs.read
        assert wrapped.__name__ == "fs_read"
        assert wrapped.__wrapped__ is fs_read

    def test_before_can_replace_arguments(self, engine: ObservationEngine, tree: Namespace) -> None:
        engine.observe("hk.core.io.fs.read", before=lambda args, path: ("other.txt",))

        assert tree.core.io.fs.read("a.txt") == "read:other.txt"

    def test_after_sees_result(self, engine: ObservationEngine, tree: Namespace) -> None:
        after = MagicMock()
        engine.observe("core.io.fs.write", {"after": after})

        assert tree.core.io.fs.write("f", "abc") == 3
        after.assert_called_once_with(3, ("f", "abc"), "hk.core.io.fs.write")

    def test_error_hook_sees_exception_and_it_is_rethrown(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        error = MagicMock()
        engine.observe("hk.core.boom", Hooks(error=error))

        with pytest.raises(ValueError, match="boom"):
            tree.core.boom()

        (exc, args, path), _ = error.call_args
        assert isinstance(exc, ValueError)
        assert args == ()
        assert path == "hk.core.boom"

    @pytest.mark.asyncio
    async def test_async_function_stays_awaitable(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        seen: list[Any] = []

        async def after(result: Any, args: Any, path: str) -> None:
            seen.append(result)

        engine.observe("hk.core.net.fetch", after=after)

        assert await tree.core.net.fetch("x") == "got:x"
        assert seen == ["got:x"]

    def test_function_without_call_hooks_rejected(self, engine: ObservationEngine) -> None:
        with pytest.raises(ObserveError):
            engine.observe("hk.core.io.fs.read", on_change=lambda *a: None)

    def test_unknown_hook_rejected(self, engine: ObservationEngine) -> None:
        with pytest.raises(ObserveError):
            engine.observe("hk.core.io.fs.read", beforeCall=lambda *a: None)

    def test_missing_member_unresolvable(self, engine: ObservationEngine) -> None:
        with pytest.raises(UnsupportedTargetError):
            engine.observe("hk.core.io.fs.nope", before=lambda *a: None)

    def test_given_class_member_when_observed_then_rejected_and_left_intact(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        # When
        with pytest.raises(UnsupportedTargetError) as exc_info:
            engine.observe("hk.lib.Toolbox", before=lambda *a: None)

        # Then
        assert exc_info.value.code.name == "OBSERVE_NOT_OBSERVABLE"
        assert tree.lib.Toolbox is Toolbox
        assert isinstance(Toolbox(), tree.lib.Toolbox)
        assert engine.list() == []

    def test_pattern_skips_class_members(self, engine: ObservationEngine, tree: Namespace) -> None:
        assert engine.observe("hk.lib.*", before=lambda *a: None) == 1
        assert tree.lib.Toolbox is Toolbox
        assert engine.is_observed("hk.lib.explode")


class TestObjectMembers:
    """Members of ordinary objects and classes reachable from the tree."""

    def test_staticmethod_and_classmethod_restored_exactly(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        tree.modules.toolbox = Toolbox
        static_raw = vars(Toolbox)["double"]
        class_raw = vars(Toolbox)["name"]
        calls: list[str] = []

        try:
            engine.observe("hk.modules.toolbox.double", before=lambda args, path: calls.append(path))
            engine.observe("hk.modules.toolbox.name", before=lambda args, path: calls.append(path))

            assert Toolbox.double(4) == 8
            assert Toolbox().double(1) == 2
            assert Toolbox.name() == "Toolbox"
            assert len(calls) == 3
        finally:
            engine.unobserve()

        assert vars(Toolbox)["double"] is static_raw
        assert vars(Toolbox)["name"] is class_raw

    def test_inherited_method_shadow_removed_on_restore(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        box = Toolbox()
        tree.modules.box = box
        after = MagicMock()

        engine.observe("hk.modules.box.greet", after=after)
        assert box.greet() == "hello"
        after.assert_called_once()

        engine.unobserve("hk.modules.box.greet")
        assert "greet" not in vars(box)

    def test_mapping_member_replaced_and_restored(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        handlers = {"on": fs_read}
        tree.modules.handlers = handlers
        before = MagicMock(return_value=None)

        engine.observe("hk.modules.handlers.on", before=before)
        handlers["on"]("x")
        engine.unobserve("hk.modules.handlers.on")

        before.assert_called_once()
        assert handlers["on"] is fs_read


class TestPropertyObservation:
    """Mutation interception on namespace values."""

    def test_on_change_sees_new_old_and_path(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        on_change = MagicMock(return_value=None)
        engine.observe("hk.settings.theme", on_change=on_change)

        tree.settings.theme = "light"

        on_change.assert_called_once_with("light", "dark", "hk.settings.theme")
        assert tree.settings.theme == "light"

    def test_on_change_return_value_is_stored(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        engine.observe("hk.settings.theme", onChange=lambda new, old, path: new.upper())

        tree.settings.theme = "light"

        assert tree.settings.theme == "LIGHT"

    def test_unobserve_puts_captured_entry_back(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        engine.observe("hk.settings.theme", on_change=lambda *a: None)
        assert isinstance(get_slot(tree.settings, "theme"), PropertyTrap)

        tree.settings.theme = "light"
        engine.unobserve("hk.settings.theme")

        assert get_slot(tree.settings, "theme") == "dark"
        tree.settings.theme = "blue"
        assert tree.settings.theme == "blue"

    def test_property_requires_on_change(self, engine: ObservationEngine) -> None:
        with pytest.raises(ObserveError):
            engine.observe("hk.settings.theme", before=lambda *a: None)


class TestPatternObservation:
    """One-level wildcard patterns."""

    def test_given_three_callables_when_pattern_observed_then_each_intercepted(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        # Given
        spy = MagicMock(return_value=None)

        # When
        count = engine.observe("hk.core.io.fs.*", before=spy)
        tree.core.io.fs.read("a")
        tree.core.io.fs.write("a", "b")
        tree.core.io.fs.exists("a")

        # Then
        assert count == 3
        assert spy.call_count == 3
        assert tree.core.io.fs.SEP == "/"
        assert {s.pattern for s in engine.list()} == {"hk.core.io.fs.*"}

    def test_pattern_unobserve_restores_all(self, engine: ObservationEngine, tree: Namespace) -> None:
        engine.observe("hk.core.io.fs.*", after=lambda *a: None)

        assert engine.unobserve("hk.core.io.fs.*") is True
        assert tree.core.io.fs.read is fs_read
        assert tree.core.io.fs.write is fs_write
        assert tree.core.io.fs.exists is fs_exists
        assert engine.unobserve("hk.core.io.fs.*") is False

    def test_pattern_unobserve_leaves_exact_observers_in_place(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        # Given
        engine.observe("hk.core.io.fs.read", before=lambda *a: None)
        engine.observe("hk.core.net.*", before=lambda *a: None)

        # When
        removed = engine.unobserve("hk.core.io.fs.*")

        # Then
        assert removed is False
        assert engine.is_observed("hk.core.io.fs.read")
        assert engine.unobserve("hk.core.net.*") is True
        assert engine.is_observed("hk.core.io.fs.read")

    def test_exact_observe_over_pattern_member_detaches_it_from_pattern(
        self, engine: ObservationEngine, tree: Namespace
    ) -> None:
        engine.observe("hk.core.io.fs.*", before=lambda *a: None)
        engine.observe("hk.core.io.fs.read", after=lambda *a: None)

        assert engine.unobserve("hk.core.io.fs.*") is True
        assert engine.is_observed("hk.core.io.fs.read")
        assert tree.core.io.fs.write is fs_write

    def test_missing_prefix_matches_nothing(self, engine: ObservationEngine) -> None:
        assert engine.observe("hk.core.ai.*", before=lambda *a: None) == 0

    def test_pattern_needs_call_hooks(self, engine: ObservationEngine) -> None:
        with pytest.raises(ObserveError):
            engine.observe("hk.core.io.fs.*", on_change=lambda *a: None)


class TestFileObservation:
    """File watching through the file store collaborator."""

    @pytest.mark.asyncio
    async def test_given_modify_event_when_observed_then_on_change_called(
        self, engine: ObservationEngine, files: Any, tmp_path: Path
    ) -> None:
        # Given
        target = tmp_path / "notes.txt"
        target.write_text("v1")
        received = asyncio.Event()
        seen: list[tuple[str, str]] = []

        def on_change(event: Any, path: str) -> None:
            seen.append((event.kind, path))
            received.set()

        assert engine.observe(str(target), on_change=on_change) is True

        # When
        watch = files.watches[0]
        watch.push("remove")
        watch.push("modify")
        await asyncio.wait_for(received.wait(), timeout=2)

        # Then
        assert seen == [("modify", str(target.resolve()))]
        assert engine.list()[0].kind == "file"

        await engine.aclose()
        assert watch.closed

    @pytest.mark.asyncio
    async def test_given_watch_failure_when_error_hook_then_called(
        self, engine: ObservationEngine, files: Any, tmp_path: Path
    ) -> None:
        target = tmp_path / "notes.txt"
        target.write_text("v1")
        failed = asyncio.Event()
        errors: list[BaseException] = []

        def on_error(error: BaseException, path: str) -> None:
            errors.append(error)
            failed.set()

        engine.observe(target, on_change=lambda *a: None, error=on_error)
        files.watches[0].fail(OSError("watch lost"))
        await asyncio.wait_for(failed.wait(), timeout=2)

        assert isinstance(errors[0], OSError)
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_given_watch_failure_then_observer_dropped_from_list(
        self, engine: ObservationEngine, files: Any, tmp_path: Path
    ) -> None:
        # Given
        target = tmp_path / "w.txt"
        target.write_text("v1")
        engine.observe(target, on_change=lambda *a: None)
        watch = files.watches[0]

        # When
        watch.fail(RuntimeError("stream died"))
        for _ in range(50):
            if not engine.list():
                break
            await asyncio.sleep(0.01)

        # Then
        assert watch.closed
        assert engine.list() == []
        assert not engine.is_observed(target)
        assert engine.unobserve(target) is False

    @pytest.mark.asyncio
    async def test_given_failing_on_change_then_observer_dropped_from_list(
        self, engine: ObservationEngine, files: Any, tmp_path: Path
    ) -> None:
        target = tmp_path / "w.txt"
        target.write_text("v1")
        failed = asyncio.Event()

        def on_change(*args: Any) -> None:
            raise ValueError("hook broke")

        engine.observe(target, on_change=on_change, error=lambda *a: failed.set())
        files.watches[0].push("modify")
        await asyncio.wait_for(failed.wait(), timeout=2)
        await asyncio.sleep(0)

        assert engine.list() == []
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_reobserve_keeps_new_record_when_old_watch_ends(
        self, engine: ObservationEngine, files: Any, tmp_path: Path
    ) -> None:
        target = tmp_path / "w.txt"
        target.write_text("v1")
        engine.observe(target, on_change=lambda *a: None)
        engine.observe(target, on_change=lambda *a: None)
        await asyncio.sleep(0.01)

        assert files.watches[0].closed
        assert not files.watches[1].closed
        assert engine.is_observed(target)
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_unobserve_closes_watch(
        self, engine: ObservationEngine, files: Any, tmp_path: Path
    ) -> None:
        target = tmp_path / "notes.txt"
        target.write_text("v1")
        engine.observe(target, on_change=lambda *a: None)

        assert engine.unobserve(target) is True
        assert files.watches[0].closed
        await engine.aclose()

    @pytest.mark.asyncio
    async def test_missing_file_unresolvable(
        self, engine: ObservationEngine, tmp_path: Path
    ) -> None:
        with pytest.raises(UnsupportedTargetError):
            engine.observe(tmp_path / "missing.txt", on_change=lambda *a: None)

    @pytest.mark.asyncio
    async def test_existence_is_decided_by_file_store(
        self, tree: Namespace, tmp_path: Path
    ) -> None:
        # Given a file on disk that the store reports as gone
        target = tmp_path / "notes.txt"
        target.write_text("v1")
        files = MagicMock()
        files.watch.side_effect = FileNotFoundError(target)
        engine = ObservationEngine(tree, files)

        # When
        with pytest.raises(UnsupportedTargetError):
            engine.observe(target, on_change=lambda *a: None)

        # Then
        files.watch.assert_called_once_with(target.resolve())
        assert engine.list() == []

    def test_without_running_loop_rejected(
        self, engine: ObservationEngine, tmp_path: Path
    ) -> None:
        target = tmp_path / "notes.txt"
        target.write_text("v1")

        with pytest.raises(ObserveError):
            engine.observe(target, on_change=lambda *a: None)


class TestBulkOperations:
    """list / unobserve() / aclose."""

    def test_list_reports_supplied_hooks_only(self, engine: ObservationEngine) -> None:
        engine.observe("hk.core.io.fs.read", before=lambda *a: None, after=lambda *a: None)

        [summary] = engine.list()
        assert summary.path == "hk.core.io.fs.read"
        assert summary.kind == "function"
        assert summary.hooks == ("before", "after")
        assert summary.pattern is None

    def test_unobserve_all_returns_count(self, engine: ObservationEngine, tree: Namespace) -> None:
        engine.observe("hk.core.io.fs.*", before=lambda *a: None)
        engine.observe("hk.settings.theme", on_change=lambda *a: None)

        assert engine.unobserve() == 4
        assert engine.list() == []
        assert tree.core.io.fs.read is fs_read
        assert tree.settings.theme == "dark"

    def test_unobserve_unknown_returns_false(self, engine: ObservationEngine) -> None:
        assert engine.unobserve("hk.nothing.here") is False
        assert engine.unobserve("unknown") is False
