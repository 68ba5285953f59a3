"""Tests for the workspace registry."""

import json
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from aibridge_serve.core.errors import InvalidRoot
from aibridge_serve.workspace.registry import WorkspaceRegistry


def _dirs(tmp_path: Path, *names: str) -> list[Path]:
    paths = []
    for name in names:
        path = tmp_path / name
        path.mkdir()
        paths.append(path.resolve())
    return paths


class TestLoad:
    """Test loading persisted state."""

    def test_defaults_to_fallback_root(self, tmp_path: Path) -> None:
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)

        assert registry.get_current_root() == tmp_path.resolve()
        assert registry.get_history() == []

    def test_defaults_to_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        registry = WorkspaceRegistry(tmp_path / "reg.json")

        assert registry.get_current_root() == tmp_path.resolve()

    def test_loads_persisted_state(self, tmp_path: Path) -> None:
        root, old = _dirs(tmp_path, "root", "old")
        registry_path = tmp_path / "reg.json"
        registry_path.write_text(
            json.dumps({"current_root": str(root), "history": [str(root), str(old)]})
        )

        registry = WorkspaceRegistry(registry_path, default_root=tmp_path)

        assert registry.get_current_root() == root
        assert registry.get_history() == [root, old]

    def test_vanished_root_falls_back(self, tmp_path: Path) -> None:
        registry_path = tmp_path / "reg.json"
        registry_path.write_text(
            json.dumps({"current_root": str(tmp_path / "gone"), "history": []})
        )
        logger = Mock()

        registry = WorkspaceRegistry(
            registry_path, default_root=tmp_path, logger=logger
        )

        assert registry.get_current_root() == tmp_path.resolve()
        logger.warning.assert_called_once()

    def test_corrupt_file_is_logged_not_raised(self, tmp_path: Path) -> None:
        registry_path = tmp_path / "reg.json"
        registry_path.write_text("{broken")
        logger = Mock()

        registry = WorkspaceRegistry(
            registry_path, default_root=tmp_path, logger=logger
        )

        assert registry.get_current_root() == tmp_path.resolve()
        assert logger.warning.call_args.args[0] == "registry.load_failed"


class TestSetRoot:
    """Test root changes and history maintenance."""

    def test_set_root_persists(self, tmp_path: Path) -> None:
        (project,) = _dirs(tmp_path, "project")
        registry_path = tmp_path / "state" / "reg.json"
        registry = WorkspaceRegistry(registry_path, default_root=tmp_path)

        result = registry.set_root(str(project))

        assert result == project
        data = json.loads(registry_path.read_text())
        assert data == {"current_root": str(project), "history": [str(project)]}

        reloaded = WorkspaceRegistry(registry_path, default_root=tmp_path)
        assert reloaded.get_current_root() == project

    def test_relative_candidate_resolved(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (project,) = _dirs(tmp_path, "project")
        monkeypatch.chdir(tmp_path)
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)

        assert registry.set_root("project") == project
        assert registry.get_current_root().is_absolute()

    def test_missing_path_rejected_and_root_unchanged(self, tmp_path: Path) -> None:
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)

        with pytest.raises(InvalidRoot):
            registry.set_root(str(tmp_path / "nope"))

        assert registry.get_current_root() == tmp_path.resolve()
        assert not (tmp_path / "reg.json").exists()

    def test_file_path_rejected(self, tmp_path: Path) -> None:
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)
        (tmp_path / "file.txt").write_text("x")

        with pytest.raises(InvalidRoot):
            registry.set_root(str(tmp_path / "file.txt"))

    def test_empty_path_rejected(self, tmp_path: Path) -> None:
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)

        with pytest.raises(InvalidRoot):
            registry.set_root("  ")

    def test_history_most_recent_first_and_deduplicated(self, tmp_path: Path) -> None:
        a, b, c = _dirs(tmp_path, "a", "b", "c")
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)

        for path in (a, b, c, a):
            registry.set_root(path)

        assert registry.get_history() == [a, c, b]

    def test_history_drops_vanished_paths(self, tmp_path: Path) -> None:
        a, b = _dirs(tmp_path, "a", "b")
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)
        registry.set_root(a)
        a.rmdir()

        registry.set_root(b)

        assert registry.get_history() == [b]

    def test_history_bounded(self, tmp_path: Path) -> None:
        paths = _dirs(tmp_path, *[f"d{i}" for i in range(15)])
        registry = WorkspaceRegistry(tmp_path / "reg.json", default_root=tmp_path)

        for path in paths:
            registry.set_root(path)

        history = registry.get_history()
        assert len(history) == 10
        assert history == list(reversed(paths))[:10]

    def test_custom_history_limit(self, tmp_path: Path) -> None:
        paths = _dirs(tmp_path, "a", "b", "c")
        registry = WorkspaceRegistry(
            tmp_path / "reg.json", history_limit=2, default_root=tmp_path
        )

        for path in paths:
            registry.set_root(path)

        assert registry.get_history() == [paths[2], paths[1]]

    def test_save_failure_keeps_in_memory_state(self, tmp_path: Path) -> None:
        (project,) = _dirs(tmp_path, "project")
        logger = Mock()
        registry = WorkspaceRegistry(
            tmp_path / "reg.json", default_root=tmp_path, logger=logger
        )

        with patch(
            "aibridge_serve.workspace.registry.os.replace",
            side_effect=PermissionError("read-only"),
        ):
            result = registry.set_root(project)

        assert result == project
        assert registry.get_current_root() == project
        assert logger.warning.call_args.args[0] == "registry.save_failed"
