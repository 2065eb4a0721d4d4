from __future__ import annotations

from pathlib import Path

import pytest

from src.paths import ProjectPaths, get_repo_root


def test_repo_root_found_from_nested_directory(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("item_cf: {}\n")
    nested = tmp_path / "data" / "raw"
    nested.mkdir(parents=True)
    assert get_repo_root(nested) == tmp_path.resolve()


def test_repo_root_missing_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("src.paths._is_repo_root", lambda candidate: False)
    with pytest.raises(FileNotFoundError):
        get_repo_root(tmp_path)


def test_project_paths_resolve_relative_to_root(tmp_path: Path) -> None:
    paths = ProjectPaths.from_repo_root(tmp_path, artifacts_dir="out")
    assert paths.raw_dir == (tmp_path / "data" / "raw").resolve()
    assert paths.item_cf_dir == (tmp_path / "out").resolve() / "item_cf"
