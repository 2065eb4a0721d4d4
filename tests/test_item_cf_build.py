from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.pipelines.item_cf_build import build_arg_parser, run_item_cf_build


RATING_LINES = [
    '"User-ID";"ISBN";"Book-Rating"',
    '"u1";"A";"5"',
    '"u1";"B";"4"',
    '"u2";"A";"3"',
    '"u2";"B";"2"',
    '"u3";"A";"4"',
    '"u3";"B";"5"',
    '"u3";"C";"1"',
    "not a rating",
]

CONFIG = """
dataset:
  raw_dir: data/raw
  artifacts_dir: artifacts
  ratings_file: ratings.csv
  format: delimited
item_cf:
  min_intersection: 2
  prior_count: 10.0
  prior_correlation: 0.0
  num_partitions: 2
"""


@pytest.fixture()
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    pytest.importorskip("pyarrow")
    (tmp_path / "config.yaml").write_text(CONFIG)
    raw = tmp_path / "data" / "raw"
    raw.mkdir(parents=True)
    (raw / "ratings.csv").write_text("\n".join(RATING_LINES) + "\n", encoding="latin-1")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_build_writes_results_and_manifest(project: Path) -> None:
    manifest = run_item_cf_build(
        config_path=Path("config.yaml"),
        overrides={"prior_count": 5.0},
    )

    out_dir = project / "artifacts" / "item_cf"
    assert (out_dir / "item_similarities.parquet").exists()
    assert (out_dir / "item_similarities.csv").exists()
    assert manifest["config"]["prior_count"] == 5.0
    assert manifest["config"]["min_intersection"] == 2
    assert manifest["stats"]["ratings"] == 7
    # (A, B) has three common raters, (A, C) and (B, C) only one
    assert manifest["stats"]["results"] == 1
    assert manifest["dataset"]["ratings_path"] == "data/raw/ratings.csv"

    on_disk = json.loads((out_dir / "item_cf_manifest.json").read_text())
    assert on_disk["stats"] == manifest["stats"]


def test_build_refuses_to_overwrite_without_force(project: Path) -> None:
    run_item_cf_build(config_path=Path("config.yaml"))
    with pytest.raises(FileExistsError):
        run_item_cf_build(config_path=Path("config.yaml"))
    run_item_cf_build(config_path=Path("config.yaml"), force=True)


def test_missing_config_raises(project: Path) -> None:
    with pytest.raises(FileNotFoundError):
        run_item_cf_build(config_path=project / "nope.yaml")


def test_arg_parser_overrides() -> None:
    args = build_arg_parser().parse_args(
        ["--min-intersection", "3", "--max-raters", "100", "--prior-correlation", "0.1", "--format", "movielens"]
    )
    assert args.min_intersection == 3
    assert args.max_raters == 100
    assert args.prior_correlation == pytest.approx(0.1)
    assert args.fmt == "movielens"
    assert args.min_raters is None
