from __future__ import annotations

import argparse
import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from ..data import SUPPORTED_FORMATS, load_ratings
from ..item_cf.config import ItemSimConfig
from ..item_cf.pipeline import compute_item_similarities
from ..paths import ProjectPaths, get_repo_root
from ..store.similarities import RESULTS_CSV, RESULTS_META, RESULTS_PARQUET, save_similarities
from ..utils import setup_logging


logger = logging.getLogger(__name__)

MANIFEST_NAME = "item_cf_manifest.json"


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _rel(repo_root: Path, path: Path) -> str:
    try:
        return path.resolve().relative_to(repo_root.resolve()).as_posix()
    except ValueError:
        return str(path.resolve())


def load_config(config_path: Path) -> dict[str, Any]:
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    config = yaml.safe_load(config_path.read_text())
    if not isinstance(config, dict):
        raise ValueError(f"Expected config YAML to be a mapping, got: {type(config)}")
    return config


def _ensure_can_write(out_dir: Path, *, force: bool) -> None:
    outputs = [out_dir / RESULTS_PARQUET, out_dir / RESULTS_CSV, out_dir / RESULTS_META, out_dir / MANIFEST_NAME]
    existing = [p for p in outputs if p.exists()]
    if existing and not force:
        raise FileExistsError(
            "Item CF artifacts already exist. Re-run with --force to overwrite.\n"
            + "\n".join([str(p) for p in existing])
        )
    for p in existing:
        p.unlink(missing_ok=True)


def run_item_cf_build(
    *,
    config_path: Path,
    ratings_path: Path | None = None,
    fmt: str | None = None,
    out_dir: Path | None = None,
    force: bool = False,
    max_workers: int | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Load ratings, compute item-item similarities and persist them with a manifest."""
    repo_root = get_repo_root()
    config_path = Path(config_path)
    if not config_path.is_absolute():
        config_path = (repo_root / config_path).resolve()
    config = load_config(config_path)

    dataset_cfg = config.get("dataset", {}) if isinstance(config.get("dataset"), dict) else {}
    paths = ProjectPaths.from_repo_root(
        repo_root,
        raw_dir=Path(str(dataset_cfg.get("raw_dir", "data/raw"))),
        artifacts_dir=Path(str(dataset_cfg.get("artifacts_dir", "artifacts"))),
    )

    fmt = fmt or str(dataset_cfg.get("format", "delimited"))
    if ratings_path is None:
        ratings_path = paths.raw_dir / str(dataset_cfg.get("ratings_file", "ratings.csv"))
    ratings_path = Path(ratings_path)
    if not ratings_path.is_absolute():
        ratings_path = (repo_root / ratings_path).resolve()

    out_dir = Path(out_dir) if out_dir is not None else paths.item_cf_dir
    if not out_dir.is_absolute():
        out_dir = (repo_root / out_dir).resolve()

    sim_cfg = ItemSimConfig.from_mapping(config.get("item_cf")).with_overrides(**(overrides or {}))

    _ensure_can_write(out_dir, force=force)

    logger.info("Loading ratings from %s (format=%s)", ratings_path, fmt)
    ratings = load_ratings(ratings_path, fmt=fmt)

    run = compute_item_similarities(ratings, sim_cfg, max_workers=max_workers)

    meta = {"config": sim_cfg.to_dict(), "stats": run.stats}
    logger.info("Writing %d item pairs to %s", len(run.results), out_dir)
    outputs = save_similarities(run.results, meta, out_dir)

    manifest = {
        "built_at_utc": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "dataset": {
            "ratings_path": _rel(repo_root, ratings_path),
            "format": fmt,
            "ratings_sha256": _sha256_file(ratings_path),
        },
        "config": sim_cfg.to_dict(),
        "stats": run.stats,
        "outputs": {k: _rel(repo_root, Path(v)) for k, v in outputs.items()},
    }
    manifest_path = out_dir / MANIFEST_NAME
    manifest_path.write_text(json.dumps(manifest, indent=2, sort_keys=True) + "\n")

    logger.info("Item CF build complete: %s", manifest_path)
    return manifest


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Compute item-item similarity statistics from ratings.")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--ratings", type=Path, default=None, help="Ratings file (overrides dataset.raw_dir/ratings_file).")
    p.add_argument("--format", dest="fmt", choices=SUPPORTED_FORMATS, default=None, help="Ratings file format.")
    p.add_argument("--out-dir", type=Path, default=None, help="Output directory for artifacts")
    p.add_argument("--force", action="store_true", help="Overwrite existing artifacts.")
    p.add_argument("--workers", type=int, default=None, help="Thread pool size for partition tasks")
    p.add_argument("--min-intersection", type=int, default=None, help="Override min common raters per pair")
    p.add_argument("--min-raters", type=int, default=None, help="Override min raters per item")
    p.add_argument("--max-raters", type=int, default=None, help="Override max raters per item")
    p.add_argument("--prior-count", type=float, default=None, help="Override shrinkage virtual count")
    p.add_argument("--prior-correlation", type=float, default=None, help="Override shrinkage target correlation")
    p.add_argument("--max-items-per-user", type=int, default=None, help="Cap ratings per user before pairing")
    p.add_argument("--partitions", type=int, default=None, help="Number of hash partitions")
    p.add_argument("--seed", type=int, default=None, help="Seed for the per-user cap sampling")
    return p


def main(argv: list[str] | None = None) -> None:
    setup_logging("INFO")
    args = build_arg_parser().parse_args(argv)

    run_item_cf_build(
        config_path=args.config,
        ratings_path=args.ratings,
        fmt=args.fmt,
        out_dir=args.out_dir,
        force=bool(args.force),
        max_workers=args.workers,
        overrides={
            "min_intersection": args.min_intersection,
            "min_raters": args.min_raters,
            "max_raters": args.max_raters,
            "prior_count": args.prior_count,
            "prior_correlation": args.prior_correlation,
            "max_items_per_user": args.max_items_per_user,
            "num_partitions": args.partitions,
            "seed": args.seed,
        },
    )


if __name__ == "__main__":
    main()
