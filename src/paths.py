from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProjectPaths:
    raw_dir: Path
    artifacts_dir: Path
    item_cf_dir: Path

    @classmethod
    def from_repo_root(
        cls,
        repo_root: Path,
        *,
        raw_dir: Path | str = "data/raw",
        artifacts_dir: Path | str = "artifacts",
    ) -> "ProjectPaths":
        def _resolve(p: Path | str) -> Path:
            p_path = Path(p) if isinstance(p, str) else p
            if not p_path.is_absolute():
                p_path = repo_root / p_path
            return p_path.resolve()

        artifacts_dir_p = _resolve(artifacts_dir)
        return cls(
            raw_dir=_resolve(raw_dir),
            artifacts_dir=artifacts_dir_p,
            item_cf_dir=artifacts_dir_p / "item_cf",
        )


ROOT_MARKERS = ("config.yaml", ".git")


def _is_repo_root(candidate: Path) -> bool:
    return (candidate / ROOT_MARKERS[0]).is_file() or (candidate / ROOT_MARKERS[1]).exists()


def get_repo_root(start: Path | None = None) -> Path:
    """Nearest directory holding `config.yaml` or `.git`, searching up from `start`.

    Without `start` the working directory is tried first, then this package's location.
    """
    starts = [Path(start)] if start is not None else [Path.cwd(), Path(__file__).parent]
    for origin in starts:
        origin = origin.resolve()
        for candidate in (origin, *origin.parents):
            if _is_repo_root(candidate):
                return candidate
    raise FileNotFoundError(f"No directory with {' or '.join(ROOT_MARKERS)} above {[str(s) for s in starts]}")
