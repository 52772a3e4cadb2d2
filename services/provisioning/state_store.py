"""JSON file persistence for :class:`DeploymentState`, one file per app/stage."""

from __future__ import annotations

import json
import re
from pathlib import Path

from contracts.deployment import DeploymentState

_SAFE_KEY = re.compile(r"[^A-Za-z0-9._-]+")


def _json_dumps_stable(obj: object) -> str:
    return json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False)


class JsonStateStore:
    """
    Stores state under ``{base_dir}/{app}-{stage}.json``.

    Writes go to a sibling temp file first and are then renamed into place, so a
    crash mid-write never leaves a truncated state file.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)

    def path_for(self, app: str, stage: str) -> Path:
        app_key = _SAFE_KEY.sub("_", str(app or "").strip())
        stage_key = _SAFE_KEY.sub("_", str(stage or "").strip())
        if not app_key or not stage_key:
            raise ValueError("app and stage must be non-empty")
        return self._base_dir / f"{app_key}-{stage_key}.json"

    def load(self, app: str, stage: str) -> DeploymentState:
        path = self.path_for(app, stage)
        if not path.is_file():
            return DeploymentState()
        payload = json.loads(path.read_text(encoding="utf-8"))
        return DeploymentState.from_dict(payload)

    def save(self, app: str, stage: str, state: DeploymentState) -> Path:
        path = self.path_for(app, stage)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(_json_dumps_stable(state.to_dict()), encoding="utf-8")
        tmp.replace(path)
        return path

    def delete(self, app: str, stage: str) -> bool:
        path = self.path_for(app, stage)
        if not path.is_file():
            return False
        path.unlink()
        return True
