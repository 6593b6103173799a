"""Model registry - lists, describes and deletes published voice models."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from voice_clone.core.config import PathConfig, settings
from voice_clone.core.exceptions import ModelNotFoundError
from voice_clone.trainer.pipeline import validate_model_name

logger = logging.getLogger(__name__)


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class ModelRegistry:
    """Directory of `<name>.pth` weights with optional `<name>.index` files."""

    def __init__(self, paths: Optional[PathConfig] = None):
        self.paths = paths or settings.paths

    @property
    def models_dir(self) -> Path:
        return Path(self.paths.models_dir)

    def _describe(self, model_path: Path) -> Dict[str, Any]:
        stats = model_path.stat()
        name = model_path.stem
        created = getattr(stats, "st_birthtime", stats.st_ctime)
        return {
            "name": name,
            "file": model_path.name,
            "size_mb": round(stats.st_size / (1024 * 1024)),
            "has_index": self.paths.get_index_path(name).is_file(),
            "created_at": _iso(created),
            "modified_at": _iso(stats.st_mtime),
        }

    def list_models(self) -> List[Dict[str, Any]]:
        self.models_dir.mkdir(parents=True, exist_ok=True)
        models = []
        for model_path in sorted(self.models_dir.glob("*.pth")):
            if model_path.is_file():
                models.append(self._describe(model_path))
        return models

    def get_model(self, name: str) -> Dict[str, Any]:
        validate_model_name(name)
        model_path = self.paths.get_model_path(name)
        if not model_path.is_file():
            raise ModelNotFoundError(name)
        return self._describe(model_path)

    def delete_model(self, name: str):
        """Delete the weights and, if present, the index."""
        validate_model_name(name)
        model_path = self.paths.get_model_path(name)
        if not model_path.is_file():
            raise ModelNotFoundError(name)

        model_path.unlink()
        index_path = self.paths.get_index_path(name)
        if index_path.exists():
            index_path.unlink()
        logger.info(f"Deleted model {name}")
