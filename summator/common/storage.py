"""
Local State Store

Small JSON-file key-value store for process-wide state shared between the
capture session, the delivery pipeline and the host UI: the debug log buffer
and the recording flag.

The store is persisted to ~/.summator/local_state.json.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from .config import LOCAL_STATE_PATH


class LocalStore:
    """
    JSON-backed key-value store.

    Every read goes to disk so that several readers (the server, a CLI)
    observe the latest persisted value. Errors are raised to the caller;
    callers that must not fail (the log sink) catch them.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize store.

        Args:
            path: Path to state file (default: ~/.summator/local_state.json)
        """
        self._path = path or LOCAL_STATE_PATH

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        """Load state from disk"""
        if not self._path.exists():
            return {}

        with open(self._path) as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Unexpected state file format: {type(data).__name__}")
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        """Save state to disk"""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, or default if the key is absent"""
        return self._load().get(key, default)

    def set(self, **items: Any) -> None:
        """Merge items into the stored state"""
        data = self._load()
        data.update(items)
        self._save(data)
