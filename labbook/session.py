"""
SessionManager: Manages saving/loading of context snapshots.
"""

import json
from pathlib import Path
from typing import Any, Optional
from datetime import datetime

from labbook.values import Context, to_value


class SessionManager:
    """
    Manages saving/loading of the variable context.

    A session file is JSON holding the context as ordered [name, value]
    pairs, so key order and value types survive the round trip.
    """

    def __init__(self, sessions_dir: Optional[Path] = None):
        """
        Initialize session manager.

        Args:
            sessions_dir: Directory to store session files
        """
        self.sessions_dir = sessions_dir or Path.home() / ".labbook" / "sessions"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

    def save_session(self, context: Context, path: Optional[Path] = None, name: Optional[str] = None) -> Path:
        """
        Save a context to a file.

        Args:
            context: Context to save
            path: Optional specific path to save to
            name: Optional name for the session

        Returns:
            Path to saved session file
        """
        state = {
            "context": context.to_entries(),
            "saved_at": datetime.now().isoformat(),
        }

        if path is None:
            name = name or f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            path = self.sessions_dir / f"{name}.session"

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(state, f, indent=2)

        return path

    def load_session(self, path: Path) -> tuple[Context, dict[str, Any]]:
        """
        Load a context from a file.

        Values are normalized (integers become numbers); entries that have
        no value form are skipped and reported.

        Returns:
            (context, load info)
        """
        path = Path(path)
        with open(path, "r") as f:
            state = json.load(f)

        context = Context()
        skipped = []
        for name, value in state.get("context", []):
            if not isinstance(name, str):
                skipped.append(str(name))
                continue
            try:
                context.set(name, to_value(value))
            except TypeError:
                skipped.append(name)

        return context, {
            "restored_vars": context.names(),
            "skipped_vars": skipped,
            "saved_at": state.get("saved_at"),
        }

    def list_sessions(self) -> list[dict[str, Any]]:
        """
        List available saved sessions.

        Returns:
            List of session info dictionaries
        """
        sessions = []
        for path in self.sessions_dir.glob("*.session"):
            try:
                with open(path, "r") as f:
                    state = json.load(f)
                sessions.append({
                    "path": str(path),
                    "name": path.stem,
                    "saved_at": state.get("saved_at"),
                    "var_count": len(state.get("context", [])),
                })
            except (OSError, ValueError) as e:
                sessions.append({
                    "path": str(path),
                    "name": path.stem,
                    "error": str(e),
                })
        return sorted(sessions, key=lambda x: x.get("saved_at") or "", reverse=True)

    def delete_session(self, path: Path) -> bool:
        """Delete a session file."""
        path = Path(path)
        if path.exists():
            path.unlink()
            return True
        return False

    def get_checkpoint_path(self, notebook_path: Path) -> Path:
        """Get the checkpoint path for a notebook."""
        notebook_path = Path(notebook_path)
        return self.sessions_dir / "checkpoints" / f"{notebook_path.stem}.checkpoint"

    def save_checkpoint(self, context: Context, notebook_path: Path) -> Path:
        """Save a checkpoint for a notebook."""
        return self.save_session(context, path=self.get_checkpoint_path(notebook_path))

    def load_checkpoint(self, notebook_path: Path) -> Optional[tuple[Context, dict[str, Any]]]:
        """
        Load checkpoint for a notebook.

        Returns:
            (context, load info) or None if no checkpoint exists
        """
        checkpoint_path = self.get_checkpoint_path(notebook_path)
        if checkpoint_path.exists():
            return self.load_session(checkpoint_path)
        return None
