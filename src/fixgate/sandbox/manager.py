"""Sandbox lifecycle: isolated, disposable copies of the project tree.

A sandbox is created for exactly one validation run and destroyed when that
run ends, whatever the outcome::

    manager = SandboxManager(project_path)
    with manager.session() as sandbox:
        mutate(sandbox.path)
        observe(sandbox.path)
    # directory is gone here, even if the block raised
"""

from __future__ import annotations

import logging
import secrets
import shutil
import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from fixgate.core.config import FixGateConfig, load_config
from fixgate.core.errors import SandboxCreationError
from fixgate.core.models import Sandbox
from fixgate.sandbox.tree import normalise_excludes

logger = logging.getLogger(__name__)


class SandboxHandle:
    """A created sandbox plus its cleanup capability.

    ``cleanup()`` is idempotent and never raises: failures are logged and the
    caller carries on.
    """

    def __init__(self, sandbox: Sandbox) -> None:
        self.sandbox = sandbox
        self._lock = threading.Lock()
        self._destroyed = False

    @property
    def id(self) -> str:
        return self.sandbox.id

    @property
    def path(self) -> Path:
        return self.sandbox.root_path

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def cleanup(self) -> bool:
        """Delete the sandbox directory. Returns True only on the first call."""
        with self._lock:
            if self._destroyed:
                return False
            self._destroyed = True

        def _log_failure(func, path, exc):
            logger.warning("Failed to remove %s from sandbox %s: %s", path, self.id, exc)

        if self.path.exists():
            shutil.rmtree(self.path, onexc=_log_failure)
            logger.info("Destroyed sandbox %s", self.id)
        return True

    def __enter__(self) -> SandboxHandle:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()


class SandboxManager:
    """Creates full copies of a project tree in a private directory."""

    def __init__(
        self,
        project_path: Path | None = None,
        config: FixGateConfig | None = None,
        sandbox_root: Path | None = None,
        exclude: Iterable[str] | None = None,
    ) -> None:
        self.project_path = (project_path or Path.cwd()).resolve()
        self.config = config or load_config(self.project_path)
        self.sandbox_root = (
            sandbox_root or self.config.sandbox.resolve_root(self.project_path)
        ).resolve()
        self.exclude = normalise_excludes(exclude if exclude is not None else self.config.exclude)

    def create(self) -> SandboxHandle:
        """Copy the project into a fresh, uniquely named directory."""
        if not self.project_path.is_dir():
            raise SandboxCreationError(
                f"Source project not found: {self.project_path}",
                target_file=self.project_path,
            )

        sandbox_id = self._new_id()
        dest = self.sandbox_root / sandbox_id

        try:
            self.sandbox_root.mkdir(parents=True, exist_ok=True)
            shutil.copytree(self.project_path, dest, ignore=self._ignore, symlinks=True)
        except (OSError, shutil.Error) as exc:
            shutil.rmtree(dest, ignore_errors=True)
            raise SandboxCreationError(
                f"Failed to create sandbox {sandbox_id}: {exc}",
                target_file=self.project_path,
            ) from exc

        logger.info("Created sandbox %s at %s", sandbox_id, dest)
        return SandboxHandle(Sandbox(id=sandbox_id, root_path=dest))

    @contextmanager
    def session(self) -> Iterator[SandboxHandle]:
        """Create a sandbox and destroy it on every exit path."""
        handle = self.create()
        try:
            yield handle
        finally:
            handle.cleanup()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _new_id() -> str:
        return f"sandbox_{int(time.time() * 1000)}_{secrets.token_hex(5)}"

    def _ignore(self, dirpath: str, names: list[str]) -> set[str]:
        ignored = {name for name in names if name in self.exclude}
        parent = Path(dirpath).resolve()
        # Never copy the sandbox root into itself when it lives inside the project.
        for name in names:
            if parent / name == self.sandbox_root:
                ignored.add(name)
        return ignored
