"""Isolated project copies for validation runs."""

from fixgate.sandbox.manager import SandboxHandle, SandboxManager

__all__ = ["SandboxHandle", "SandboxManager"]
