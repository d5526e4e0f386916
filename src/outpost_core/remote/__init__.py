"""Remote command execution."""

from outpost_core.remote.ssh import SSHExecutor, login_shell

__all__ = ["SSHExecutor", "login_shell"]
