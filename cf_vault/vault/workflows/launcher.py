"""Compose the child environment and replace this process with the target."""
import os
import sys
import shutil
import logging
from typing import Callable, Dict, List, Mapping, NoReturn, Optional

from ..domains.errors import ExecutableNotFoundError, LaunchError, NestedSessionError
from .session import SESSION_MARKER

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/sh"


def ensure_not_nested(ambient: Mapping[str, str]) -> None:
    """Refuse to start a session inside another one."""
    active = ambient.get(SESSION_MARKER)
    if active:
        raise NestedSessionError(SESSION_MARKER, active)


def compose_environment(ambient: Mapping[str, str], session_env: Mapping[str, str]) -> Dict[str, str]:
    """Ambient environment overlaid with the session; session values win."""
    merged = dict(ambient)
    merged.update(session_env)
    return merged


def interactive_shell(env: Mapping[str, str]) -> str:
    return env.get("SHELL") or DEFAULT_SHELL


def resolve_executable(command: str, env: Mapping[str, str]) -> str:
    """Find `command` on the PATH of `env`."""
    path = shutil.which(command, path=env.get("PATH", os.defpath))
    if path is None:
        raise ExecutableNotFoundError(command)
    return path


def launch(session_env: Mapping[str, str], command: Optional[List[str]] = None,
           ambient: Optional[Mapping[str, str]] = None,
           execve: Callable[[str, List[str], Dict[str, str]], None] = os.execve) -> NoReturn:
    """
    Replace the current process with `command`, or a shell if none is given.

    Args:
        session_env: Variables from the session materializer
        command: Executable followed by its arguments
        ambient: Base environment (defaults to os.environ)
        execve: Process replacement call

    Raises:
        NestedSessionError: If ambient already holds a session
        ExecutableNotFoundError: If the command isn't on PATH
        LaunchError: If the process image couldn't be replaced
    """
    ambient = os.environ if ambient is None else ambient
    ensure_not_nested(ambient)
    env = compose_environment(ambient, session_env)

    if command:
        executable = resolve_executable(command[0], env)
        argv = list(command)
        logger.debug(f"found executable {executable}")
        logger.debug(f"executing command: {' '.join(argv)}")
    else:
        executable = interactive_shell(env)
        argv = [executable]
        logger.debug("no command provided, dropping into a new shell")

    sys.stdout.flush()
    sys.stderr.flush()
    try:
        execve(executable, argv, env)
    except OSError as e:
        raise LaunchError(f"failed to execute '{argv[0]}': {e}")

    # A real execve never returns.
    raise LaunchError(f"process replacement for '{argv[0]}' returned unexpectedly")
