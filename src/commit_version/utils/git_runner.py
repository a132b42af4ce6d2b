"""
Centralized Git command runner with dubious ownership handling.

This module provides a robust way to run git commands that properly handles
the "dubious ownership" error that occurs when running under sudo or in
environments where the repository owner differs from the current user.

Failed commands are recorded with their full context in the exception log
before the error reaches the caller.
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Existing GIT_CONFIG_KEY_n/GIT_CONFIG_VALUE_n pairs from the calling
    environment are shifted up by one so safe.directory can sit at index 0.

    Args:
        project_dir: Path to the project directory

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    # Disable prompts; a resolution must never block on credentials
    env["GIT_TERMINAL_PROMPT"] = "0"

    try:
        inherited = int(os.environ.get("GIT_CONFIG_COUNT", "0"))
    except ValueError:
        inherited = 0

    for idx in range(inherited - 1, -1, -1):
        key = os.environ.get(f"GIT_CONFIG_KEY_{idx}")
        value = os.environ.get(f"GIT_CONFIG_VALUE_{idx}")
        if key is None or value is None:
            continue
        env[f"GIT_CONFIG_KEY_{idx + 1}"] = key
        env[f"GIT_CONFIG_VALUE_{idx + 1}"] = value

    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(project_dir.resolve())
    env["GIT_CONFIG_COUNT"] = str(inherited + 1)

    return env


def run_git_command(
    cmd: List[str],
    cwd: Path,
    check: bool = True,
    capture_output: bool = True,
    text: bool = True,
    timeout: Optional[float] = None,
    **kwargs,
) -> subprocess.CompletedProcess:
    """
    Run a git command with proper environment handling for dubious ownership.

    Args:
        cmd: Git command as a list (e.g., ["git", "status"])
        cwd: Working directory for the command
        check: Whether to raise CalledProcessError on non-zero exit
        capture_output: Whether to capture stdout and stderr
        text: Whether to decode output as text
        timeout: Optional timeout in seconds
        **kwargs: Additional arguments to pass to subprocess.run

    Returns:
        CompletedProcess instance with the command result

    Raises:
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded
        FileNotFoundError: If the git executable is not installed
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    env = get_git_environment(cwd)

    if "env" in kwargs:
        env.update(kwargs.pop("env"))

    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            check=check,
            capture_output=capture_output,
            text=text,
            timeout=timeout,
            env=env,
            **kwargs,
        )
    except subprocess.CalledProcessError as e:
        _log_git_failure(exception=e, cmd=cmd, cwd=cwd)
        raise


def _log_git_failure(
    exception: subprocess.CalledProcessError,
    cmd: List[str],
    cwd: Path,
) -> None:
    """Log a git command failure with full context.

    Args:
        exception: The CalledProcessError that occurred
        cmd: Git command that failed
        cwd: Working directory
    """
    from .exception_logger import ExceptionLogger

    logger = ExceptionLogger.get_instance()
    if logger:
        context = {
            "git_command": " ".join(cmd),
            "cwd": str(cwd),
            "returncode": exception.returncode,
            "stdout": getattr(exception, "stdout", ""),
            "stderr": getattr(exception, "stderr", ""),
        }

        failure_msg = f"Git command failed: {' '.join(cmd)}"
        logger.log_exception(Exception(failure_msg), context=context)
