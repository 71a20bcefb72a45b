"""
Subprocess helper shared by the external tool wrappers.
"""

import logging
import subprocess
from typing import Sequence, Type

from seedtools.services.exceptions import ExternalToolError

logger = logging.getLogger(__name__)


def run_tool(
    cmd: Sequence[str],
    error_cls: Type[ExternalToolError] = ExternalToolError,
    description: str = "",
) -> subprocess.CompletedProcess:
    """
    Run an external binary and capture its output.

    Args:
        cmd: Argument vector, binary first
        error_cls: ExternalToolError subclass raised on failure
        description: What the call does, for the error message

    Returns:
        The completed process (returncode 0)

    Raises:
        error_cls: If the binary is missing or exits non-zero
    """
    tool = cmd[0]
    logger.debug(f"Running: {' '.join(str(c) for c in cmd)}")

    try:
        result = subprocess.run(list(cmd), capture_output=True, text=True)
    except OSError as e:
        raise error_cls(f"Failed to execute {tool}: {e}", tool=tool) from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise error_cls(
            f"{description or 'command failed'}: {stderr[-500:] or 'no output'}",
            tool=tool,
            returncode=result.returncode,
            stderr=stderr,
        )

    return result
