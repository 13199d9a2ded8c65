"""
Execution Engine for running generated JavaScript.

The JavaScriptExecutor hands code to a Node.js subprocess.  Every failure,
whether the runtime is missing, the script throws or it runs too long, comes
back as an unsuccessful ExecutionResult with a readable message.  Nothing is
raised to the caller.
"""

import logging
import os
import shutil
import subprocess
import tempfile
import time
from typing import Optional

from .flow_storage import FlowStore, resolve_setting

DEFAULT_TIMEOUT_SECONDS = 30.0

logger = logging.getLogger(__name__)


def _run_subprocess(*args, **kwargs):
    """Wrapper around subprocess.run that forces UTF-8 decoding of output."""
    if kwargs.get('text', False) and 'encoding' not in kwargs:
        kwargs['encoding'] = 'utf-8'
        kwargs['errors'] = 'replace'
    return subprocess.run(*args, **kwargs)


def _parse_timeout(raw: str) -> float:
    try:
        timeout = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid exec_timeout {raw!r}; using {DEFAULT_TIMEOUT_SECONDS:g}s")
        return DEFAULT_TIMEOUT_SECONDS
    if timeout <= 0:
        logger.warning(f"Ignoring non-positive exec_timeout {raw!r}; using {DEFAULT_TIMEOUT_SECONDS:g}s")
        return DEFAULT_TIMEOUT_SECONDS
    return timeout


class ExecutionResult:
    """Represents the result of running generated code."""

    def __init__(self, success: bool, output: str = "", error: Optional[str] = None,
                 execution_time: float = 0.0):
        self.success = success
        self.output = output
        self.error = error
        self.execution_time = execution_time

    @property
    def message(self) -> str:
        """Human-readable summary for user feedback."""
        if self.success:
            return "The code was executed successfully."
        return self.error or "Failed to execute code"

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'output': self.output,
            'error': self.error,
            'message': self.message,
            'execution_time': self.execution_time,
        }

    def __str__(self) -> str:
        if self.success:
            return f"Success: {self.output}"
        return f"Error: {self.error}"


class JavaScriptExecutor:
    """Executes JavaScript code via a Node.js subprocess.

    Each call is isolated; nothing is shared between runs.
    """

    def __init__(self, timeout: Optional[float] = None, node_path: Optional[str] = None,
                 store: Optional[FlowStore] = None):
        if timeout is None:
            timeout = _parse_timeout(resolve_setting(
                'exec_timeout', 'BLOCKFLOW_EXEC_TIMEOUT', str(DEFAULT_TIMEOUT_SECONDS), store))
        self.timeout = timeout
        self._node_path = node_path or resolve_setting(
            'node_binary', 'BLOCKFLOW_NODE_BINARY', shutil.which('node') or '', store) or None

    def execute(self, code: str) -> ExecutionResult:
        """Execute JavaScript code via Node.js and return the result."""
        if not self._node_path:
            logger.warning("Node.js runtime not found; cannot execute generated code")
            return ExecutionResult(
                success=False,
                error='Node.js runtime not found on PATH. Install Node.js to execute JavaScript',
            )

        start_time = time.time()
        tmp_file = None

        try:
            tmp_fd, tmp_file = tempfile.mkstemp(suffix='.js', prefix='blockflow_')
            os.close(tmp_fd)

            with open(tmp_file, 'w', encoding='utf-8') as f:
                f.write(code)

            proc = _run_subprocess(
                [self._node_path, tmp_file],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )

            execution_time = time.time() - start_time
            output = proc.stdout or ''
            error_text = proc.stderr or ''

            if proc.returncode != 0:
                logger.warning(f"Generated code exited with code {proc.returncode}")
                return ExecutionResult(
                    success=False,
                    output=output,
                    error=error_text.strip() or f'Node.js exited with code {proc.returncode}',
                    execution_time=execution_time,
                )

            return ExecutionResult(success=True, output=output, execution_time=execution_time)

        except subprocess.TimeoutExpired:
            logger.warning(f"Generated code timed out after {self.timeout}s")
            return ExecutionResult(
                success=False,
                error=f'JavaScript execution timed out after {self.timeout:g}s',
                execution_time=time.time() - start_time,
            )
        except OSError as e:
            logger.warning(f"Could not run Node.js: {e}")
            return ExecutionResult(
                success=False,
                error=str(e),
                execution_time=time.time() - start_time,
            )
        finally:
            if tmp_file and os.path.exists(tmp_file):
                try:
                    os.unlink(tmp_file)
                except OSError:
                    pass
