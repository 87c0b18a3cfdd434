from __future__ import annotations

import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Mapping, Sequence

from demigod.domain.ports.command_executor import CommandResult
from demigod.logger import get_logger


def _merged_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    if not env:
        return None
    merged = os.environ.copy()
    merged.update(env)
    return merged


def _log_lines(logger, text: str) -> None:
    for line in text.splitlines():
        if line.strip():
            logger.debug(line)


class SubprocessCommandExecutor:
    """Runs commands on the host, streaming captured output into the debug log."""

    def __init__(self, cwd: Path | None = None) -> None:
        self.cwd = cwd
        self._logger = get_logger()

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        interactive: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        cmd = [command, *[str(a) for a in args]]
        workdir = cwd or self.cwd
        self._logger.info(f"$ {shlex.join(cmd)}")

        if interactive:
            # Inherit the terminal so prompts and progress bars reach the operator.
            proc = subprocess.run(
                cmd,
                cwd=str(workdir) if workdir else None,
                env=_merged_env(env),
                check=False,
            )
            return CommandResult(exit_status=proc.returncode)

        proc = subprocess.run(
            cmd,
            cwd=str(workdir) if workdir else None,
            env=_merged_env(env),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
        _log_lines(self._logger, proc.stdout)
        _log_lines(self._logger, proc.stderr)
        if proc.returncode != 0:
            self._logger.warning(f"exit_status={proc.returncode}: {cmd[0]}")
        return CommandResult(exit_status=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)

    def run_pipeline(
        self,
        commands: Sequence[Sequence[str]],
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """
        Chain commands stdout -> stdin like a shell pipe.

        The exit status is that of the rightmost stage that failed, the same as
        `set -o pipefail`, so a reader that exits early reports its own status
        rather than the SIGPIPE of the writer feeding it. stderr of every stage
        is collected into one buffer.
        """
        if not commands:
            raise ValueError("pipeline needs at least one command")
        workdir = cwd or self.cwd
        merged_env = _merged_env(env)
        self._logger.info("$ " + " | ".join(shlex.join([str(a) for a in c]) for c in commands))

        procs: list[subprocess.Popen] = []
        with tempfile.TemporaryFile(mode="w+b") as err_buf:
            upstream = None
            try:
                for index, command in enumerate(commands):
                    last = index == len(commands) - 1
                    proc = subprocess.Popen(
                        [str(a) for a in command],
                        cwd=str(workdir) if workdir else None,
                        env=merged_env,
                        stdin=upstream,
                        stdout=subprocess.PIPE,
                        stderr=err_buf,
                    )
                    if upstream is not None:
                        # Let the upstream stage see SIGPIPE if this one exits early.
                        upstream.close()
                    upstream = None if last else proc.stdout
                    procs.append(proc)
            except OSError:
                for proc in procs:
                    proc.kill()
                    proc.wait()
                raise

            out_bytes, _ = procs[-1].communicate()
            statuses = [p.wait() for p in procs]
            err_buf.seek(0)
            err_bytes = err_buf.read()

        stdout = out_bytes.decode("utf-8", errors="replace")
        stderr = err_bytes.decode("utf-8", errors="replace")
        _log_lines(self._logger, stdout)
        _log_lines(self._logger, stderr)
        exit_status = next((s for s in reversed(statuses) if s != 0), 0)
        if exit_status != 0:
            self._logger.warning(f"pipeline exit_statuses={statuses}")
        return CommandResult(exit_status=exit_status, stdout=stdout, stderr=stderr)
