"""Thin wrapper around the terraform / tofu CLI for rendered group directories."""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

_TAIL_LINES = 50
_TAIL_CHARS = 800


class TerraformError(RuntimeError):
    """A terraform subcommand could not be started or exited non-zero."""

    def __init__(self, message: str, cmd: Optional[List[str]] = None, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.cmd = cmd or []
        self.returncode = returncode
        self.output = output


class TerraformRunner:
    """
    Runs engine subcommands inside one rendered group directory.

    Output is streamed line by line into the log; the last lines are kept so
    failures carry a useful snippet.
    """

    def __init__(self, workdir: str | Path, binary: str = "terraform", env: Optional[Dict[str, str]] = None):
        self.workdir = Path(workdir).resolve()
        self.binary = binary
        self.env = env

    def _resolve_binary(self) -> str:
        resolved = shutil.which(self.binary)
        if resolved is None:
            raise TerraformError(f"terraform binary '{self.binary}' not found on PATH")
        return resolved

    def _environment(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.env or {})
        env["TF_IN_AUTOMATION"] = "1"
        env.setdefault("TF_INPUT", "0")
        return env

    def run(self, args: List[str], label: Optional[str] = None, capture: bool = False) -> str:
        """
        Run one subcommand.

        Args:
            args: arguments after the binary, e.g. ["plan", "-out=tfplan"]
            label: log label; defaults to "terraform <first arg>"
            capture: return the full stdout instead of only logging it

        Returns:
            Captured stdout when `capture` is set, otherwise an empty string

        Raises:
            TerraformError: binary missing, workdir missing, or non-zero exit
        """
        if not self.workdir.is_dir():
            raise TerraformError(f"Working directory not found: {self.workdir}")

        cmd = [self._resolve_binary(), *args]
        label = label or f"terraform {args[0] if args else ''}".strip()
        logger.info(f"{label} in {self.workdir}")

        stdout_buf: Deque[str] = deque(maxlen=_TAIL_LINES)
        stderr_buf: Deque[str] = deque(maxlen=_TAIL_LINES)
        captured: List[str] = []

        proc = subprocess.Popen(
            cmd,
            cwd=str(self.workdir),
            env=self._environment(),
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            bufsize=1,
        )

        def _pump(stream, level, buffer, sink=None):
            for line in stream:
                text = line.rstrip("\n")
                buffer.append(text)
                if sink is not None:
                    sink.append(line)
                else:
                    logger.log(level, f"[{label}] {text}")

        threads = [
            threading.Thread(
                target=_pump,
                args=(proc.stdout, logging.INFO, stdout_buf, captured if capture else None),
                daemon=True,
            ),
            threading.Thread(target=_pump, args=(proc.stderr, logging.WARNING, stderr_buf), daemon=True),
        ]
        for t in threads:
            t.start()

        proc.wait()
        for t in threads:
            t.join(timeout=1)

        if proc.returncode != 0:
            snippet_lines = list(stderr_buf) or list(stdout_buf)
            snippet = "\n".join(snippet_lines)[-_TAIL_CHARS:] if snippet_lines else ""
            message = f"{label} failed (rc={proc.returncode})"
            if snippet:
                message = f"{message}: {snippet}"
            raise TerraformError(message, cmd=cmd, returncode=proc.returncode, output=snippet)

        return "".join(captured)

    # ------------------------------------------------------------------ #
    # Subcommands
    # ------------------------------------------------------------------ #

    def init(self, backend: bool = True) -> None:
        args = ["init", "-input=false", "-no-color"]
        if not backend:
            args.append("-backend=false")
        self.run(args, label="terraform init")

    def validate(self) -> Dict[str, Any]:
        output = self.run(["validate", "-json", "-no-color"], label="terraform validate", capture=True)
        try:
            return json.loads(output or "{}")
        except json.JSONDecodeError as e:
            raise TerraformError(f"terraform validate returned invalid JSON: {e}", output=output[-_TAIL_CHARS:])

    def plan(self, out_file: str = "tfplan", destroy: bool = False) -> Path:
        args = ["plan", "-input=false", "-no-color", f"-out={out_file}"]
        if destroy:
            args.append("-destroy")
        self.run(args, label="terraform plan")
        return self.workdir / out_file

    def apply(self, plan_file: Optional[str] = None) -> None:
        args = ["apply", "-input=false", "-no-color"]
        args.append(plan_file if plan_file else "-auto-approve")
        self.run(args, label="terraform apply")

    def destroy(self) -> None:
        self.run(["destroy", "-input=false", "-no-color", "-auto-approve"], label="terraform destroy")

    def state_pull(self) -> Dict[str, Any]:
        """Current state as a v4 document, suitable for TerraformStateParser."""
        output = self.run(["state", "pull"], label="terraform state pull", capture=True)
        if not output.strip():
            return {"version": 4, "resources": []}
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise TerraformError(f"terraform state pull returned invalid JSON: {e}", output=output[-_TAIL_CHARS:])
