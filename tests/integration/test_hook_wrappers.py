"""Integration tests for the bash hook wrappers.

The wrappers run with a PATH that holds only the tools each case allows,
plus an optional fake ``planpilot`` executable.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import pytest

import planpilot.hooks

HOOKS_DIR = Path(planpilot.hooks.__file__).resolve().parent
BASH = shutil.which("bash")
JQ = shutil.which("jq")
APPROVE = '{"decision":"approve"}\n'

pytestmark = pytest.mark.skipif(BASH is None, reason="bash not installed")


def _bin_dir(tmp_path: Path, *tools: str, fake_planpilot: Optional[str] = None) -> Path:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    for tool in tools:
        found = shutil.which(tool)
        assert found is not None, tool
        (bin_dir / tool).symlink_to(found)
    if fake_planpilot is not None:
        fake = bin_dir / "planpilot"
        fake.write_text(f"#!/bin/sh\n{fake_planpilot}\n", encoding="utf-8")
        fake.chmod(0o755)
    return bin_dir


def _run(script: str, bin_dir: Path, stdin: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [str(BASH), str(HOOKS_DIR / script)],
        input=stdin,
        env={"PATH": str(bin_dir), "HOME": os.environ.get("HOME", "/")},
        capture_output=True,
        text=True,
        check=False,
    )


def _bash_payload(command: str) -> str:
    return json.dumps(
        {"tool_name": "Bash", "tool_input": {"command": command}, "session_id": "s1", "cwd": "/tmp/project"}
    )


class TestStopWrapper:
    def test_approves_without_planpilot(self, tmp_path):
        result = _run("stop.sh", _bin_dir(tmp_path))

        assert result.returncode == 0
        assert result.stdout == APPROVE

    def test_approves_when_planpilot_cannot_start(self, tmp_path):
        result = _run("stop.sh", _bin_dir(tmp_path, fake_planpilot="exit 127"))

        assert result.returncode == 0
        assert result.stdout == APPROVE

    def test_relays_hook_output_and_status(self, tmp_path):
        fake = 'echo \'{"decision":"block","reason":"keep going"}\'\nexit 0'

        result = _run("stop.sh", _bin_dir(tmp_path, fake_planpilot=fake))

        assert result.returncode == 0
        assert json.loads(result.stdout) == {"decision": "block", "reason": "keep going"}


class TestPreToolUseWrapper:
    def test_silent_without_jq(self, tmp_path):
        bin_dir = _bin_dir(tmp_path, "cat", fake_planpilot="echo called\nexit 3")

        result = _run("pretooluse.sh", bin_dir, _bash_payload("planpilot step show-next"))

        assert result.returncode == 0
        assert result.stdout == ""

    def test_silent_on_empty_payload(self, tmp_path):
        result = _run("pretooluse.sh", _bin_dir(tmp_path, "cat"))

        assert result.returncode == 0
        assert result.stdout == ""

    @pytest.mark.skipif(JQ is None, reason="jq not installed")
    def test_silent_without_planpilot(self, tmp_path):
        result = _run("pretooluse.sh", _bin_dir(tmp_path, "cat", "jq"), _bash_payload("planpilot step show-next"))

        assert result.returncode == 0
        assert result.stdout == ""

    @pytest.mark.skipif(JQ is None, reason="jq not installed")
    @pytest.mark.parametrize("command", ["cd /tmp && planpilot step show-next", "ls planpilot ", "planpilot"])
    def test_skips_commands_not_led_by_planpilot(self, tmp_path, command):
        bin_dir = _bin_dir(tmp_path, "cat", "jq", fake_planpilot="echo called\nexit 3")

        result = _run("pretooluse.sh", bin_dir, _bash_payload(command))

        assert result.returncode == 0
        assert result.stdout == ""

    @pytest.mark.skipif(JQ is None, reason="jq not installed")
    def test_relays_hook_output_and_status(self, tmp_path):
        bin_dir = _bin_dir(tmp_path, "cat", "jq", fake_planpilot="cat >/dev/null\necho rewritten\nexit 3")

        result = _run("pretooluse.sh", bin_dir, _bash_payload("  planpilot step show-next"))

        assert result.returncode == 3
        assert result.stdout == "rewritten\n"
