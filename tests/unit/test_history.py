"""Unit tests for history-based project scoping."""

import json

from planpilot.core.history import collect_session_ids_for_project, project_matches_path


def _history(tmp_path, entries, extra_lines=()):
    path = tmp_path / "history.jsonl"
    lines = [json.dumps(entry) for entry in entries] + list(extra_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_project_matches_itself_and_descendants():
    assert project_matches_path("/work/app", "/work/app", None)
    assert project_matches_path("/work/app", "/work/app/src", None)
    assert not project_matches_path("/work/app", "/work/application", None)
    assert project_matches_path("/real/app", "/link/app/src", "/real/app/src")


def test_collects_sessions_for_project(tmp_path):
    project = tmp_path / "app"
    project.mkdir()
    history = _history(
        tmp_path,
        [
            {"project": str(project), "sessionId": "s1"},
            {"project": str(project / "sub"), "sessionId": "s2"},
            {"project": str(tmp_path / "other"), "sessionId": "s3"},
            {"project": str(tmp_path), "sessionId": "s4"},
        ],
    )

    assert collect_session_ids_for_project(history, project) == {"s1", "s4"}


def test_skips_malformed_lines(tmp_path):
    project = tmp_path / "app"
    history = _history(
        tmp_path,
        [{"project": str(project), "sessionId": 7}, {"sessionId": "s2"}, {"project": str(project), "sessionId": "ok"}],
        extra_lines=["{not json", "[]", ""],
    )

    assert collect_session_ids_for_project(history, project) == {"ok"}


def test_missing_history_is_empty(tmp_path):
    assert collect_session_ids_for_project(tmp_path / "absent.jsonl", tmp_path) == set()
