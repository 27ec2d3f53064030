"""Unit tests for the entity store."""

import warnings
from datetime import timezone

import pytest
from sqlalchemy.exc import SAWarning

from planpilot.core.db import Db
from planpilot.core.errors import InvalidInputError, NotFoundError
from planpilot.core.models import (
    EntityKind,
    Executor,
    GoalQuery,
    PlanChanges,
    PlanOrder,
    PlanQuery,
    Status,
    StepChanges,
    StepInput,
    StepOrder,
    StepQuery,
)
from planpilot.core.store import PlanStore


def _contents(store, plan_id):
    return [step.content for step in store.steps_for_plan(plan_id)]


def _positions(store, plan_id):
    return [step.sort_order for step in store.steps_for_plan(plan_id)]


class TestPlans:
    """Tests for plan creation, listing and removal."""

    def test_add_plan_touches_session(self, store):
        plan = store.add_plan("Ship it", "Release 1.0")

        assert plan.id is not None
        assert plan.status == "todo"
        assert plan.last_session_id == "session-a"

    @pytest.mark.parametrize(
        ("title", "content", "label"),
        [("  ", "body", "plan title"), ("Title", "", "plan content")],
    )
    def test_add_plan_rejects_empty_fields(self, store, title, content, label):
        with pytest.raises(InvalidInputError, match=f"{label} cannot be empty"):
            store.add_plan(title, content)

    def test_add_plan_tree_creates_everything(self, store):
        plan, step_count, goal_count = store.add_plan_tree(
            "Tree",
            "Plan body",
            [
                StepInput("Build", goals=["compiles", "tests pass"]),
                StepInput("Review", executor=Executor.HUMAN),
            ],
        )

        assert (step_count, goal_count) == (2, 2)
        steps = store.steps_for_plan(plan.id)
        assert [s.content for s in steps] == ["Build", "Review"]
        assert [s.sort_order for s in steps] == [1, 2]
        assert [s.executor for s in steps] == ["ai", "human"]
        assert [g.content for g in store.goals_for_step(steps[0].id)] == ["compiles", "tests pass"]

    def test_add_plan_tree_rejects_empty_goal(self, store):
        with pytest.raises(InvalidInputError, match="goal content cannot be empty"):
            store.add_plan_tree("Tree", "Body", [StepInput("Build", goals=[" "])])
        assert store.list_plans() == []

    def test_list_plans_order_filter_and_paging(self, store):
        first = store.add_plan("A", "a")
        second = store.add_plan("B", "b")
        third = store.add_plan("C", "c")
        store.update_plan(second.id, PlanChanges(status=Status.DONE))

        by_id_desc = store.list_plans(PlanQuery(order=PlanOrder.ID, desc=True, limit=2))
        assert [p.id for p in by_id_desc] == [third.id, second.id]

        todo = store.list_plans(PlanQuery(status=Status.TODO, order=PlanOrder.ID))
        assert [p.id for p in todo] == [first.id, third.id]

        paged = store.list_plans(PlanQuery(order=PlanOrder.TITLE, offset=1))
        assert [p.title for p in paged] == ["B", "C"]

    def test_get_plan_missing(self, store):
        with pytest.raises(NotFoundError, match="plan id 404"):
            store.get_plan(404)

    def test_delete_plan_cascades(self, store):
        plan, _, _ = store.add_plan_tree("Tree", "Body", [StepInput("Build", goals=["done"])])
        step = store.steps_for_plan(plan.id)[0]
        goal = store.goals_for_step(step.id)[0]

        store.delete_plan(plan.id)

        for lookup, entity_id in ((store.get_plan, plan.id), (store.get_step, step.id), (store.get_goal, goal.id)):
            with pytest.raises(NotFoundError):
                lookup(entity_id)

    def test_delete_missing_plan(self, store):
        with pytest.raises(NotFoundError):
            store.delete_plan(9)

    def test_ids_are_never_reused(self, store):
        removed = store.add_plan("Old", "old")
        store.delete_plan(removed.id)

        fresh = store.add_plan("New", "new")

        assert fresh.id > removed.id

    def test_manual_status_on_plan_without_steps(self, store):
        plan = store.add_plan("Empty", "nothing yet")

        updated, cleared = store.update_plan(plan.id, PlanChanges(status=Status.DONE))

        assert updated.status == "done"
        assert cleared is False

    def test_plan_done_rejected_while_step_pending(self, store):
        plan = store.add_plan("P", "p")
        store.add_steps(plan.id, ["first"])

        with pytest.raises(InvalidInputError, match="cannot mark plan done; next pending step") as exc_info:
            store.update_plan(plan.id, PlanChanges(status=Status.DONE))

        assert "Content: first" in str(exc_info.value)
        assert store.get_plan(plan.id).status == "todo"

    def test_plan_todo_rejected_when_all_steps_done(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["only"])
        store.update_step(steps[0].id, StepChanges(status=Status.DONE))

        with pytest.raises(InvalidInputError, match="reopen a step instead"):
            store.update_plan(plan.id, PlanChanges(status=Status.TODO))

    def test_timestamps_read_back_as_utc(self, store, tmp_path):
        plan = store.add_plan("P", "p")

        reopened = Db(tmp_path / "store" / "planpilot.db", "session-b")
        reopened.initialize()
        try:
            loaded = PlanStore(reopened).get_plan(plan.id)
        finally:
            reopened.close()

        assert loaded.created_at.tzinfo == timezone.utc
        assert loaded.created_at == plan.created_at
        assert loaded.updated_at >= loaded.created_at

    def test_removals_leave_no_stale_rows_for_the_orm(self, store):
        plan, _, _ = store.add_plan_tree(
            "Tree", "Body", [StepInput("Build", goals=["a", "b"]), StepInput("Ship", goals=["c"])]
        )
        steps = store.steps_for_plan(plan.id)

        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            store.delete_steps([steps[0].id])
            store.delete_plan(plan.id)

        with pytest.raises(NotFoundError):
            store.get_step(steps[1].id)


class TestStepPositions:
    """Tests for insert, move and removal ordering."""

    def test_add_steps_append_and_insert(self, store):
        plan = store.add_plan("P", "p")
        store.add_steps(plan.id, ["one", "two"])

        store.add_steps(plan.id, ["zero"], at=1)
        store.add_steps(plan.id, ["last"], at=99)
        store.add_steps(plan.id, ["first"], at=0)

        assert _contents(store, plan.id) == ["first", "zero", "one", "two", "last"]
        assert _positions(store, plan.id) == [1, 2, 3, 4, 5]

    def test_add_steps_in_the_middle_keeps_batch_order(self, store):
        plan = store.add_plan("P", "p")
        store.add_steps(plan.id, ["a", "d"])

        created, _ = store.add_steps(plan.id, ["b", "c"], at=2)

        assert [s.sort_order for s in created] == [2, 3]
        assert _contents(store, plan.id) == ["a", "b", "c", "d"]

    def test_add_steps_missing_plan(self, store):
        with pytest.raises(NotFoundError, match="plan id 7"):
            store.add_steps(7, ["x"])

    def test_add_steps_rejects_blank_content(self, store):
        plan = store.add_plan("P", "p")
        with pytest.raises(InvalidInputError, match="step content cannot be empty"):
            store.add_steps(plan.id, ["ok", "   "])
        assert _contents(store, plan.id) == []

    def test_move_step_clamps_and_renumbers(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a", "b", "c", "d"])
        ids_before = sorted(s.id for s in steps)

        store.move_step(steps[3].id, 1)
        assert _contents(store, plan.id) == ["d", "a", "b", "c"]

        reordered = store.move_step(steps[0].id, 99)
        assert [s.content for s in reordered] == ["d", "b", "c", "a"]
        assert _positions(store, plan.id) == [1, 2, 3, 4]
        assert sorted(s.id for s in store.steps_for_plan(plan.id)) == ids_before

    def test_move_step_keeps_statuses(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a", "b"])
        store.update_step(steps[0].id, StepChanges(status=Status.DONE))

        store.move_step(steps[0].id, 2)

        assert [(s.content, s.status) for s in store.steps_for_plan(plan.id)] == [("b", "todo"), ("a", "done")]

    def test_delete_steps_renumbers(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a", "b", "c"])

        deleted, _ = store.delete_steps([steps[1].id, steps[1].id])

        assert deleted == 1
        assert _contents(store, plan.id) == ["a", "c"]
        assert _positions(store, plan.id) == [1, 2]

    def test_delete_steps_reports_all_missing_ids(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a"])

        with pytest.raises(NotFoundError, match=r"step id\(s\) not found: 98, 99"):
            store.delete_steps([98, steps[0].id, 99])

        assert _contents(store, plan.id) == ["a"]

    def test_failure_after_flush_restores_positions(self, store, monkeypatch):
        plan = store.add_plan("P", "p")
        store.add_steps(plan.id, ["a", "b"])

        def fail_rollup(db, plan_id):
            raise RuntimeError("rollup failed")

        monkeypatch.setattr("planpilot.core.store.refresh_plan_status", fail_rollup)
        with pytest.raises(RuntimeError, match="rollup failed"):
            store.add_steps(plan.id, ["x", "y"], at=1)

        assert _contents(store, plan.id) == ["a", "b"]
        assert _positions(store, plan.id) == [1, 2]
        assert store.count_steps(plan.id) == 2

    def test_next_step_skips_done(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a", "b"])
        store.update_step(steps[0].id, StepChanges(status=Status.DONE))

        assert store.next_step(plan.id).id == steps[1].id


class TestStepQueries:
    """Tests for filtered step and goal listing."""

    def test_list_and_count_steps(self, store):
        plan = store.add_plan("P", "p")
        ai_steps, _ = store.add_steps(plan.id, ["a1", "a2"])
        store.add_steps(plan.id, ["h1"], executor=Executor.HUMAN)
        store.update_step(ai_steps[0].id, StepChanges(status=Status.DONE))

        todo = StepQuery(status=Status.TODO)
        assert [s.content for s in store.list_steps(plan.id, todo)] == ["a2", "h1"]
        assert store.count_steps(plan.id, todo) == 2
        assert store.count_steps(plan.id, StepQuery(executor=Executor.HUMAN)) == 1

        newest_first = store.list_steps(plan.id, StepQuery(order=StepOrder.ID, desc=True, limit=2))
        assert [s.content for s in newest_first] == ["h1", "a2"]

    def test_list_steps_missing_plan(self, store):
        with pytest.raises(NotFoundError):
            store.list_steps(3)
        with pytest.raises(NotFoundError):
            store.count_steps(3)

    def test_list_goals_in_id_order(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a"])
        goals, _ = store.add_goals(steps[0].id, ["g1", "g2", "g3"])
        store.set_goals_status([goals[1].id], Status.DONE)

        assert [g.content for g in store.list_goals(steps[0].id)] == ["g1", "g2", "g3"]
        assert [g.content for g in store.list_goals(steps[0].id, GoalQuery(status=Status.TODO))] == ["g1", "g3"]
        assert store.count_goals(steps[0].id, GoalQuery(status=Status.DONE)) == 1


class TestDirectStatusEdits:
    """Tests for manual status writes that would contradict children."""

    def test_step_done_rejected_with_pending_goal(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a"])
        goals, _ = store.add_goals(steps[0].id, ["compiles", "ships"])

        with pytest.raises(InvalidInputError, match=f"next pending goal: compiles \\(id {goals[0].id}\\)"):
            store.update_step(steps[0].id, StepChanges(status=Status.DONE))

    def test_step_without_goals_is_manual(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a", "b"])

        step, changes = store.update_step(steps[0].id, StepChanges(status=Status.DONE, comment="did it"))

        assert step.status == "done"
        assert step.comment == "did it"
        assert changes.is_empty()

    def test_step_update_rejects_blank_content(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a"])

        with pytest.raises(InvalidInputError, match="step content cannot be empty"):
            store.update_step(steps[0].id, StepChanges(content=""))


class TestComments:
    """Tests for the kind-generic comment operation."""

    def test_last_comment_wins_for_duplicate_ids(self, store):
        plan = store.add_plan("P", "p")
        steps, _ = store.add_steps(plan.id, ["a", "b"])

        plan_ids = store.comment(EntityKind.STEP, [(steps[0].id, "x"), (steps[1].id, "y"), (steps[0].id, "z")])

        assert plan_ids == [plan.id]
        assert [s.comment for s in store.steps_for_plan(plan.id)] == ["z", "y"]

    def test_goal_comments_map_to_plans(self, store):
        first = store.add_plan("One", "1")
        second = store.add_plan("Two", "2")
        step_one, _ = store.add_steps(first.id, ["a"])
        step_two, _ = store.add_steps(second.id, ["b"])
        goal_one, _ = store.add_goals(step_one[0].id, ["g"])
        goal_two, _ = store.add_goals(step_two[0].id, ["h"])

        plan_ids = store.comment(EntityKind.GOAL, [(goal_one[0].id, "note"), (goal_two[0].id, "other")])

        assert sorted(plan_ids) == sorted([first.id, second.id])
        assert store.get_goal(goal_one[0].id).comment == "note"

    def test_missing_ids_reported_together(self, store):
        plan = store.add_plan("P", "p")

        with pytest.raises(NotFoundError, match=r"plan id\(s\) not found: 500, 501"):
            store.comment(EntityKind.PLAN, [(plan.id, "ok"), (500, "x"), (501, "y")])

        assert store.get_plan(plan.id).comment is None

    def test_empty_comment_rejected(self, store):
        plan = store.add_plan("P", "p")
        with pytest.raises(InvalidInputError, match="comment cannot be empty"):
            store.comment(EntityKind.PLAN, [(plan.id, " ")])
