"""Unit tests for status rollup through the store."""

import random

import pytest

from planpilot.core.models import EntityKind, GoalChanges, Status, StepChanges


def _plan_with_goals(store, goal_contents=("g1", "g2"), extra_steps=()):
    plan = store.add_plan("Plan", "body")
    steps, _ = store.add_steps(plan.id, ["with goals", *extra_steps])
    goals, _ = store.add_goals(steps[0].id, list(goal_contents))
    return plan, steps, goals


class TestGoalToStepRollup:
    """Step status follows its goals; plan status follows its steps."""

    def test_last_goal_done_cascades_and_clears_binding(self, store):
        plan, steps, goals = _plan_with_goals(store)
        store.sessions.activate(plan.id)
        store.set_goal_status(goals[0].id, Status.DONE)

        _, changes = store.set_goal_status(goals[1].id, Status.DONE)

        assert [(c.kind, c.entity_id, c.previous, c.current) for c in changes.updates] == [
            (EntityKind.STEP, steps[0].id, "todo", "done"),
            (EntityKind.PLAN, plan.id, "todo", "done"),
        ]
        assert changes.steps[0].reason == "all goals are done (2/2)"
        assert changes.plans[0].reason == "all steps are done (1/1)"
        assert [(c.plan_id, c.reason) for c in changes.active_plans_cleared] == [(plan.id, "plan marked done")]
        assert store.sessions.get_active() is None

    def test_reopening_a_goal_reopens_ancestors_once(self, store):
        plan, steps, goals = _plan_with_goals(store)
        store.set_goals_status([g.id for g in goals], Status.DONE)

        _, changes = store.update_goal(goals[0].id, GoalChanges(status=Status.TODO))

        assert [(c.kind, c.current, c.reason) for c in changes.updates] == [
            (EntityKind.STEP, "todo", "goals done 1/2"),
            (EntityKind.PLAN, "todo", "steps done 0/1"),
        ]
        assert store.get_step(steps[0].id).status == "todo"
        assert store.get_plan(plan.id).status == "todo"

    def test_batch_goal_write_reports_one_record_per_ancestor(self, store):
        plan, steps, goals = _plan_with_goals(store, goal_contents=("a", "b", "c"))

        count, changes = store.set_goals_status([g.id for g in goals], Status.DONE)

        assert count == 3
        assert len(changes.steps) == 1
        assert len(changes.plans) == 1

    def test_goal_done_twice_is_silent(self, store):
        _, _, goals = _plan_with_goals(store)
        store.set_goal_status(goals[0].id, Status.DONE)

        goal, changes = store.set_goal_status(goals[0].id, Status.DONE)

        assert goal.status == "done"
        assert changes.is_empty()

    def test_adding_goal_reopens_done_step_and_plan(self, store):
        plan, steps, goals = _plan_with_goals(store, goal_contents=("only",))
        store.set_goal_status(goals[0].id, Status.DONE)
        assert store.get_plan(plan.id).status == "done"

        _, changes = store.add_goals(steps[0].id, ["one more"])

        assert [(c.kind, c.current) for c in changes.updates] == [
            (EntityKind.STEP, "todo"),
            (EntityKind.PLAN, "todo"),
        ]

    def test_removing_last_goal_leaves_step_alone(self, store):
        _, steps, goals = _plan_with_goals(store, goal_contents=("only",))

        deleted, changes = store.delete_goals([goals[0].id])

        assert deleted == 1
        assert changes.is_empty()
        assert store.get_step(steps[0].id).status == "todo"

    def test_removing_pending_goal_completes_step(self, store):
        plan, steps, goals = _plan_with_goals(store)
        store.set_goal_status(goals[0].id, Status.DONE)

        _, changes = store.delete_goals([goals[1].id])

        assert [(c.kind, c.current) for c in changes.updates] == [
            (EntityKind.STEP, "done"),
            (EntityKind.PLAN, "done"),
        ]


class TestStepToPlanRollup:
    def test_manual_step_done_completes_plan(self, store):
        plan = store.add_plan("Plan", "body")
        steps, _ = store.add_steps(plan.id, ["a", "b"])
        store.update_step(steps[0].id, StepChanges(status=Status.DONE))

        _, changes = store.update_step(steps[1].id, StepChanges(status=Status.DONE))

        assert [(c.kind, c.entity_id, c.reason) for c in changes.updates] == [
            (EntityKind.PLAN, plan.id, "all steps are done (2/2)")
        ]

    def test_new_step_reopens_done_plan(self, store):
        plan = store.add_plan("Plan", "body")
        steps, _ = store.add_steps(plan.id, ["a"])
        store.update_step(steps[0].id, StepChanges(status=Status.DONE))

        _, changes = store.add_steps(plan.id, ["b"])

        assert [(c.kind, c.current, c.reason) for c in changes.updates] == [(EntityKind.PLAN, "todo", "steps done 1/2")]

    def test_removing_pending_step_completes_plan(self, store):
        plan = store.add_plan("Plan", "body")
        steps, _ = store.add_steps(plan.id, ["a", "b"])
        store.update_step(steps[0].id, StepChanges(status=Status.DONE))

        _, changes = store.delete_steps([steps[1].id])

        assert [(c.kind, c.current) for c in changes.updates] == [(EntityKind.PLAN, "done")]

    def test_removing_every_step_leaves_plan_status(self, store):
        plan = store.add_plan("Plan", "body")
        steps, _ = store.add_steps(plan.id, ["a"])

        _, changes = store.delete_steps([steps[0].id])

        assert changes.is_empty()
        assert store.get_plan(plan.id).status == "todo"

    def test_complete_step_with_all_goals(self, store):
        plan, steps, goals = _plan_with_goals(store, extra_steps=("next",))

        step, changes = store.complete_step(steps[0].id, all_goals=True)

        assert step.status == "done"
        assert all(store.get_goal(g.id).status == "done" for g in goals)
        assert [(c.kind, c.reason) for c in changes.updates] == [(EntityKind.STEP, "all goals are done (2/2)")]
        assert store.get_plan(plan.id).status == "todo"

    def test_rollup_does_not_touch_consistent_parents(self, store):
        plan, steps, goals = _plan_with_goals(store, goal_contents=("a", "b", "c"))
        before = store.get_step(steps[0].id).updated_at

        _, changes = store.set_goal_status(goals[0].id, Status.DONE)

        assert changes.is_empty()
        assert store.get_step(steps[0].id).updated_at == before


def _assert_statuses_consistent(store, plan_id):
    steps = store.steps_for_plan(plan_id)
    for step in steps:
        goals = store.goals_for_step(step.id)
        if goals:
            assert (step.status == "done") == all(goal.status == "done" for goal in goals), step.id
    assert (store.get_plan(plan_id).status == "done") == all(step.status == "done" for step in steps)


class TestRandomWrites:
    """Rollup holds after every write of a seeded random interleaving."""

    @pytest.mark.timeout(15)
    @pytest.mark.parametrize("seed", [7, 1031])
    def test_statuses_stay_consistent(self, store, seed):
        rng = random.Random(seed)
        plan = store.add_plan("Plan", "body")
        steps, _ = store.add_steps(plan.id, ["a", "b", "c"])
        goal_ids = []
        for step in steps:
            goals, _ = store.add_goals(step.id, [f"{step.content}{n}" for n in range(rng.randint(1, 3))])
            goal_ids.extend(goal.id for goal in goals)

        for _ in range(60):
            roll = rng.random()
            if roll < 0.45:
                goal_id = rng.choice(goal_ids)
                target = Status.TODO if store.get_goal(goal_id).status == "done" else Status.DONE
                store.set_goal_status(goal_id, target)
            elif roll < 0.7:
                picked = rng.sample(goal_ids, k=min(len(goal_ids), rng.randint(1, 3)))
                store.set_goals_status(picked, rng.choice([Status.DONE, Status.TODO]))
            elif roll < 0.85:
                goal_id = rng.choice(goal_ids)
                store.update_goal(goal_id, GoalChanges(status=rng.choice([Status.DONE, Status.TODO])))
            elif roll < 0.95:
                goals, _ = store.add_goals(rng.choice(steps).id, ["late goal"])
                goal_ids.extend(goal.id for goal in goals)
            else:
                step = rng.choice(steps)
                step_goals = store.goals_for_step(step.id)
                if len(step_goals) > 1:
                    store.delete_goals([step_goals[0].id])
                    goal_ids.remove(step_goals[0].id)
            _assert_statuses_consistent(store, plan.id)
