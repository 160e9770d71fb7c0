from __future__ import annotations

from mc_agent.goals import GoalStatus, GoalTracker


def test_main_goal_progress_follows_subgoals() -> None:
    tracker = GoalTracker()
    main_id = tracker.set_main_goal("Build a base")
    gather = tracker.add_sub_goal("Gather wood")
    craft = tracker.add_sub_goal("Craft tools")

    tracker.update_goal_progress(gather, 40)
    tracker.update_goal_progress(craft, 60)
    assert tracker.find_goal(main_id).progress == 50

    assert tracker.complete_goal(gather) is True
    assert tracker.find_goal(main_id).progress == 80


def test_progress_is_clamped() -> None:
    tracker = GoalTracker()
    goal_id = tracker.add_sub_goal("Mine iron")

    tracker.update_goal_progress(goal_id, 150)
    assert tracker.find_goal(goal_id).progress == 100

    tracker.update_goal_progress(goal_id, -20)
    assert tracker.find_goal(goal_id).progress == 0


def test_zero_subgoals_leave_main_progress_under_caller_control() -> None:
    tracker = GoalTracker()
    main_id = tracker.set_main_goal("Explore")

    tracker.update_goal_progress(main_id, 35)

    assert tracker.find_goal(main_id).progress == 35


def test_all_subgoals_failed_forces_main_progress_to_full() -> None:
    tracker = GoalTracker()
    main_id = tracker.set_main_goal("Find diamonds")
    first = tracker.add_sub_goal("Dig down")
    second = tracker.add_sub_goal("Strip mine")

    tracker.fail_goal(first, "lava")
    tracker.fail_goal(second, "lava")

    assert tracker.find_goal(main_id).progress == 100
    assert len(tracker.failed_goals) == 2
    assert tracker.failed_goals[0].failure_reason == "lava"


def test_can_start_goal_is_fail_closed() -> None:
    tracker = GoalTracker()
    wood = tracker.add_sub_goal("Gather wood")
    planks = tracker.add_sub_goal("Craft planks", prerequisites=[wood])
    ghost = tracker.add_sub_goal("Haunted", dependencies=["subgoal_missing"])

    assert tracker.can_start_goal(wood) is True
    assert tracker.can_start_goal(planks) is False
    assert tracker.get_pending_prerequisites(planks) == [wood]
    assert tracker.can_start_goal(ghost) is False
    assert tracker.get_blocking_ids(ghost) == ["subgoal_missing"]
    assert tracker.can_start_goal("subgoal_unknown") is False

    tracker.complete_goal(wood)

    assert tracker.can_start_goal(planks) is True
    assert tracker.get_pending_prerequisites(planks) == []


def test_start_goal_respects_gating() -> None:
    tracker = GoalTracker()
    wood = tracker.add_sub_goal("Gather wood")
    planks = tracker.add_sub_goal("Craft planks", prerequisites=[wood])

    assert tracker.start_goal(planks) is False
    assert tracker.find_goal(planks).status is GoalStatus.PENDING
    assert tracker.start_goal(wood) is True
    assert tracker.find_goal(wood).status is GoalStatus.ACTIVE


def test_fourth_failed_attempt_marks_goal_for_revision() -> None:
    tracker = GoalTracker()
    goal_id = tracker.add_sub_goal("Cross the ravine")

    for attempt in range(3):
        tracker.record_failed_attempt(goal_id, f"fell {attempt}")
    assert tracker.find_goal(goal_id).status is GoalStatus.PENDING
    assert tracker.strategy_adaptations == []

    tracker.record_failed_attempt(goal_id, "fell again")

    goal = tracker.find_goal(goal_id)
    assert goal.status is GoalStatus.NEEDS_REVISION
    assert goal.attempts == 4
    assert goal.last_attempt.reason == "fell again"
    assert [entry.goal_id for entry in tracker.strategy_adaptations] == [goal_id]
    assert tracker.strategy_adaptations[0].previous_attempts == 4


def test_completed_goals_are_snapshotted_and_never_reopened() -> None:
    tracker = GoalTracker()
    goal_id = tracker.add_sub_goal("Smelt iron")
    tracker.update_goal_progress(goal_id, 30)

    assert tracker.complete_goal(goal_id) is True
    assert tracker.complete_goal(goal_id) is False
    assert tracker.fail_goal(goal_id) is False
    assert tracker.find_goal(goal_id) is None
    assert tracker.sub_goals == []
    assert tracker.completed_goals[0].id == goal_id
    assert tracker.completed_goals[0].status is GoalStatus.COMPLETED
    assert tracker.completed_goals[0].completed_at is not None


def test_main_goal_can_be_completed_in_place() -> None:
    tracker = GoalTracker()
    main_id = tracker.set_main_goal("Build a base")

    assert tracker.complete_goal(main_id) is True
    assert tracker.main_goal.status is GoalStatus.COMPLETED
    assert tracker.start_goal(main_id) is False


def test_unknown_ids_are_no_ops() -> None:
    tracker = GoalTracker()

    assert tracker.update_goal_progress("nope", 50) is False
    assert tracker.record_failed_attempt("nope", "reason") is False
    assert tracker.complete_goal("nope") is False
    assert tracker.fail_goal("nope") is False
    assert tracker.get_blocking_ids("nope") == []


def test_goal_summary() -> None:
    tracker = GoalTracker()
    assert tracker.get_goal_summary().main_goal is None

    tracker.set_main_goal("Build a base")
    done = tracker.add_sub_goal("Gather wood")
    tracker.add_sub_goal("Craft tools")
    tracker.complete_goal(done)

    summary = tracker.get_goal_summary()

    assert summary.main_goal.description == "Build a base"
    assert summary.main_goal.status == "active"
    assert summary.main_goal.progress == 50
    assert [goal.description for goal in summary.active_sub_goals] == ["Craft tools"]
    assert summary.completed_count == 1
    assert summary.failed_count == 0
    assert summary.adaptation_count == 0


def test_new_main_goal_ignores_subgoals_retired_under_previous_plan() -> None:
    tracker = GoalTracker()
    tracker.set_main_goal("Old plan")
    tracker.complete_goal(tracker.add_sub_goal("Old step"))

    main_id = tracker.set_main_goal("New plan")
    tracker.add_sub_goal("New step")

    assert tracker.find_goal(main_id).progress == 0
    assert len(tracker.completed_goals) == 1


def test_completed_main_goal_is_not_counted_as_a_subgoal() -> None:
    tracker = GoalTracker()
    first = tracker.set_main_goal("First")
    tracker.complete_goal(first)

    second = tracker.set_main_goal("Second")
    tracker.add_sub_goal("Only step")

    assert tracker.find_goal(second).progress == 0
