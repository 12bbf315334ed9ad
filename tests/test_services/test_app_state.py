"""
Tests for AppState: session handling, guarded actions and derived views.

Includes the end-to-end weekly scenario: log an activity mid-week, run the
Monday sweep, and check it does not run twice.
"""

import asyncio
from datetime import datetime

import pytest

from sportstracker.domain.errors import NotAuthorized, ValidationError
from sportstracker.models.entities import FORFEIT_ACTIVITY_TYPE_ID, GoalStatus
from sportstracker.services.accountability_app import AccountabilityAppService
from sportstracker.services.app_state import AppState


@pytest.fixture
def state(data_service, clock):
    return AppState(data_service, clock=clock, poll_interval=0.01)


async def _coach_and_member(state):
    """Sign up a coach and a member; leaves the member logged in."""
    assert await state.signup("Coach", "pw", is_coach=True)
    coach = state.current_user
    assert await state.signup("Alice", "pw")
    return coach, state.current_user


class TestSession:
    async def test_signup_logs_in(self, state, data_service):
        assert await state.signup("Alice", "pw")

        assert state.current_user.username == "Alice"
        assert await data_service.get_session() == state.current_user
        assert [u.username for u in state.users] == ["Alice"]

    async def test_duplicate_signup_returns_false(self, state):
        await state.signup("Alice", "pw")
        await state.logout()

        assert await state.signup("ALICE", "other") is False
        assert state.current_user is None

    async def test_second_coach_signup_returns_false(self, state):
        assert await state.signup("Coach", "pw", is_coach=True)
        assert await state.signup("Coach2", "pw", is_coach=True) is False

    async def test_login_and_logout(self, state, data_service):
        await state.signup("Alice", "pw")
        await state.logout()

        assert state.current_user is None
        assert await data_service.get_session() is None

        assert await state.login("alice", "pw")
        assert state.current_user.username == "Alice"

    async def test_bad_login(self, state):
        await state.signup("Alice", "pw")
        await state.logout()
        assert await state.login("Alice", "wrong") is False
        assert state.current_user is None

    async def test_start_restores_session(self, data_service, clock):
        first = AppState(data_service, clock=clock)
        await first.signup("Alice", "pw")

        second = AppState(data_service, clock=clock)
        await second.start()

        assert second.current_user == first.current_user
        assert len(second.activity_types) == 5
        assert second.settings.weekly_goal_minutes == 60

    async def test_refresh_noop_when_logged_out(self, state, data_service):
        await data_service.add_user("Alice", "pw")
        await state.refresh()
        assert state.users == []


class TestGuards:
    async def test_actions_require_login(self, state):
        with pytest.raises(NotAuthorized):
            await state.add_activity("1", 30)
        with pytest.raises(NotAuthorized):
            await state.send_message("hello")
        with pytest.raises(NotAuthorized):
            await state.give_up_week()

    async def test_coach_actions_rejected_for_member(self, state):
        await _coach_and_member(state)

        with pytest.raises(NotAuthorized):
            await state.update_settings(90, 10)
        with pytest.raises(NotAuthorized):
            await state.update_user_penalty(state.current_user.id, 0)
        with pytest.raises(NotAuthorized):
            await state.generate_coach_tip("sleep")

    @pytest.mark.parametrize(
        "type_id,duration",
        [("", 30), ("1", 0), ("1", -10), (FORFEIT_ACTIVITY_TYPE_ID, 30)],
    )
    async def test_invalid_activity_rejected(self, state, type_id, duration):
        await state.signup("Alice", "pw")
        with pytest.raises(ValidationError):
            await state.add_activity(type_id, duration)
        assert state.activities == []

    async def test_blank_message_rejected(self, state):
        await state.signup("Alice", "pw")
        with pytest.raises(ValidationError):
            await state.send_message("   ")


class TestWeeklyScenario:
    async def test_log_then_monday_sweep_once(self, state, clock):
        await state.signup("Alice", "pw")

        await state.add_activity("1", 30, comment=" Easy jog ")
        summary = state.current_user_summary
        assert summary.total_minutes == 30
        assert summary.status is GoalStatus.PENDING
        assert state.activities[0].comment == "Easy jog"

        clock.set(datetime(2024, 3, 25, 9, 0))
        assert await state.run_penalty_check() == "2024-03-18"
        assert state.current_user.cumulative_penalty == 5
        assert state.penalty_pot == 5

        clock.advance(hours=3)
        assert await state.run_penalty_check() is None
        await state.refresh()
        assert state.current_user.cumulative_penalty == 5

    async def test_give_up_then_reach_goal(self, state):
        await state.signup("Alice", "pw")

        await state.give_up_week()
        assert state.current_user.cumulative_penalty == 5
        assert state.current_user_summary.status is GoalStatus.FAILED

        await state.add_activity("1", 60)
        assert state.current_user_summary.status is GoalStatus.ACHIEVED
        assert state.current_user_summary.total_minutes == 60

    async def test_leaderboard_ranks_by_minutes(self, state):
        coach, alice = await _coach_and_member(state)
        await state.add_activity("2", 45)
        await state.logout()
        await state.login("Coach", "pw")
        await state.add_activity("3", 90)

        assert [s.username for s in state.leaderboard] == ["Coach", "Alice"]

    async def test_last_week_not_in_current_views(self, state, clock):
        await state.signup("Alice", "pw")
        await state.add_activity("1", 90)

        clock.set(datetime(2024, 3, 26, 10, 0))
        await state.refresh()

        assert state.week_activities == []
        assert state.current_user_summary.total_minutes == 0
        assert [h.week_id for h in state.history] == ["2024-03-18"]
        assert state.history[0].goal_met is True

    async def test_sunday_reminder(self, state, clock):
        await state.signup("Alice", "pw")
        clock.set(datetime(2024, 3, 24, 19, 0))
        assert state.show_reminder is True

        await state.add_activity("5", 60)
        assert state.show_reminder is False


class TestGiveUpWeek:
    async def test_charges_only_logged_in_user(self, state):
        await state.signup("Bob", "pw")
        bob = state.current_user
        await state.logout()
        await state.signup("Alice", "pw")

        with pytest.raises(TypeError):
            await state.give_up_week(bob.id)
        await state.give_up_week()

        penalties = {u.username: u.cumulative_penalty for u in state.users}
        assert penalties == {"Bob": 0, "Alice": 5}

    async def test_second_give_up_rejected(self, state):
        await state.signup("Alice", "pw")
        await state.give_up_week()

        with pytest.raises(ValidationError):
            await state.give_up_week()

        assert state.current_user.cumulative_penalty == 5
        assert sum(1 for a in state.activities if a.is_forfeit) == 1

    async def test_give_up_after_goal_met_rejected(self, state):
        await state.signup("Alice", "pw")
        await state.add_activity("1", 75)

        with pytest.raises(ValidationError):
            await state.give_up_week()

        assert state.current_user.cumulative_penalty == 0
        assert state.current_user_summary.status is GoalStatus.ACHIEVED


class TestCoachActions:
    async def test_update_settings_changes_goal(self, state):
        await state.signup("Coach", "pw", is_coach=True)
        await state.add_activity("1", 40)

        await state.update_settings(30, 2)

        assert state.settings.weekly_goal_minutes == 30
        assert state.current_user_summary.status is GoalStatus.ACHIEVED

    async def test_update_user_penalty(self, state):
        coach, alice = await _coach_and_member(state)
        await state.give_up_week()
        await state.logout()
        await state.login("Coach", "pw")

        await state.update_user_penalty(alice.id, 0)

        assert next(u for u in state.users if u.id == alice.id).cumulative_penalty == 0

    async def test_generate_coach_tip(self, state):
        await state.signup("Coach", "pw", is_coach=True)

        tip = await state.generate_coach_tip("hydration")

        assert tip == "Keep moving, team!"
        assert state.coach_tip == tip
        assert state.loading_tip is False

    async def test_tip_topic_required(self, state):
        await state.signup("Coach", "pw", is_coach=True)
        with pytest.raises(ValidationError):
            await state.generate_coach_tip("  ")


class TestChatAndPolling:
    async def test_messages_sorted_by_timestamp(self, state, data_service, clock):
        await state.signup("Alice", "pw")
        clock.advance(minutes=10)
        await data_service.add_message("x", "Bob", "later")
        clock.set(datetime(2024, 3, 19, 9, 0))
        await data_service.add_message("x", "Bob", "earlier")
        clock.set(datetime(2024, 3, 19, 9, 30))

        await state.send_message(" hi ")

        assert [m.message for m in state.chat_messages] == ["earlier", "hi", "later"]

    async def test_polling_picks_up_external_writes(self, state, data_service):
        await state.signup("Alice", "pw")
        await data_service.add_user("Bob", "pw")
        state.start_polling()
        assert state.is_polling
        try:
            for _ in range(50):
                if len(state.users) == 2:
                    break
                await asyncio.sleep(0.01)
            assert len(state.users) == 2
        finally:
            await state.stop_polling()

        assert not state.is_polling

    async def test_penalty_event_triggers_refresh(self, data_service, clock):
        engine = AccountabilityAppService(data_service)
        state = AppState(data_service, accountability=engine, clock=clock)
        await state.signup("Alice", "pw")
        alice = state.current_user

        clock.set(datetime(2024, 3, 25, 9, 0))
        # Sweep through the engine directly; AppState reacts to the event
        await engine.apply_weekly_penalties(clock())

        assert state.current_user.id == alice.id
        assert state.current_user.cumulative_penalty == 5
