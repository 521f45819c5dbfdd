"""
Tests for the actuation supervisor drive lock
"""

import asyncio
import random

import pytest

from opennova.schemas import Goal, Vec3
from opennova.supervisor import ActuationSupervisor, Priority

from mocks import settle


def test_acquire_free_lock(supervisor):
    assert supervisor.acquire("miner", Priority.TASK)
    assert supervisor.holder == "miner"
    assert supervisor.holder_priority == Priority.TASK
    assert supervisor.holds("miner")


def test_equal_or_lower_priority_is_refused(supervisor):
    supervisor.acquire("miner", Priority.TASK)

    assert not supervisor.acquire("crafting", Priority.TASK)
    assert not supervisor.acquire("pathfinder", Priority.NAVIGATION)
    assert supervisor.holder == "miner"


def test_reacquire_by_holder_raises_priority(supervisor):
    supervisor.acquire("combat", Priority.TASK)

    assert supervisor.acquire("combat", Priority.GUARD)
    assert supervisor.holder_priority == Priority.GUARD

    # Re-acquiring lower keeps the higher priority
    assert supervisor.acquire("combat", Priority.TASK)
    assert supervisor.holder_priority == Priority.GUARD


def test_higher_priority_preempts_holder(supervisor):
    preempted = []
    supervisor.acquire("miner", Priority.TASK, on_preempt=lambda: preempted.append("miner"))
    supervisor.set_goal("miner", Goal.near_point(Vec3.of(1, 2, 3)))

    assert supervisor.acquire("combat.flee", Priority.FLEE)

    assert preempted == ["miner"]
    assert supervisor.holder == "combat.flee"
    assert supervisor.was_preempted("miner")
    assert supervisor.current_goal() is None


def test_preempted_flag_cleared_on_next_grant(supervisor):
    supervisor.acquire("miner", Priority.TASK)
    supervisor.acquire("combat", Priority.GUARD)
    supervisor.release("combat")

    assert supervisor.acquire("miner", Priority.TASK)
    assert not supervisor.was_preempted("miner")


def test_release_by_non_holder_is_noop(supervisor):
    supervisor.acquire("miner", Priority.TASK)

    supervisor.release("crafting")
    assert supervisor.holder == "miner"

    supervisor.release("miner")
    supervisor.release("miner")
    assert supervisor.holder is None


def test_only_holder_may_set_goal(supervisor):
    goal = Goal.near_point(Vec3.of(0, 64, 0), 2)
    supervisor.acquire("pathfinder", Priority.NAVIGATION)

    assert not supervisor.set_goal("miner", goal)
    assert supervisor.current_goal() is None

    assert supervisor.set_goal("pathfinder", goal, dynamic=False)
    assert supervisor.current_goal() == goal
    assert not supervisor.goal_dynamic


def test_release_clears_goal(supervisor):
    supervisor.acquire("pathfinder", Priority.NAVIGATION)
    supervisor.set_goal("pathfinder", Goal.near_point(Vec3.of(0, 0, 0)))

    supervisor.release("pathfinder")

    assert supervisor.current_goal() is None


def test_at_most_one_holder_under_random_requests():
    supervisor = ActuationSupervisor()
    skills = ["pathfinder", "combat", "miner", "crafting", "storage"]
    rng = random.Random(7)

    for _ in range(500):
        skill = rng.choice(skills)
        if rng.random() < 0.6:
            supervisor.acquire(skill, rng.choice(list(Priority)))
        else:
            supervisor.release(skill)
        holders = [s for s in skills if supervisor.holds(s)]
        assert len(holders) <= 1


@pytest.mark.asyncio
async def test_waiters_served_by_priority_then_arrival(supervisor):
    supervisor.acquire("holder", Priority.FLEE)
    granted = []

    async def wait(skill_id, priority):
        assert await supervisor.acquire_wait(skill_id, priority)
        granted.append(skill_id)

    tasks = [
        asyncio.create_task(wait("low", Priority.NAVIGATION)),
        asyncio.create_task(wait("first", Priority.TASK)),
        asyncio.create_task(wait("second", Priority.TASK)),
    ]
    await settle(lambda: supervisor.waiting == 3)
    assert supervisor.waiting == 3

    for n, expected in enumerate(("first", "second", "low"), start=1):
        supervisor.release(supervisor.holder)
        await settle(lambda: len(granted) == n)
        assert granted[-1] == expected
        assert supervisor.holder == expected

    await asyncio.gather(*tasks)


@pytest.mark.asyncio
async def test_acquire_wait_times_out(supervisor):
    supervisor.acquire("holder", Priority.TASK)

    assert not await supervisor.acquire_wait("miner", Priority.TASK, timeout=0.01)
    assert supervisor.waiting == 0

    supervisor.release("holder")
    assert supervisor.holder is None


@pytest.mark.asyncio
async def test_cancelled_waiter_is_skipped(supervisor):
    supervisor.acquire("holder", Priority.TASK)
    cancelled = asyncio.create_task(supervisor.acquire_wait("miner", Priority.TASK))
    waiting = asyncio.create_task(supervisor.acquire_wait("crafting", Priority.NAVIGATION))
    await settle(lambda: supervisor.waiting == 2)

    cancelled.cancel()
    with pytest.raises(asyncio.CancelledError):
        await cancelled

    supervisor.release("holder")
    assert await waiting
    assert supervisor.holder == "crafting"


@pytest.mark.asyncio
async def test_acquire_wait_grants_immediately_when_free(supervisor):
    assert await supervisor.acquire_wait("miner", Priority.TASK)
    assert supervisor.holds("miner")
