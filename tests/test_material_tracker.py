"""Tests for scoped material tracking and the single-tracker slot."""
import pytest

from learning_client.models.learning import Material, MaterialKind
from learning_client.services.tracking import (
    ACTIVITY_EVENTS,
    ActivityMonitor,
    EventSource,
    MaterialTracker,
    ScrollableContent,
    TrackingSlot,
)

READING = Material(id="m-reading", kind=MaterialKind.HTML, contentHtml="<p>Duration</p>")
LECTURE = Material(id="m-lecture", kind=MaterialKind.VIDEO, url="https://cdn.example/duration.mp4")


def make_tracker(api, clock, material, events=None, activity=None):
    content = ScrollableContent(0, 400, 1000)
    return MaterialTracker(
        api=api,
        material=material,
        element_provider=lambda: content,
        events=events if events is not None else EventSource(),
        activity=activity,
        heartbeat_sec=10,
        clock=clock,
    )


@pytest.mark.integration
class TestMaterialTracker:

    @pytest.mark.asyncio
    async def test_start_and_stop_manage_listeners_and_timer(self, api, clock):
        events = EventSource()
        tracker = make_tracker(api, clock, READING, events)

        tracker.start()
        assert tracker.active
        assert tracker.emitter.running
        assert events.listener_count() == len(ACTIVITY_EVENTS)

        tracker.stop()
        assert not tracker.active
        assert not tracker.emitter.running
        assert events.listener_count() == 0
        assert not tracker.visibility.is_visible

    @pytest.mark.asyncio
    async def test_stop_twice_is_harmless(self, api, clock):
        tracker = make_tracker(api, clock, READING)
        tracker.start()
        tracker.stop()
        tracker.stop()
        assert not tracker.active

    @pytest.mark.asyncio
    async def test_context_exit_cleans_up_after_error(self, api, clock):
        events = EventSource()
        tracker = make_tracker(api, clock, READING, events)
        with pytest.raises(RuntimeError):
            async with tracker:
                assert tracker.emitter.running
                raise RuntimeError("view crashed")
        assert not tracker.emitter.running
        assert events.listener_count() == 0

    @pytest.mark.asyncio
    async def test_context_exit_waits_for_inflight_send(self, api, backend, clock):
        async with make_tracker(api, clock, READING) as tracker:
            tracker.visibility.observe(1.0)
            clock.advance_sec(10)
            assert tracker.emitter.tick() is not None
        assert len(backend.heartbeats) == 1
        assert backend.heartbeats[0][0] == "m-reading"

    @pytest.mark.asyncio
    async def test_user_events_keep_tracker_active(self, api, backend, clock):
        events = EventSource()
        tracker = make_tracker(api, clock, READING, events)
        tracker.start()
        tracker.visibility.observe(1.0)
        clock.advance_sec(14)
        events.dispatch("wheel")
        clock.advance_sec(14)
        assert tracker.emitter.tick() is not None
        tracker.stop()
        await tracker.emitter.drain()

    @pytest.mark.asyncio
    async def test_restart_restores_visibility_updates(self, api, clock):
        tracker = make_tracker(api, clock, READING)
        tracker.start()
        tracker.stop()
        tracker.start()
        tracker.visibility.observe(0.6)
        assert tracker.visibility.is_visible
        tracker.stop()

    @pytest.mark.asyncio
    async def test_fresh_sample_per_tracker(self, api, clock):
        first = make_tracker(api, clock, READING)
        first.estimator.html_depth(ScrollableContent(600, 400, 1000))
        second = make_tracker(api, clock, READING)
        assert second.sample.max_depth == 0.0
        assert second.sample is not first.sample


@pytest.mark.integration
class TestTrackingSlot:

    @pytest.mark.asyncio
    async def test_replace_stops_previous_before_starting_next(self, api, clock):
        slot = TrackingSlot()
        old_events, new_events = EventSource(), EventSource()
        old = make_tracker(api, clock, READING, old_events)
        new = make_tracker(api, clock, LECTURE, new_events)

        assert slot.replace(old) is None
        assert old.emitter.running

        assert slot.replace(new) is old
        assert not old.emitter.running
        assert old_events.listener_count() == 0
        assert new.emitter.running
        assert slot.current is new

        assert slot.clear() is new
        assert slot.current is None
        assert not new.emitter.running


@pytest.mark.integration
class TestSharedActivityMonitor:

    @pytest.mark.asyncio
    async def test_tracker_leaves_borrowed_monitor_attached(self, api, clock):
        events = EventSource()
        activity = ActivityMonitor(clock=clock)
        activity.attach(events)
        tracker = make_tracker(api, clock, READING, events=EventSource(), activity=activity)

        tracker.start()
        assert not tracker.owns_activity
        assert tracker.activity is activity
        tracker.stop()
        assert activity.attached
        assert events.listener_count() == len(ACTIVITY_EVENTS)

    @pytest.mark.asyncio
    async def test_idle_time_survives_material_switch(self, api, backend, clock):
        events = EventSource()
        activity = ActivityMonitor(clock=clock)
        activity.attach(events)
        slot = TrackingSlot()

        slot.replace(make_tracker(api, clock, READING, activity=activity))
        clock.advance_sec(20)

        second = make_tracker(api, clock, READING, activity=activity)
        slot.replace(second)
        second.visibility.observe(1.0)
        clock.advance_sec(10)
        assert second.emitter.tick() is None

        events.dispatch("keydown")
        clock.advance_sec(5)
        assert second.emitter.tick() is not None
        slot.clear()
        await second.emitter.drain()
        assert [body["deltaSec"] for _, body in backend.heartbeats] == [10]
