from __future__ import annotations

from remote_shell.browser.status import AutomationStatus, AutomationStatusStore, Status


def test_every_mutation_notifies_observers() -> None:
    events: list[tuple[int, AutomationStatus | None]] = []
    store = AutomationStatusStore([lambda tab_id, st: events.append((tab_id, st))])

    store.set_status(1, Status.IN_PROGRESS, "Filling form")
    store.set_status(1, "success")
    assert store.clear(1) is True
    assert store.clear(1) is False

    assert [(tab_id, st.status if st else None) for tab_id, st in events] == [
        (1, Status.IN_PROGRESS),
        (1, Status.SUCCESS),
        (1, None),
    ]
    assert events[0][1].visible is True
    assert events[1][1].visible is False


def test_clear_all_notifies_each_tab() -> None:
    cleared: list[int] = []
    store = AutomationStatusStore()
    store.add_observer(lambda tab_id, st: cleared.append(tab_id) if st is None else None)
    store.set_status(0, Status.IN_PROGRESS)
    store.set_status(3, Status.FAILED, "Timed out")

    assert store.clear_all() == 2
    assert sorted(cleared) == [0, 3]
    assert store.snapshot() == {}


def test_observer_failure_does_not_break_store() -> None:
    seen: list[int] = []

    def _broken(tab_id: int, st: AutomationStatus | None) -> None:
        raise RuntimeError("overlay crashed")

    store = AutomationStatusStore([_broken, lambda tab_id, st: seen.append(tab_id)])
    store.set_status(5, Status.IN_PROGRESS)
    assert store.get_status(5) is not None
    assert seen == [5]


def test_animation_frames_drive_status() -> None:
    store = AutomationStatusStore(tab_exists=lambda tab_id: tab_id == 2)

    st = store.apply_animation({"type": "animation", "action": "in_progress", "tab_id": 2, "message": "Working"})
    assert st is not None and st.status is Status.IN_PROGRESS and st.message == "Working"

    st = store.apply_animation({"type": "animation", "action": "update", "tab_id": 2, "message": "Step 2"})
    assert st is not None and st.status is Status.IN_PROGRESS and st.message == "Step 2"

    st = store.apply_animation({"type": "animation", "action": "success", "tab_id": 2})
    assert st is not None and st.status is Status.SUCCESS and st.visible is False

    st = store.apply_animation({"type": "animation", "action": "failed", "tab_id": 2, "message": "Oops"})
    assert st is not None and st.status is Status.FAILED
    assert st.to_dict() == {"tab_id": 2, "status": "failed", "visible": False, "message": "Oops"}


def test_update_without_entry_starts_in_progress() -> None:
    store = AutomationStatusStore()
    st = store.apply_animation({"type": "animation", "action": "update", "tab_id": 7, "message": "hi"})
    assert st is not None and st.status is Status.IN_PROGRESS


def test_invalid_or_unknown_animation_frames_are_ignored() -> None:
    store = AutomationStatusStore(tab_exists=lambda tab_id: False)
    assert store.apply_animation({"type": "animation", "action": "in_progress", "tab_id": 9}) is None
    assert store.apply_animation({"type": "animation", "action": "in_progress", "tab_id": "9"}) is None
    assert store.apply_animation({"type": "animation", "action": "in_progress", "tab_id": True}) is None

    store.set_tab_exists(None)
    assert store.apply_animation({"type": "animation", "action": "sparkle", "tab_id": 9}) is None
    assert store.snapshot() == {}
