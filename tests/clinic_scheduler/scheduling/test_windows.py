import pytest

from clinic_scheduler.core.errors import InvalidWindow, NotFound, WindowConflict
from clinic_scheduler.models.enums import Modality
from clinic_scheduler.scheduling.windows import WindowStore

MONDAY = 1
TUESDAY = 2


def test_save_creates_active_window(db) -> None:
    window = WindowStore(db).save(MONDAY, Modality.ON_SITE, 540, 1020, 60, actor='admin@example.com')

    assert window.id is not None
    assert window.active is True
    assert (window.start_minute, window.end_minute, window.slot_interval_minutes) == (540, 1020, 60)
    assert window.created_by == 'admin@example.com'


def test_save_replaces_existing_window_for_same_day_and_modality(db) -> None:
    store = WindowStore(db)
    first = store.save(MONDAY, Modality.ONLINE, 540, 720, 30)
    second = store.save(MONDAY, Modality.ONLINE, 600, 900, 30)

    assert second.id == first.id
    assert (second.start_minute, second.end_minute) == (600, 900)
    assert len(store.list_windows()) == 1


def test_save_uses_default_interval_when_missing(db) -> None:
    window = WindowStore(db).save(MONDAY, Modality.ONLINE, 540, 720)

    assert window.slot_interval_minutes == 30


def test_day_can_only_be_open_for_one_modality(db) -> None:
    store = WindowStore(db)
    store.save(MONDAY, Modality.ON_SITE, 540, 1020, 60)

    with pytest.raises(WindowConflict) as exception_info:
        store.save(MONDAY, Modality.ONLINE, 540, 1020, 30)

    assert exception_info.value.context['active_modality'] == 'on-site'
    assert [window.modality for window in store.list_windows()] == ['on-site']


def test_deactivated_window_reopens_the_day_for_the_other_modality(db) -> None:
    store = WindowStore(db)
    on_site = store.save(MONDAY, Modality.ON_SITE, 540, 1020, 60)
    store.deactivate(on_site.id)

    online = store.save(MONDAY, Modality.ONLINE, 540, 1020, 30)

    assert online.active is True
    assert store.active_modalities()[MONDAY] is Modality.ONLINE

    with pytest.raises(WindowConflict):
        store.update(on_site.id, active=True)


def test_update_rejects_moving_onto_existing_day_and_modality(db) -> None:
    store = WindowStore(db)
    store.save(MONDAY, Modality.ONLINE, 540, 720, 30)
    tuesday = store.save(TUESDAY, Modality.ONLINE, 540, 720, 30)

    with pytest.raises(WindowConflict):
        store.update(tuesday.id, day_of_week=MONDAY)


def test_update_changes_hours(db) -> None:
    store = WindowStore(db)
    window = store.save(TUESDAY, Modality.ONLINE, 540, 720, 30)

    updated = store.update(window.id, start_minute=480, end_minute=600, actor='admin@example.com')

    assert (updated.start_minute, updated.end_minute) == (480, 600)
    assert updated.updated_by == 'admin@example.com'


@pytest.mark.parametrize(
    ('day', 'start', 'end', 'interval'),
    [
        (7, 540, 600, 30),
        (-1, 540, 600, 30),
        (MONDAY, 600, 540, 30),
        (MONDAY, 600, 600, 30),
        (MONDAY, 540, 1500, 30),
        (MONDAY, 540, 600, 0),
        (MONDAY, 540, 600, 90),
    ],
)
def test_save_rejects_invalid_windows(db, day: int, start: int, end: int, interval: int) -> None:
    with pytest.raises(InvalidWindow):
        WindowStore(db).save(day, Modality.ONLINE, start, end, interval)


def test_active_modalities_maps_every_day(db) -> None:
    store = WindowStore(db)
    store.save(MONDAY, Modality.ON_SITE, 540, 1020, 60)
    store.save(TUESDAY, Modality.ONLINE, 540, 1020, 30)

    modalities = store.active_modalities()

    assert set(modalities) == set(range(7))
    assert modalities[MONDAY] is Modality.ON_SITE
    assert modalities[TUESDAY] is Modality.ONLINE
    assert modalities[0] is None


def test_delete_and_missing_window(db) -> None:
    store = WindowStore(db)
    window = store.save(MONDAY, Modality.ONLINE, 540, 720, 30)

    store.delete(window.id)

    assert store.list_windows() == []
    with pytest.raises(NotFound):
        store.get(window.id)
