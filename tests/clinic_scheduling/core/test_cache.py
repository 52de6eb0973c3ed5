from clinic_scheduling.core.cache import CLINIC_SETTINGS, PRACTITIONER_AVAILABILITY, SchedulingCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_cache_returns_value_until_ttl_expires() -> None:
    clock = FakeClock()
    cache = SchedulingCache(default_ttl=60, clock=clock)
    cache.set((CLINIC_SETTINGS, 'clinic'), {'open': True})

    clock.now += 59
    assert cache.get((CLINIC_SETTINGS, 'clinic')) == {'open': True}

    clock.now += 1
    assert cache.get((CLINIC_SETTINGS, 'clinic')) is None
    assert len(cache) == 0


def test_cache_per_entry_ttl_overrides_default() -> None:
    clock = FakeClock()
    cache = SchedulingCache(default_ttl=60, clock=clock)
    cache.set((PRACTITIONER_AVAILABILITY, '7'), 'week', ttl=5)

    clock.now += 6

    assert cache.get((PRACTITIONER_AVAILABILITY, '7'), 'missing') == 'missing'


def test_cache_can_store_none() -> None:
    cache = SchedulingCache()
    marker = object()
    cache.set((PRACTITIONER_AVAILABILITY, '7'), None)

    assert cache.get((PRACTITIONER_AVAILABILITY, '7'), marker) is None


def test_invalidate_type_drops_only_that_type_and_notifies() -> None:
    cache = SchedulingCache()
    notifications = []
    cache.subscribe(lambda kind, key: notifications.append((kind, key)))
    cache.set((PRACTITIONER_AVAILABILITY, '7'), 'a')
    cache.set((PRACTITIONER_AVAILABILITY, '8'), 'b')
    cache.set((CLINIC_SETTINGS, 'clinic'), 'c')

    cache.invalidate_type(PRACTITIONER_AVAILABILITY)
    cache.invalidate((CLINIC_SETTINGS, 'clinic'))

    assert len(cache) == 0
    assert notifications == [
        (PRACTITIONER_AVAILABILITY, None),
        (CLINIC_SETTINGS, (CLINIC_SETTINGS, 'clinic')),
    ]


def test_clear_empties_cache() -> None:
    cache = SchedulingCache()
    cache.set((CLINIC_SETTINGS, 'clinic'), 'c')

    cache.clear()

    assert cache.get((CLINIC_SETTINGS, 'clinic')) is None
