import threading

from nsems.models.schemas import HolderExport, HolderInfo


def _generation(gen: str, count: int = 20):
    return [
        HolderExport(
            identifier=f"H-{i}",
            secret=f"secret-{gen}-{i}",
            status="active",
            name=f"name-{gen}-{i}",
            year=1 if gen == "a" else 2,
        )
        for i in range(count)
    ]


def test_refresh_all_replaces_everything(device):
    cache = device.cache
    cache.refresh_all(_generation("a"))
    cache.refresh_all(_generation("b", count=5))
    assert cache.count() == 5
    assert cache.get("H-10") is None
    entry = cache.get("H-3")
    assert entry.secret == "secret-b-3"
    assert entry.cachedAt == device.cache.clock()
    assert cache.refreshed_at() == device.cache.clock()


def test_put_upserts_and_keeps_secret_when_absent(device):
    cache = device.cache
    cache.put(HolderExport(identifier="H-1", secret="s1", status="active", name="Old"))
    merged = cache.put(HolderInfo(identifier="H-1", status="suspended", name="New"))
    assert merged.secret == "s1"
    entry = cache.get("H-1")
    assert (entry.status, entry.name, entry.secret) == ("suspended", "New", "s1")
    assert cache.count() == 1


def test_get_missing_returns_none(device):
    assert device.cache.get("nobody") is None


def test_secret_is_not_in_repr(device):
    entry = device.cache.put(HolderExport(identifier="H-1", secret="top-secret", status="active"))
    assert "top-secret" not in repr(entry)
    assert "secret" not in entry.to_holder_info().model_dump()


def test_readers_never_see_a_half_refreshed_cache(device):
    cache = device.cache
    cache.refresh_all(_generation("a"))
    problems = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            entry = cache.get("H-7")
            if entry is None:
                problems.append("missing")
                continue
            gen = entry.secret.split("-")[1]
            if entry.name != f"name-{gen}-7" or entry.year != (1 if gen == "a" else 2):
                problems.append(("mixed record", entry))
            gens = {e.secret.split("-")[1] for e in cache.all()}
            if len(gens) != 1:
                problems.append(("mixed set", gens))

    threads = [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    try:
        for i in range(30):
            cache.refresh_all(_generation("b" if i % 2 == 0 else "a"))
    finally:
        stop.set()
        for t in threads:
            t.join()

    assert problems == []
