import pytest

from artifact_store import ArtifactNotFound, ArtifactStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_put_then_get_returns_exact_content() -> None:
    store = ArtifactStore()
    store.put("x.csv", "a,b\n1,2")

    assert store.get("x.csv") == "a,b\n1,2"
    assert "x.csv" in store
    assert len(store) == 1


def test_get_unknown_name_raises_not_found() -> None:
    store = ArtifactStore()
    store.put("x.csv", "a,b\n1,2")

    with pytest.raises(ArtifactNotFound):
        store.get("y.csv")


def test_reads_do_not_consume_the_entry() -> None:
    store = ArtifactStore()
    store.put("x.csv", "a")

    assert store.get("x.csv") == "a"
    assert store.get("x.csv") == "a"


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    store = ArtifactStore(ttl_seconds=60, timer=clock)
    store.put("x.csv", "a")

    clock.now = 59
    assert store.get("x.csv") == "a"

    clock.now = 61
    with pytest.raises(ArtifactNotFound):
        store.get("x.csv")
    assert len(store) == 0


def test_oldest_entry_is_dropped_when_full() -> None:
    store = ArtifactStore(max_entries=2)
    store.put("a.csv", "a")
    store.put("b.csv", "b")
    store.put("c.csv", "c")

    assert "a.csv" not in store
    assert store.get("c.csv") == "c"


def test_delete_is_idempotent() -> None:
    store = ArtifactStore()
    store.put("x.csv", "a")

    store.delete("x.csv")
    store.delete("x.csv")

    assert "x.csv" not in store
