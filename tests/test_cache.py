from __future__ import annotations

import json
from pathlib import Path

import pytest

from storage import EphemeralResultCache, JsonFileResultCache, get_result_cache


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_entry_is_served_until_ttl_then_absent() -> None:
    clock = FakeClock(0.0)
    cache = EphemeralResultCache(ttl=300, clock=clock)
    jobs = [{"title": "Backend Engineer"}]

    cache.put("jobs", jobs)

    clock.now = 4 * 60 + 59
    assert cache.get("jobs") == jobs

    clock.now = 5 * 60 + 1
    assert cache.get("jobs") is None
    assert cache.size() == 0


def test_put_replaces_and_refreshes_timestamp() -> None:
    clock = FakeClock(0.0)
    cache = EphemeralResultCache(ttl=300, clock=clock)
    cache.put("jobs", ["old"])

    clock.now = 200
    cache.put("jobs", ["new"])
    clock.now = 450

    assert cache.get("jobs") == ["new"]


def test_invalidate_clear_and_exists() -> None:
    cache = EphemeralResultCache(ttl=300)
    cache.put("a", 1)
    cache.put("b", 2)

    cache.invalidate("a")
    assert cache.exists("a") is False
    assert cache.exists("b") is True

    cache.clear()
    assert cache.get("b") is None


def test_none_is_not_cacheable() -> None:
    cache = EphemeralResultCache(ttl=300)
    with pytest.raises(ValueError):
        cache.put("a", None)


def test_max_size_evicts_oldest() -> None:
    clock = FakeClock(0.0)
    cache = EphemeralResultCache(ttl=300, clock=clock, max_size=2)
    cache.put("a", 1)
    clock.now = 1
    cache.put("b", 2)
    clock.now = 2
    cache.put("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


@pytest.mark.asyncio
async def test_get_or_load_only_loads_on_miss() -> None:
    cache = EphemeralResultCache(ttl=300)
    calls = []

    async def loader():
        calls.append(1)
        return {"skills": ["python"]}

    first = await cache.get_or_load("skills", loader)
    second = await cache.get_or_load("skills", loader)

    assert first == second == {"skills": ["python"]}
    assert len(calls) == 1


def test_json_file_cache_is_shared_between_instances(tmp_path: Path) -> None:
    clock = FakeClock(1000.0)
    path = tmp_path / "cache" / "results.json"
    writer = JsonFileResultCache(str(path), ttl=300, clock=clock)
    reader = JsonFileResultCache(str(path), ttl=300, clock=clock)

    writer.put("job_search_cache", {"jobs": [], "skills": ["go"]})
    assert reader.get("job_search_cache") == {"jobs": [], "skills": ["go"]}

    clock.now = 1301
    assert reader.get("job_search_cache") is None

    reader.invalidate("job_search_cache")
    reader.clear()
    assert not path.exists()


def test_json_file_cache_tolerates_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "results.json"
    path.write_text("{broken", encoding="utf-8")

    cache = JsonFileResultCache(str(path), ttl=300)

    assert cache.get("anything") is None
    cache.put("anything", [1])
    assert cache.get("anything") == [1]


def test_factory_picks_backend_from_path(tmp_path: Path) -> None:
    assert isinstance(get_result_cache(ttl=60), EphemeralResultCache)
    assert isinstance(get_result_cache(ttl=60, path=str(tmp_path / "c.json")), JsonFileResultCache)

    with pytest.raises(ValueError):
        get_result_cache(ttl=0)


def test_json_file_cache_treats_malformed_timestamp_as_absent(tmp_path: Path) -> None:
    path = tmp_path / "results.json"
    path.write_text(
        json.dumps(
            {
                "job_search_cache:abc": {"payload": {"jobs": []}, "timestamp": "oops"},
                "job_skills": {"payload": ["go"]},
                "stray": [1, 2],
            }
        ),
        encoding="utf-8",
    )
    cache = JsonFileResultCache(str(path), ttl=300)

    assert cache.get("job_search_cache:abc") is None
    assert cache.get("job_skills") is None
    assert cache.get("stray") is None

    cache.put("job_search_cache:abc", {"jobs": [], "skills": ["go"]})
    assert cache.get("job_search_cache:abc") == {"jobs": [], "skills": ["go"]}


def test_json_file_cache_removes_temp_file_when_write_fails(tmp_path: Path) -> None:
    path = tmp_path / "results.json"
    cache = JsonFileResultCache(str(path), ttl=300)
    cache.put("kept", [1])

    with pytest.raises(TypeError):
        cache.put("bad", {("tuple", "key"): 1})

    assert [p.name for p in tmp_path.iterdir()] == ["results.json"]
    assert cache.get("kept") == [1]
