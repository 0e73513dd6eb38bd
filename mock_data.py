import random
import time

# Analysis results below this many unique authors come back redacted.
REDACTION_THRESHOLD = 100


def generate_mock_identities(count: int = 5, seed: int = 7) -> list[dict]:
    rng = random.Random(seed)
    identities = []
    for i in range(1, count + 1):
        identities.append({
            "id": f"ident_{i:03d}",
            "label": f"Team {i:02d}",
            "api_key": f"key_{rng.getrandbits(64):016x}",
            "status": "active",
            "master": False,
        })
    return identities


def generate_mock_indexes(
    identities: list[dict],
    count: int = 40,
    now: int | None = None,
    seed: int = 42
) -> list[dict]:
    rng = random.Random(seed)
    now = now or int(time.time())
    day = 24 * 60 * 60

    indexes = []
    for i in range(count):
        identity = rng.choice(identities)
        start = now - rng.randint(1, 120) * day
        status = rng.choice(["running", "running", "stopped"])
        end = None
        if status == "stopped":
            end = rng.randint(start + day, now)

        indexes.append({
            "id": f"{rng.getrandbits(128):032x}",
            "name": f"Index {i:03d}",
            "identity_id": identity["id"],
            "status": status,
            "start": start,
            "end": end,
            "volume": rng.randint(0, 5_000_000),
            "hash": f"{rng.getrandbits(128):032x}",
        })
    return indexes


def mock_interactions(index: dict, start: int | None, now: int | None = None) -> int:
    """Share of an index's lifetime volume recorded after ``start``."""
    now = now or int(time.time())
    index_start = index["start"]
    index_end = index["end"] or now
    lifetime = max(index_end - index_start, 1)
    window_start = max(start or index_start, index_start)
    covered = max(index_end - window_start, 0)
    return int(index["volume"] * min(covered / lifetime, 1.0))


MOCK_IDENTITIES = generate_mock_identities()
MOCK_INDEXES = generate_mock_indexes(MOCK_IDENTITIES)
