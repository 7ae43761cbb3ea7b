"""
Tests for the init-once engine guard
"""
from concurrent.futures import ThreadPoolExecutor

import database


def test_concurrent_first_use_builds_one_engine(monkeypatch):
    monkeypatch.setattr(database, "_engine", None)
    built = []
    real_build = database._build_engine

    def counting_build(url):
        built.append(url)
        return real_build(url)

    monkeypatch.setattr(database, "_build_engine", counting_build)
    with ThreadPoolExecutor(max_workers=8) as pool:
        engines = list(pool.map(lambda _: database.get_engine(), range(32)))

    assert len(built) == 1
    assert all(e is engines[0] for e in engines)


def test_init_db_is_idempotent(engine):
    assert database.init_db() is database.init_db()
