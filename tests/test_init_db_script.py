# tests/test_init_db_script.py
from murmur_stage.scripts import init_db


def test_creates_tables(monkeypatch):
    calls = []
    monkeypatch.setattr(init_db, "drop_tables", lambda: calls.append("drop"))
    monkeypatch.setattr(init_db, "create_tables", lambda: calls.append("create"))

    init_db.main([])
    init_db.main(["--drop"])

    assert calls == ["create", "drop", "create"]
