from models.score import Score


def test_score_upsert_updates_existing_triple(stores, factory, db):
    project, user = factory.project(), factory.user()
    stores.scores.upsert(project.id, user.id, "general-v1", {"role": user.role, "totals": {"avg": 1.0, "n": 1}})
    stores.scores.upsert(project.id, user.id, "general-v1", {"role": user.role, "totals": {"avg": 3.0, "n": 2}})

    rows = db.query(Score).all()
    assert len(rows) == 1
    assert rows[0].totals == {"avg": 3.0, "n": 2}


def test_score_upsert_retries_after_losing_insert_race(stores, factory, db, monkeypatch, caplog):
    project, user = factory.project(), factory.user()
    stores.scores.upsert(project.id, user.id, "general-v1", {"role": user.role, "totals": {"avg": 1.0, "n": 1}})

    # The first lookup misses the row another writer just inserted
    real_get = stores.scores._get
    calls = []

    def stale_get(*args):
        calls.append(args)
        return None if len(calls) == 1 else real_get(*args)

    monkeypatch.setattr(stores.scores, "_get", stale_get)

    score = stores.scores.upsert(
        project.id, user.id, "general-v1", {"role": user.role, "totals": {"avg": 2.5, "n": 4}}
    )

    assert len(calls) == 2
    assert "retrying as update" in caplog.text
    rows = db.query(Score).all()
    assert len(rows) == 1
    assert rows[0].id == score.id
    assert rows[0].totals == {"avg": 2.5, "n": 4}
