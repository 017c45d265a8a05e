from models import Resource, Service


def test_seed_demo_is_idempotent(app):
    runner = app.test_cli_runner()
    assert "Demo data ready" in runner.invoke(args=["seed-demo"]).output
    runner.invoke(args=["seed-demo"])

    assert Resource.query.count() == 1
    assert {s.name: s.duration_minutes for s in Service.query.all()} == {
        "Haircut": 45,
        "Beard trim": 45,
        "Haircut + beard 90": 90,
    }


def test_create_resource_with_hours(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-resource", "Chair 2", "--open-hour", "10", "--interval", "30"])
    assert "created" in result.output
    assert "already exists" in runner.invoke(args=["create-resource", "Chair 2"]).output

    r = Resource.query.filter_by(name="Chair 2").one()
    assert (r.open_hour, r.close_hour, r.interval_minutes) == (10, None, 30)


def test_create_service(app):
    runner = app.test_cli_runner()
    assert "created" in runner.invoke(args=["create-service", "Shave", "30", "--price", "800"]).output
    assert "positive" in runner.invoke(args=["create-service", "Nothing", "0"]).output

    assert Service.query.filter_by(name="Shave").one().duration_minutes == 30


def test_create_resource_rejects_bad_hours(app, client):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-resource", "Night chair", "--open-hour", "20", "--close-hour", "10"])
    assert "Invalid working hours" in result.output
    assert "Invalid working hours" in runner.invoke(args=["create-resource", "Slow chair", "--interval", "0"]).output
    assert Resource.query.count() == 0

    runner.invoke(args=["create-resource", "Chair 1"])
    assert client.get("/availability?date=2026-03-10").status_code == 200
