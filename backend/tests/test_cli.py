from fulfillment.models import Product, User
from fulfillment.services import inventory_service, serial_service


def test_catalog_seed_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["catalog", "seed"])
    assert result.exit_code == 0, result.output
    assert "16 products created" in result.output

    dft = inventory_service.get_product_by_code("DFT-P")
    assert dft.available_quantity == 15
    assert serial_service.count_unconsumed(dft.id) == 15

    result = runner.invoke(args=["catalog", "seed"])
    assert "0 products created" in result.output
    assert db_session.query(Product).count() == 16


def test_catalog_receive(app, db_session, drafter):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["catalog", "receive", "--code", "DFT-P", "--quantity", "2"])

    assert result.exit_code == 0, result.output
    assert "DFT-P006 .. DFT-P007" in result.output
    assert drafter.available_quantity == 7

    result = runner.invoke(args=["catalog", "receive", "--code", "NOPE", "--quantity", "2"])
    assert result.exit_code != 0


def test_users_create(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--username", "carol", "--role", "seller"])
    assert result.exit_code == 0, result.output
    assert db_session.query(User).filter_by(username="carol").one().role == "seller"

    result = runner.invoke(args=["users", "create", "--username", "carol"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_ledger_check(app, db_session, drafter):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["ledger", "check"])
    assert result.exit_code == 0
    assert "PASS" in result.output

    drafter.available_quantity = 4
    db_session.commit()

    result = runner.invoke(args=["ledger", "check"])
    assert result.exit_code == 1
    assert "FAIL" in result.output
