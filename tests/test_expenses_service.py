import asyncio
from datetime import datetime, timezone

import pytest

from models.expense import ExpenseCreate, ExpenseUpdate
from services import expenses_service
from services.errors import ExpenseNotFound, ExpenseValidationError, InvalidIdentifier
from services.expense_store import InMemoryExpenseStore


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store() -> InMemoryExpenseStore:
    return InMemoryExpenseStore()


def test_add_then_list_contains_the_new_record(store):
    before = datetime.now(timezone.utc)
    created = run(expenses_service.add_expense(store, ExpenseCreate(description="Groceries", cost=56.23)))

    [listed] = run(expenses_service.list_expenses(store))
    assert listed == created
    assert listed.description == "Groceries"
    assert listed.cost == 56.23
    assert listed.createdDate >= before


def test_update_cost_only_keeps_other_fields(store):
    created = run(expenses_service.add_expense(store, ExpenseCreate(description="Gym", cost=42)))

    run(expenses_service.update_expense(store, created.id, ExpenseUpdate(cost=39.99)))

    [listed] = run(expenses_service.list_expenses(store))
    assert listed.cost == 39.99
    assert listed.description == "Gym"
    assert listed.id == created.id
    assert listed.createdDate == created.createdDate


def test_update_with_explicit_null_leaves_field_untouched(store):
    created = run(expenses_service.add_expense(store, ExpenseCreate(description="Gym", cost=42)))

    run(expenses_service.update_expense(store, created.id, ExpenseUpdate(description=None, cost=40)))

    [listed] = run(expenses_service.list_expenses(store))
    assert listed.description == "Gym"
    assert listed.cost == 40


def test_update_invalid_id(store):
    with pytest.raises(InvalidIdentifier):
        run(expenses_service.update_expense(store, "123", ExpenseUpdate(cost=1)))


def test_update_validates_before_resolving_record(store):
    # Validation errors win over not-found so a bad body never reaches the store
    with pytest.raises(ExpenseValidationError):
        run(expenses_service.update_expense(store, "65f1c0ffee0000000000abcd", ExpenseUpdate(cost=-1)))


def test_remove_unknown_id(store):
    with pytest.raises(ExpenseNotFound) as exc_info:
        run(expenses_service.remove_expense(store, "65f1c0ffee0000000000abcd"))
    assert exc_info.value.status_code == 404


class TestCollectUpdateFields:
    def test_only_sent_fields_are_collected(self):
        payload = ExpenseUpdate.model_validate({"cost": 3})
        assert expenses_service.collect_update_fields(payload) == {"cost": 3.0}

    def test_empty_body_collects_nothing(self):
        assert expenses_service.collect_update_fields(ExpenseUpdate.model_validate({})) == {}

    def test_invalid_description_rejects_valid_cost(self):
        payload = ExpenseUpdate.model_validate({"cost": 3, "description": ""})
        with pytest.raises(ExpenseValidationError, match="description"):
            expenses_service.collect_update_fields(payload)


@pytest.mark.parametrize("cost", [None, 0, -0.01, float("inf")])
def test_validate_cost_rejects(cost):
    with pytest.raises(ExpenseValidationError):
        expenses_service.validate_cost(cost)


def test_validate_description_keeps_whitespace_text():
    assert expenses_service.validate_description(" ") == " "
