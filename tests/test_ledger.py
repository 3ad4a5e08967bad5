"""Service-level tests for the budget/goal ledgers and the cash-flow graph."""

from datetime import date, timedelta

import pytest
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from vaultx.core.errors import Forbidden, InvalidInput, NotFound
from vaultx.models.goal import Goal, GoalTransaction
from vaultx.models.graph import Flow, Node
from vaultx.services.access import ProfileGate
from vaultx.services.graph import CashFlowGraph
from vaultx.services.ledger import BudgetLedger, GoalLedger
from vaultx.services.profiles import ProfileService

from conftest import make_owner


def ledger_total(session, goal_id):
    total = session.exec(
        select(func.coalesce(func.sum(GoalTransaction.amount), 0.0)).where(GoalTransaction.goal_id == goal_id)
    ).one()
    return float(total)


def current_of(session, goal_id):
    goal = session.get(Goal, goal_id)
    session.refresh(goal)
    return goal.current


class TestGoalLedger:
    def test_contributions_scenario(self, session, owner):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Holiday", target=1000, current=0)

        first = ledger.create_transaction(profile_id, goal.id, 250)
        ledger.create_transaction(profile_id, goal.id, 250)

        [(listed, metrics)] = ledger.list_goals(profile_id)
        assert listed.current == 500
        assert metrics.percentage == 50

        ledger.delete_transaction(profile_id, goal.id, first.id)
        [(listed, metrics)] = ledger.list_goals(profile_id)
        assert listed.current == 250
        assert metrics.percentage == 25

    def test_current_tracks_ledger_sum(self, session, owner):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Car", target=5000)

        created = []
        for amount in (100, 42.5, -20, 300, 7.25):
            created.append(ledger.create_transaction(profile_id, goal.id, amount))
            assert current_of(session, goal.id) == pytest.approx(ledger_total(session, goal.id))

        for tx in created[1::2]:
            ledger.delete_transaction(profile_id, goal.id, tx.id)
            assert current_of(session, goal.id) == pytest.approx(ledger_total(session, goal.id))

        assert current_of(session, goal.id) == pytest.approx(100 - 20 + 7.25)

    def test_delete_then_recreate_restores_current(self, session, owner):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Bike", target=800)
        ledger.create_transaction(profile_id, goal.id, 120)
        tx = ledger.create_transaction(profile_id, goal.id, 80, note="birthday", on=date(2024, 3, 1))
        before = current_of(session, goal.id)

        ledger.delete_transaction(profile_id, goal.id, tx.id)
        assert current_of(session, goal.id) == before - 80

        ledger.create_transaction(profile_id, goal.id, 80, note="birthday", on=date(2024, 3, 1))
        assert current_of(session, goal.id) == before

    def test_deleting_twice_is_not_found_and_keeps_total(self, session, owner):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Fund", target=100)
        tx = ledger.create_transaction(profile_id, goal.id, 60)

        ledger.delete_transaction(profile_id, goal.id, tx.id)
        with pytest.raises(NotFound):
            ledger.delete_transaction(profile_id, goal.id, tx.id)
        assert current_of(session, goal.id) == 0

    def test_failed_increment_rolls_back_the_ledger_row(self, session, owner, monkeypatch):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Fund", target=100)

        def broken(goal_id, delta):
            raise RuntimeError("store went away")

        monkeypatch.setattr(ledger, "_adjust_current", broken)
        with pytest.raises(RuntimeError):
            ledger.create_transaction(profile_id, goal.id, 40)

        assert session.exec(select(GoalTransaction).where(GoalTransaction.goal_id == goal.id)).all() == []
        assert current_of(session, goal.id) == 0

    def test_failed_decrement_keeps_the_ledger_row(self, session, owner, monkeypatch):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Fund", target=100)
        tx = ledger.create_transaction(profile_id, goal.id, 40)

        def broken(goal_id, delta):
            raise RuntimeError("store went away")

        monkeypatch.setattr(ledger, "_adjust_current", broken)
        with pytest.raises(RuntimeError):
            ledger.delete_transaction(profile_id, goal.id, tx.id)

        assert session.get(GoalTransaction, tx.id) is not None
        assert current_of(session, goal.id) == 40

    def test_create_goal_makes_exactly_one_goal_node(self, session, owner):
        _, profile_id = owner
        goal = GoalLedger(session).create_goal(profile_id, name="House", target=20000, current=0)

        nodes = session.exec(select(Node).where(Node.profile_id == profile_id, Node.type == "goal")).all()
        assert len(nodes) == 1
        assert nodes[0].id == goal.node_id
        assert nodes[0].goal == 20000
        assert nodes[0].balance == 0
        assert nodes[0].label == "House"

    def test_create_goal_is_atomic(self, session, owner, monkeypatch):
        _, profile_id = owner
        real_flush = session.flush
        flushes = []

        def failing_goal_flush(*args, **kwargs):
            # First flush writes the node, the second one would write the goal
            flushes.append(1)
            if len(flushes) == 2:
                raise IntegrityError("INSERT INTO goals", {}, Exception("goal insert failed"))
            return real_flush(*args, **kwargs)

        monkeypatch.setattr(session, "flush", failing_goal_flush)
        with pytest.raises(IntegrityError):
            GoalLedger(session).create_goal(profile_id, name="Broken", target=100)
        monkeypatch.undo()

        assert len(flushes) == 2
        assert session.exec(select(Node).where(Node.profile_id == profile_id)).all() == []
        assert session.exec(select(Goal).where(Goal.profile_id == profile_id)).all() == []

    def test_opening_balance_is_booked(self, session, owner):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Rainy day", target=1000, current=150)

        [opening] = ledger.list_transactions(profile_id, goal.id)
        assert opening.amount == 150
        assert goal.current == 150
        assert ledger_total(session, goal.id) == 150

    def test_update_books_adjustment_and_leaves_node_alone(self, session, owner):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Trip", target=1000, current=100)

        updated = ledger.update_goal(
            profile_id, goal.id, name="Big trip", target=2000, current=300,
            deadline=date(2030, 1, 1), priority=2, color="#000000",
        )
        assert updated.name == "Big trip"
        assert updated.current == 300
        assert ledger_total(session, goal.id) == 300

        node = session.get(Node, goal.node_id)
        assert node.goal == 1000
        assert node.balance == 100

    def test_delete_goal_keeps_companion_node(self, session, owner):
        _, profile_id = owner
        ledger = GoalLedger(session)
        goal = ledger.create_goal(profile_id, name="Old goal", target=100)
        node_id = goal.node_id
        ledger.create_transaction(profile_id, goal.id, 10)

        ledger.delete_goal(profile_id, goal.id)

        assert session.get(Node, node_id) is not None
        assert session.exec(select(GoalTransaction)).all() == []

    def test_unknown_goal_is_not_found(self, session, owner):
        _, profile_id = owner
        with pytest.raises(NotFound):
            GoalLedger(session).create_transaction(profile_id, 999, 10)


class TestBudgetLedger:
    def test_spend_counts_current_month_only(self, session, owner):
        _, profile_id = owner
        ledger = BudgetLedger(session)
        today = date.today()
        last_month = today.replace(day=1) - timedelta(days=1)

        budget = ledger.create_budget(profile_id, name="Groceries", budgeted=200, period="monthly")
        ledger.create_transaction(profile_id, budget.id, 50, on=today)
        ledger.create_transaction(profile_id, budget.id, 30, on=last_month)

        [(listed, metrics)] = ledger.list_with_spend(profile_id, today)
        assert listed.id == budget.id
        assert metrics.spent == 50
        assert metrics.remaining == 150
        assert metrics.percentage == 25

    def test_budget_without_transactions_reports_zero(self, session, owner):
        _, profile_id = owner
        ledger = BudgetLedger(session)
        ledger.create_budget(profile_id, name="Empty", budgeted=0)

        [(_, metrics)] = ledger.list_with_spend(profile_id)
        assert metrics.spent == 0
        assert metrics.percentage == 0

    def test_weekly_budget_still_uses_calendar_month(self, session, owner):
        _, profile_id = owner
        ledger = BudgetLedger(session)
        budget = ledger.create_budget(profile_id, name="Coffee", budgeted=20, period="weekly")
        ledger.create_transaction(profile_id, budget.id, 5, on=date(2024, 2, 1))
        ledger.create_transaction(profile_id, budget.id, 7, on=date(2024, 2, 28))

        [(_, metrics)] = ledger.list_with_spend(profile_id, date(2024, 2, 15))
        assert metrics.spent == 12

    def test_transaction_date_defaults_to_today(self, session, owner):
        _, profile_id = owner
        ledger = BudgetLedger(session)
        budget = ledger.create_budget(profile_id, name="Fuel", budgeted=100)
        tx = ledger.create_transaction(profile_id, budget.id, 12.5)
        assert tx.date == date.today()

    def test_invalid_period_is_rejected(self, session, owner):
        _, profile_id = owner
        with pytest.raises(InvalidInput):
            BudgetLedger(session).create_budget(profile_id, name="Odd", budgeted=10, period="daily")

    def test_delete_missing_transaction_is_not_found(self, session, owner):
        _, profile_id = owner
        ledger = BudgetLedger(session)
        budget = ledger.create_budget(profile_id, name="Fuel", budgeted=100)
        with pytest.raises(NotFound):
            ledger.delete_transaction(profile_id, budget.id, 12345)

    def test_transactions_newest_first(self, session, owner):
        _, profile_id = owner
        ledger = BudgetLedger(session)
        budget = ledger.create_budget(profile_id, name="Fuel", budgeted=100)
        ledger.create_transaction(profile_id, budget.id, 1, on=date(2024, 1, 1))
        ledger.create_transaction(profile_id, budget.id, 2, on=date(2024, 3, 1))
        ledger.create_transaction(profile_id, budget.id, 3, on=date(2024, 2, 1))

        amounts = [t.amount for t in ledger.list_transactions(profile_id, budget.id)]
        assert amounts == [2, 3, 1]

    def test_budget_of_another_profile_is_not_found(self, session, owner):
        user_id, profile_id = owner
        other = ProfileService(session).create_profile(user_id, "Kid")
        budget = BudgetLedger(session).create_budget(other.id, name="Toys", budgeted=30)

        with pytest.raises(NotFound):
            BudgetLedger(session).create_transaction(profile_id, budget.id, 5)


class TestCashFlowGraph:
    def test_goal_type_cannot_be_created_directly(self, session, owner):
        _, profile_id = owner
        with pytest.raises(InvalidInput):
            CashFlowGraph(session).create_node(profile_id, type="goal", label="Sneaky")

    def test_unknown_type_is_rejected(self, session, owner):
        _, profile_id = owner
        with pytest.raises(InvalidInput):
            CashFlowGraph(session).create_node(profile_id, type="liability", label="Loan")

    def test_delete_node_removes_its_flows(self, session, owner):
        _, profile_id = owner
        graph = CashFlowGraph(session)
        salary = graph.create_node(profile_id, type="income", label="Salary", amount=4000)
        checking = graph.create_node(profile_id, type="account", label="Checking")
        rent = graph.create_node(profile_id, type="expense", label="Rent", budgeted=1500)
        graph.create_flow(profile_id, salary.id, checking.id, 4000)
        graph.create_flow(profile_id, checking.id, rent.id, 1500)
        graph.create_flow(profile_id, checking.id, checking.id, 1)
        kept = graph.create_flow(profile_id, salary.id, rent.id, 10)

        graph.delete_node(profile_id, checking.id)

        flows = session.exec(select(Flow)).all()
        assert [f.id for f in flows] == [kept.id]
        node_ids = {n.id for n in session.exec(select(Node)).all()}
        for flow in flows:
            assert flow.from_node_id in node_ids
            assert flow.to_node_id in node_ids

    def test_delete_node_retry_is_not_found(self, session, owner):
        _, profile_id = owner
        graph = CashFlowGraph(session)
        node_id = graph.create_node(profile_id, type="savings", label="Pot").id
        graph.delete_node(profile_id, node_id)
        with pytest.raises(NotFound):
            graph.delete_node(profile_id, node_id)

    def test_deleting_goal_node_keeps_goal(self, session, owner):
        _, profile_id = owner
        goal = GoalLedger(session).create_goal(profile_id, name="Laptop", target=1500)
        GoalLedger(session).create_transaction(profile_id, goal.id, 500)

        CashFlowGraph(session).delete_node(profile_id, goal.node_id)

        survivor = session.get(Goal, goal.id)
        session.refresh(survivor)
        assert survivor.node_id is None
        assert survivor.current == 500

    def test_deleting_node_removes_linked_budget(self, session, owner):
        _, profile_id = owner
        graph = CashFlowGraph(session)
        node = graph.create_node(profile_id, type="expense", label="Dining", budgeted=300)
        BudgetLedger(session).create_budget(profile_id, name="Dining", budgeted=300, node_id=node.id)

        graph.delete_node(profile_id, node.id)

        assert BudgetLedger(session).list_with_spend(profile_id) == []

    def test_update_keeps_blank_strings_and_overwrites_numbers(self, session, owner):
        _, profile_id = owner
        graph = CashFlowGraph(session)
        node = graph.create_node(
            profile_id, type="savings", label="Emergency", institution="Bank",
            balance=1200, apy=4.1, meta='{"icon": "piggy"}',
        )

        updated = graph.update_node(profile_id, node.id, label="", meta="", balance=0, apy=3.9)

        assert updated.label == "Emergency"
        assert updated.meta == '{"icon": "piggy"}'
        assert updated.balance == 0
        assert updated.apy == 3.9
        assert updated.institution is None

    def test_flow_endpoints_must_belong_to_profile(self, session, owner):
        user_id, profile_id = owner
        other = ProfileService(session).create_profile(user_id, "Partner")
        graph = CashFlowGraph(session)
        mine = graph.create_node(profile_id, type="income", label="Salary")
        theirs = graph.create_node(other.id, type="account", label="Joint")

        with pytest.raises(NotFound):
            graph.create_flow(profile_id, mine.id, theirs.id, 100)


class TestProfileGate:
    def test_other_users_profile_is_forbidden(self, session, owner):
        _, profile_id = owner
        stranger_id, _ = make_owner(session, email="stranger@example.com")
        with pytest.raises(Forbidden):
            ProfileGate(session).profile_for(stranger_id, profile_id)

    def test_missing_profile_is_forbidden(self, session, owner):
        user_id, _ = owner
        with pytest.raises(Forbidden):
            ProfileGate(session).profile_for(user_id, 424242)

    def test_owner_profile_cannot_be_deleted(self, session, owner):
        user_id, profile_id = owner
        with pytest.raises(Forbidden):
            ProfileService(session).delete_profile(user_id, profile_id)
