"""
Unit tests for the pure rules: tier routing, batch selection and bill grouping.
"""
import unittest
from datetime import date, datetime

from godown_allocation.models import BatchSelectionPolicy, GodownType, TransferType
from godown_allocation.core.tier_rules import (
    allowed_target_types, default_transfer_type, filter_targets,
    is_customer_visible, is_valid_target, uses_ward_assignment
)
from godown_allocation.core.batch_selection import order_by_expiry, plan_decrement, select_entry
from godown_allocation.core.billing import bill_key, group_into_bills


def godown(id, godown_type, is_active=True):
    return {'id': id, 'godown_type': godown_type, 'is_active': is_active}


class TestTierRules(unittest.TestCase):
    """Test cases for transfer routing between godown tiers."""

    def test_allowed_target_types(self):
        self.assertEqual(allowed_target_types(GodownType.LOCAL), {GodownType.MICRO})
        self.assertEqual(allowed_target_types(GodownType.MICRO), {GodownType.LOCAL})
        self.assertEqual(
            allowed_target_types(GodownType.AREA),
            {GodownType.MICRO, GodownType.LOCAL, GodownType.AREA}
        )

    def test_local_to_micro_is_valid(self):
        self.assertTrue(is_valid_target(godown('l1', 'local'), godown('m1', 'micro')))

    def test_local_to_local_is_invalid(self):
        self.assertFalse(is_valid_target(godown('l1', 'local'), godown('l2', 'local')))

    def test_micro_to_area_is_invalid(self):
        self.assertFalse(is_valid_target(godown('m1', 'micro'), godown('a1', 'area')))

    def test_area_to_itself_is_invalid(self):
        area = godown('a1', 'area')
        self.assertFalse(is_valid_target(area, area))
        self.assertTrue(is_valid_target(area, godown('a2', 'area')))

    def test_inactive_target_is_invalid(self):
        self.assertFalse(is_valid_target(godown('l1', 'local'), godown('m1', 'micro', is_active=False)))

    def test_filter_targets(self):
        source = godown('l1', 'local')
        candidates = [godown('m1', 'micro'), godown('l2', 'local'), godown('a1', 'area'), godown('m2', 'micro')]
        self.assertEqual([g['id'] for g in filter_targets(source, candidates)], ['m1', 'm2'])

    def test_default_transfer_type(self):
        self.assertEqual(default_transfer_type(GodownType.MICRO), TransferType.RETURN)
        self.assertEqual(default_transfer_type(GodownType.LOCAL), TransferType.TRANSFER)
        self.assertEqual(default_transfer_type(GodownType.AREA), TransferType.TRANSFER)

    def test_visibility_and_ward_assignment(self):
        self.assertTrue(is_customer_visible(GodownType.MICRO))
        self.assertTrue(is_customer_visible(GodownType.AREA))
        self.assertFalse(is_customer_visible(GodownType.LOCAL))
        self.assertTrue(uses_ward_assignment(GodownType.MICRO))
        self.assertFalse(uses_ward_assignment(GodownType.AREA))

    def test_invalid_godown_type(self):
        with self.assertRaises(ValueError):
            GodownType.from_string('regional')


class TestBatchSelection(unittest.TestCase):
    """Test cases for picking and decrementing source entries."""

    def setUp(self):
        self.entries = [
            {'id': 'b', 'created_at': datetime(2024, 2, 1), 'expiry_date': date(2024, 6, 1)},
            {'id': 'a', 'created_at': datetime(2024, 1, 1), 'expiry_date': None},
            {'id': 'c', 'created_at': '2024-03-01T08:00:00Z', 'expiry_date': '2024-04-01'},
        ]

    def test_fifo_created_picks_oldest(self):
        self.assertEqual(select_entry(self.entries, BatchSelectionPolicy.FIFO_CREATED)['id'], 'a')

    def test_fifo_expiry_picks_earliest_expiry(self):
        self.assertEqual(select_entry(self.entries, BatchSelectionPolicy.FIFO_EXPIRY)['id'], 'c')

    def test_undated_entries_go_last(self):
        self.assertEqual([e['id'] for e in order_by_expiry(self.entries)], ['c', 'b', 'a'])

    def test_select_from_nothing(self):
        self.assertIsNone(select_entry([], BatchSelectionPolicy.FIFO_CREATED))

    def test_plan_decrement_within_stock(self):
        self.assertEqual(plan_decrement(20, 20, allow_negative=False), (0, 20))
        self.assertEqual(plan_decrement(20, 5, allow_negative=False), (15, 5))

    def test_plan_decrement_clamps_at_zero(self):
        self.assertEqual(plan_decrement(5, 8, allow_negative=False), (0, 5))

    def test_plan_decrement_never_raises_negative_entry(self):
        self.assertEqual(plan_decrement(-3, 4, allow_negative=False), (-3, 0))

    def test_plan_decrement_allows_negative(self):
        self.assertEqual(plan_decrement(5, 8, allow_negative=True), (-3, 8))


class TestBilling(unittest.TestCase):
    """Test cases for grouping stock entries into purchase bills."""

    def test_shared_purchase_number_forms_one_bill(self):
        entries = [
            {'id': '1', 'purchase_number': 'PB-001', 'quantity': 10, 'purchase_price': 2.5,
             'created_at': datetime(2024, 3, 1, 9, 0)},
            {'id': '2', 'purchase_number': 'PB-001', 'quantity': 4, 'purchase_price': 10.0,
             'created_at': datetime(2024, 3, 1, 9, 0)},
            {'id': '3', 'purchase_number': 'PB-001', 'quantity': 1, 'purchase_price': 100.0,
             'created_at': datetime(2024, 3, 1, 9, 1)},
            {'id': '4', 'purchase_number': None, 'quantity': 7, 'purchase_price': 1.0,
             'created_at': datetime(2024, 3, 2, 12, 0)},
        ]

        bills = group_into_bills(entries)

        self.assertEqual(len(bills), 2)
        single, bill = bills
        self.assertIsNone(single.bill_number)
        self.assertEqual(single.item_count, 1)
        self.assertEqual(single.date, date(2024, 3, 2))

        self.assertEqual(bill.bill_number, 'PB-001')
        self.assertEqual(bill.item_count, 3)
        self.assertEqual(bill.total_quantity, 15)
        self.assertAlmostEqual(bill.total_amount, 25.0 + 40.0 + 100.0)
        self.assertEqual(bill.date, date(2024, 3, 1))

    def test_entries_without_bill_are_separate(self):
        entries = [
            {'id': 'x', 'purchase_number': None, 'quantity': 1, 'created_at': datetime(2024, 1, 1)},
            {'id': 'y', 'purchase_number': '', 'quantity': 1, 'created_at': datetime(2024, 1, 1)},
        ]
        self.assertEqual(bill_key(entries[0]), 'no-bill-x')
        self.assertEqual(len(group_into_bills(entries)), 2)

    def test_to_dict(self):
        bill = group_into_bills([
            {'id': '1', 'purchase_number': 'PB-9', 'quantity': 2, 'purchase_price': 3.0,
             'created_at': datetime(2024, 5, 5)}
        ])[0]
        data = bill.to_dict()
        self.assertEqual(data['bill_number'], 'PB-9')
        self.assertEqual(data['item_count'], 1)
        self.assertEqual(data['total_amount'], 6.0)
        self.assertEqual(len(data['entries']), 1)


if __name__ == '__main__':
    unittest.main()
