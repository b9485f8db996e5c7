"""
Tests for the godown registry and geographic assignments on an in-memory database.
"""
import unittest

from godown_allocation.exceptions import ConflictError, NotFoundError, ValidationError
from godown_allocation.services.assignment_service import AssignmentService
from godown_allocation.services.godown_service import GodownService
from godown_allocation.tests.helpers import add_godown, add_local_body, make_database


class TestGodownService(unittest.TestCase):
    """Test suite for GodownService."""

    def setUp(self):
        self.db = make_database()
        self.service = GodownService(self.db)

    def test_create_godown(self):
        godown = self.service.create_godown('  Kottakkal Micro ', 'MICRO')
        self.assertEqual(godown['name'], 'Kottakkal Micro')
        self.assertEqual(godown['godown_type'], 'micro')
        self.assertTrue(godown['is_active'])

    def test_create_godown_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            self.service.create_godown('', 'micro')
        with self.assertRaises(ValidationError):
            self.service.create_godown('Somewhere', 'regional')

    def test_get_missing_godown(self):
        with self.assertRaises(NotFoundError):
            self.service.get_godown('does-not-exist')

    def test_count_and_list_by_type(self):
        self.service.create_godown('M1', 'micro')
        self.service.create_godown('M2', 'micro')
        self.service.create_godown('A1', 'area')

        self.assertEqual(self.service.count_by_type(), {'micro': 2, 'local': 0, 'area': 1})
        self.assertEqual(len(self.service.list_godowns(godown_type='micro')), 2)
        with self.assertRaises(ValidationError):
            self.service.list_godowns(godown_type='regional')

    def test_set_active(self):
        godown = self.service.create_godown('M1', 'micro')
        self.assertFalse(self.service.set_active(godown['id'], False)['is_active'])
        self.assertEqual(self.service.list_godowns(active_only=True), [])

    def test_list_local_bodies_search(self):
        add_local_body(self.db, 'Valanchery', 33, body_type='municipality')
        add_local_body(self.db, 'Athavanad', 22)
        add_local_body(self.db, 'Edayur', 20)

        self.assertEqual([b['name'] for b in self.service.list_local_bodies()],
                         ['Athavanad', 'Edayur', 'Valanchery'])
        self.assertEqual([b['name'] for b in self.service.list_local_bodies('MUNICIP')], ['Valanchery'])
        self.assertEqual([b['name'] for b in self.service.list_local_bodies('ayu')], ['Edayur'])

    def test_delete_godown_removes_owned_rows(self):
        body = add_local_body(self.db, 'Edayur', 20)
        godown = self.service.create_godown('M1', 'micro')
        AssignmentService(self.db).assign_wards(godown['id'], body['id'], [1, 2])
        self.db.insert('godown_stock', {'godown_id': godown['id'], 'product_id': 'p1', 'quantity': 4})
        self.db.insert('stock_transfers', {
            'from_godown_id': godown['id'], 'to_godown_id': 'other', 'product_id': 'p1',
            'quantity': 1, 'transfer_type': 'return', 'status': 'pending'
        })

        self.service.delete_godown(godown['id'])

        self.assertEqual(self.db.select('godown_wards'), [])
        self.assertEqual(self.db.select('godown_local_bodies'), [])
        self.assertEqual(self.db.select('godown_stock'), [])
        self.assertEqual(len(self.db.select('stock_transfers')), 1)


class TestAssignmentService(unittest.TestCase):
    """Test suite for ward and local body assignment."""

    def setUp(self):
        self.db = make_database()
        self.service = AssignmentService(self.db)
        self.body = add_local_body(self.db, 'Edayur', 12)
        self.other_body = add_local_body(self.db, 'Athavanad', 8)
        self.micro_a = add_godown(self.db, 'Micro A', 'micro')
        self.micro_b = add_godown(self.db, 'Micro B', 'micro')
        self.local = add_godown(self.db, 'Local', 'local')
        self.area = add_godown(self.db, 'Area', 'area')

    def test_assign_wards(self):
        wards = self.service.assign_wards(self.micro_a['id'], self.body['id'], [3, 1, 2, 2])
        self.assertEqual(wards, [1, 2, 3])
        self.assertEqual(self.service.assigned_wards(self.micro_a['id'], self.body['id']), [1, 2, 3])
        self.assertEqual(len(self.db.select('godown_local_bodies')), 1)

    def test_ward_held_by_another_godown_conflicts(self):
        self.service.assign_wards(self.micro_a['id'], self.body['id'], [1, 2, 3])

        with self.assertRaises(ConflictError) as ctx:
            self.service.assign_wards(self.micro_b['id'], self.body['id'], [3, 4])

        self.assertEqual(ctx.exception.code, 'ward_taken')
        self.assertEqual(ctx.exception.details['wards'], [3])
        self.assertIn('3', ctx.exception.message)
        # nothing written for B
        self.assertEqual(self.service.assigned_wards(self.micro_b['id'], self.body['id']), [])
        self.assertEqual(self.service.assigned_wards(self.micro_a['id'], self.body['id']), [1, 2, 3])

    def test_same_ward_in_other_local_body_is_free(self):
        self.service.assign_wards(self.micro_a['id'], self.body['id'], [3])
        self.assertEqual(self.service.assign_wards(self.micro_b['id'], self.other_body['id'], [3]), [3])

    def test_reassign_replaces_previous_wards(self):
        self.service.assign_wards(self.micro_a['id'], self.body['id'], [1, 2, 3])
        self.service.assign_wards(self.micro_a['id'], self.body['id'], [2, 5])

        self.assertEqual(self.service.assigned_wards(self.micro_a['id'], self.body['id']), [2, 5])
        # ward 1 is free again
        self.assertEqual(self.service.assign_wards(self.micro_b['id'], self.body['id'], [1]), [1])

    def test_all_wards(self):
        wards = self.service.assign_wards(self.micro_a['id'], self.body['id'], all_wards=True)
        self.assertEqual(wards, list(range(1, 13)))

    def test_all_wards_conflicts_with_held_ward(self):
        self.service.assign_wards(self.micro_b['id'], self.body['id'], [7])
        with self.assertRaises(ConflictError):
            self.service.assign_wards(self.micro_a['id'], self.body['id'], all_wards=True)

    def test_invalid_ward_selection(self):
        with self.assertRaises(ValidationError):
            self.service.assign_wards(self.micro_a['id'], self.body['id'], [])
        with self.assertRaises(ValidationError):
            self.service.assign_wards(self.micro_a['id'], self.body['id'], [13])

    def test_wards_only_for_micro_godowns(self):
        with self.assertRaises(ValidationError):
            self.service.assign_wards(self.local['id'], self.body['id'], [1])

    def test_unique_ward_enforced_by_storage(self):
        self.service.assign_wards(self.micro_a['id'], self.body['id'], [4])
        with self.assertRaises(ConflictError):
            self.db.insert('godown_wards', {
                'godown_id': self.micro_b['id'], 'local_body_id': self.body['id'], 'ward_number': 4
            })

    def test_available_wards(self):
        self.service.assign_wards(self.micro_b['id'], self.other_body['id'], [2, 5])
        self.service.assign_wards(self.micro_a['id'], self.other_body['id'], [1])
        self.assertEqual(self.service.wards_held_by_others(self.micro_a['id'], self.other_body['id']), [2, 5])
        self.assertEqual(self.service.available_wards(self.micro_a['id'], self.other_body['id']),
                         [1, 3, 4, 6, 7, 8])

    def test_assign_areas(self):
        added = self.service.assign_areas(self.local['id'], [self.body['id'], self.other_body['id']])
        self.assertEqual(added, [self.body['id'], self.other_body['id']])

    def test_assign_areas_skips_existing(self):
        self.service.assign_areas(self.area['id'], [self.body['id']])
        added = self.service.assign_areas(self.area['id'], [self.body['id'], self.other_body['id']])
        self.assertEqual(added, [self.other_body['id']])

        with self.assertRaises(ValidationError):
            self.service.assign_areas(self.area['id'], [self.body['id'], self.other_body['id']])

    def test_areas_may_overlap_between_godowns(self):
        self.service.assign_areas(self.local['id'], [self.body['id']])
        self.assertEqual(self.service.assign_areas(self.area['id'], [self.body['id']]), [self.body['id']])

    def test_assign_areas_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            self.service.assign_areas(self.micro_a['id'], [self.body['id']])
        with self.assertRaises(ValidationError):
            self.service.assign_areas(self.local['id'], [])
        with self.assertRaises(ValidationError):
            self.service.assign_areas(self.local['id'], ['no-such-body'])

    def test_remove_assignment(self):
        self.service.assign_wards(self.micro_a['id'], self.body['id'], [1, 2])
        self.service.remove_assignment(self.micro_a['id'], self.body['id'])

        self.assertEqual(self.db.select('godown_wards'), [])
        self.assertEqual(self.db.select('godown_local_bodies'), [])
        # removing again is a no-op
        self.service.remove_assignment(self.micro_a['id'], self.body['id'])

    def test_assignments_for_godown(self):
        self.service.assign_wards(self.micro_a['id'], self.body['id'], all_wards=True)
        self.service.assign_wards(self.micro_a['id'], self.other_body['id'], [2, 4])

        assignments = {a['local_body_name']: a for a in self.service.assignments_for_godown(self.micro_a['id'])}
        self.assertTrue(assignments['Edayur']['all_wards'])
        self.assertFalse(assignments['Athavanad']['all_wards'])
        self.assertEqual(assignments['Athavanad']['wards'], [2, 4])

    def test_serving_godowns(self):
        self.service.assign_wards(self.micro_a['id'], self.body['id'], [3])
        self.service.assign_wards(self.micro_b['id'], self.body['id'], [4])
        self.service.assign_areas(self.area['id'], [self.body['id']])
        self.service.assign_areas(self.local['id'], [self.body['id']])

        serving = self.service.serving_godowns(self.body['id'], 3)
        self.assertEqual(sorted(serving), sorted([self.micro_a['id'], self.area['id']]))

        GodownService(self.db).set_active(self.area['id'], False)
        self.assertEqual(self.service.serving_godowns(self.body['id'], 3), [self.micro_a['id']])
        self.assertEqual(self.service.serving_godowns(self.other_body['id'], 3), [])


if __name__ == '__main__':
    unittest.main()
