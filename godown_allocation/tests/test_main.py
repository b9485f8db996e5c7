"""
Tests for the admin command line, run against an in-memory database.
"""
import unittest
from contextlib import redirect_stdout
from io import StringIO

from godown_allocation import main as cli
from godown_allocation.db import db
from godown_allocation.models import Severity
from godown_allocation.notifications import CollectingNotifier
from godown_allocation.tests.helpers import add_local_body, add_product, make_database


class TestCommandLine(unittest.TestCase):
    """Test suite for the godown-admin commands."""

    def setUp(self):
        self.db = make_database()
        db.use(self.db)
        self.notifier = CollectingNotifier()

    def tearDown(self):
        db.reset()

    def run_cli(self, *argv):
        output = StringIO()
        with redirect_stdout(output):
            code = cli.main(list(argv), notifier=self.notifier)
        return code, output.getvalue()

    def test_parse_wards(self):
        self.assertEqual(cli._parse_wards('1, 2,5-7'), [1, 2, 5, 6, 7])

    def test_create_and_list_godowns(self):
        code, _ = self.run_cli('create-godown', 'Edayur Micro', 'micro')
        self.assertEqual(code, 0)
        self.assertEqual(self.notifier.notifications[-1].severity, Severity.SUCCESS)

        code, output = self.run_cli('godowns', '--type', 'micro')
        self.assertEqual(code, 0)
        self.assertIn('Edayur Micro', output)
        self.assertIn('Micro: 1', output)

    def test_assign_wards_conflict_is_reported(self):
        body = add_local_body(self.db, 'Edayur', 10)
        self.run_cli('create-godown', 'Micro A', 'micro')
        self.run_cli('create-godown', 'Micro B', 'micro')
        ids = {g['name']: g['id'] for g in self.db.select('godowns')}

        code, _ = self.run_cli('assign-wards', ids['Micro A'], body['id'], '--wards', '1-3')
        self.assertEqual(code, 0)

        code, _ = self.run_cli('assign-wards', ids['Micro B'], body['id'], '--wards', '3')
        self.assertEqual(code, 1)
        last = self.notifier.notifications[-1]
        self.assertEqual(last.severity, Severity.ERROR)
        self.assertIn('ward_taken', last.description)

    def test_transfer_workflow(self):
        rice = add_product(self.db, 'Rice 5kg')
        self.run_cli('create-godown', 'Local', 'local')
        self.run_cli('create-godown', 'Micro', 'micro')
        ids = {g['name']: g['id'] for g in self.db.select('godowns')}

        self.assertEqual(self.run_cli('add-stock', ids['Local'], rice['id'], '5', '--bill', 'PB-1')[0], 0)
        self.assertEqual(self.run_cli('transfer', ids['Local'], ids['Micro'], rice['id'], '8')[0], 0)
        transfer_id = self.db.select('stock_transfers')[0]['id']

        code, output = self.run_cli('transfers')
        self.assertIn(transfer_id, output)

        self.assertEqual(self.run_cli('approve', transfer_id)[0], 0)
        warnings = [n for n in self.notifier.notifications if n.severity == Severity.WARNING]
        self.assertEqual(len(warnings), 2)

        code, output = self.run_cli('stock', ids['Micro'])
        self.assertIn('Rice 5kg', output)

        code, output = self.run_cli('history', ids['Local'])
        self.assertIn('PB-1', output)

        self.assertEqual(self.run_cli('reject', transfer_id)[0], 1)

    def test_unknown_transfer(self):
        code, _ = self.run_cli('approve', 'missing')
        self.assertEqual(code, 1)
        self.assertEqual(self.notifier.notifications[-1].severity, Severity.ERROR)

    def test_no_command(self):
        code, _ = self.run_cli()
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
