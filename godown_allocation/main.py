import argparse
import sys
from typing import List, Optional

from tabulate import tabulate

from godown_allocation.config import config
from godown_allocation.db import db, create_all_tables, drop_all_tables, initialize
from godown_allocation.exceptions import GodownError
from godown_allocation.logging_setup import logger, get_logger, log_exception
from godown_allocation.models import GodownType, Severity
from godown_allocation.notifications import LoggingNotifier, Notifier, notify_error, notify_warnings
from godown_allocation.services import AssignmentService, GodownService, StockService, TransferService
from godown_allocation.utils.date_utils import to_date

log = get_logger('cli')


def init_application():
    """Initialize application components."""
    initialize()

    app_log = logger.app_logger
    app_log.info("Godown allocation system initialized")
    app_log.info(f"Using database: {db.db_type}")
    return True


def _parse_wards(value: str) -> List[int]:
    """Parse '1,2,5-7' into [1, 2, 5, 6, 7]."""
    wards = []
    for part in value.split(','):
        part = part.strip()
        if not part:
            continue
        if '-' in part:
            start, end = part.split('-', 1)
            wards.extend(range(int(start), int(end) + 1))
        else:
            wards.append(int(part))
    return wards


def cmd_init_config(args, notifier: Notifier):
    path = config.save()
    notifier.notify("Configuration written", str(path), Severity.SUCCESS)


def cmd_setup_db(args, notifier: Notifier):
    if args.drop:
        drop_all_tables()
        log.info("Dropped existing tables")
    create_all_tables()
    notifier.notify("Database ready", "All tables created", Severity.SUCCESS)


def cmd_godowns(args, notifier: Notifier):
    service = GodownService()
    godowns = service.list_godowns(godown_type=args.type)

    rows = [[g['id'], g['name'], g['godown_type'], 'yes' if g['is_active'] else 'no'] for g in godowns]
    print(tabulate(rows, headers=['ID', 'Name', 'Type', 'Active']))

    counts = service.count_by_type()
    print(f"\nMicro: {counts['micro']}  Local: {counts['local']}  Area: {counts['area']}")


def cmd_create_godown(args, notifier: Notifier):
    godown = GodownService().create_godown(args.name, args.type)
    notifier.notify("Godown created", f"{godown['name']} ({godown['id']})", Severity.SUCCESS)


def cmd_assign_wards(args, notifier: Notifier):
    wards = AssignmentService().assign_wards(
        args.godown_id,
        args.local_body_id,
        ward_numbers=_parse_wards(args.wards) if args.wards else None,
        all_wards=args.all_wards
    )
    notifier.notify("Wards assigned", ', '.join(str(w) for w in wards), Severity.SUCCESS)


def cmd_assign_areas(args, notifier: Notifier):
    assigned = AssignmentService().assign_areas(args.godown_id, args.local_body_ids)
    notifier.notify("Panchayaths assigned", f"{len(assigned)} new assignment(s)", Severity.SUCCESS)


def cmd_remove_assignment(args, notifier: Notifier):
    AssignmentService().remove_assignment(args.godown_id, args.local_body_id)
    notifier.notify("Assignment removed", args.local_body_id, Severity.SUCCESS)


def cmd_stock(args, notifier: Notifier):
    service = StockService()
    if args.entries:
        entries = service.stock_entries(args.godown_id)
        rows = [
            [e['id'], (e.get('product') or {}).get('name', 'Unknown'), e['quantity'],
             e['purchase_price'], e['batch_number'] or '', e['expiry_date'] or '', e['purchase_number'] or '']
            for e in entries
        ]
        print(tabulate(rows, headers=['Entry', 'Product', 'Qty', 'Price', 'Batch', 'Expiry', 'Bill']))
        return

    totals = service.grouped_availability(args.godown_id)
    rows = [[t['product_name'], t['total_quantity'], 'NEGATIVE' if t['negative'] else ''] for t in totals]
    print(tabulate(rows, headers=['Product', 'Total', '']))


def cmd_add_stock(args, notifier: Notifier):
    entry = StockService().add_stock(
        args.godown_id,
        args.product_id,
        args.quantity,
        purchase_price=args.price,
        batch_number=args.batch,
        expiry_date=to_date(args.expiry) if args.expiry else None,
        purchase_number=args.bill
    )
    notifier.notify("Stock added", f"{entry['quantity']} units (entry {entry['id']})", Severity.SUCCESS)


def cmd_history(args, notifier: Notifier):
    bills = StockService().bill_grouped_history(
        args.godown_id,
        from_date=to_date(args.from_date) if args.from_date else None,
        to_date=to_date(args.to_date) if args.to_date else None
    )
    rows = [
        [b.bill_number or '-', b.date, b.item_count, b.total_quantity, f"{b.total_amount:.2f}"]
        for b in bills
    ]
    print(tabulate(rows, headers=['Bill', 'Date', 'Items', 'Quantity', 'Amount']))


def cmd_transfer(args, notifier: Notifier):
    transfer = TransferService().create_transfer(
        args.from_godown_id,
        args.to_godown_id,
        args.product_id,
        args.quantity,
        batch_number=args.batch,
        transfer_type=args.type,
        created_by=args.created_by
    )
    notifier.notify("Transfer requested", f"{transfer['id']} is pending approval", Severity.SUCCESS)


def cmd_approve(args, notifier: Notifier):
    result = TransferService().approve(args.transfer_id)
    notifier.notify("Transfer completed", result.transfer['id'], Severity.SUCCESS)
    notify_warnings(notifier, result.warnings)


def cmd_reject(args, notifier: Notifier):
    transfer = TransferService().reject(args.transfer_id)
    notifier.notify("Transfer rejected", transfer['id'], Severity.SUCCESS)


def cmd_transfers(args, notifier: Notifier):
    service = TransferService()
    if args.godown_id:
        transfers = service.transfers_for_godown(args.godown_id)
    else:
        transfers = service.pending_transfers()

    rows = [
        [t['id'],
         (t.get('from_godown') or {}).get('name', t['from_godown_id']),
         (t.get('to_godown') or {}).get('name', t['to_godown_id']),
         (t.get('product') or {}).get('name', t['product_id']),
         t['quantity'], t['transfer_type'], t['status'], t['created_at']]
        for t in transfers
    ]
    print(tabulate(rows, headers=['ID', 'From', 'To', 'Product', 'Qty', 'Type', 'Status', 'Created']))


COMMANDS = {
    'init-config': cmd_init_config,
    'setup-db': cmd_setup_db,
    'godowns': cmd_godowns,
    'create-godown': cmd_create_godown,
    'assign-wards': cmd_assign_wards,
    'assign-areas': cmd_assign_areas,
    'remove-assignment': cmd_remove_assignment,
    'stock': cmd_stock,
    'add-stock': cmd_add_stock,
    'history': cmd_history,
    'transfer': cmd_transfer,
    'approve': cmd_approve,
    'reject': cmd_reject,
    'transfers': cmd_transfers,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Godown Allocation System')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser('init-config', help='Write the default configuration file')

    setup_parser = subparsers.add_parser('setup-db', help='Set up the database schema')
    setup_parser.add_argument('--drop', action='store_true', help='Drop existing tables before setup')

    godowns_parser = subparsers.add_parser('godowns', help='List godowns')
    godowns_parser.add_argument('--type', choices=[t.value for t in GodownType], help='Only this tier')

    create_parser = subparsers.add_parser('create-godown', help='Create a godown')
    create_parser.add_argument('name', help='Godown name')
    create_parser.add_argument('type', choices=[t.value for t in GodownType], help='Godown tier')

    wards_parser = subparsers.add_parser('assign-wards', help='Replace the wards of a micro godown in a panchayath')
    wards_parser.add_argument('godown_id')
    wards_parser.add_argument('local_body_id')
    group = wards_parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--wards', help="Ward numbers, e.g. '1,2,5-7'")
    group.add_argument('--all-wards', action='store_true', help='Assign every ward of the panchayath')

    areas_parser = subparsers.add_parser('assign-areas', help='Assign panchayaths to a local or area godown')
    areas_parser.add_argument('godown_id')
    areas_parser.add_argument('local_body_ids', nargs='+')

    remove_parser = subparsers.add_parser('remove-assignment', help='Remove a panchayath from a godown')
    remove_parser.add_argument('godown_id')
    remove_parser.add_argument('local_body_id')

    stock_parser = subparsers.add_parser('stock', help='Show stock of a godown')
    stock_parser.add_argument('godown_id')
    stock_parser.add_argument('--entries', action='store_true', help='Show individual entries instead of totals')

    add_parser = subparsers.add_parser('add-stock', help='Record a stock-in')
    add_parser.add_argument('godown_id')
    add_parser.add_argument('product_id')
    add_parser.add_argument('quantity', type=int)
    add_parser.add_argument('--price', type=float, default=0, help='Purchase price per unit')
    add_parser.add_argument('--batch', help='Batch number')
    add_parser.add_argument('--expiry', help='Expiry date (YYYY-MM-DD)')
    add_parser.add_argument('--bill', help='Purchase (bill) number')

    history_parser = subparsers.add_parser('history', help='Purchase history grouped by bill')
    history_parser.add_argument('godown_id')
    history_parser.add_argument('--from', dest='from_date', help='From date (YYYY-MM-DD)')
    history_parser.add_argument('--to', dest='to_date', help='To date (YYYY-MM-DD), inclusive')

    transfer_parser = subparsers.add_parser('transfer', help='Request a stock transfer')
    transfer_parser.add_argument('from_godown_id')
    transfer_parser.add_argument('to_godown_id')
    transfer_parser.add_argument('product_id')
    transfer_parser.add_argument('quantity', type=int)
    transfer_parser.add_argument('--batch', help='Batch number')
    transfer_parser.add_argument('--type', choices=['transfer', 'return'], help='Transfer type')
    transfer_parser.add_argument('--created-by', help='Requesting user ID')

    approve_parser = subparsers.add_parser('approve', help='Approve a pending transfer')
    approve_parser.add_argument('transfer_id')

    reject_parser = subparsers.add_parser('reject', help='Reject a pending transfer')
    reject_parser.add_argument('transfer_id')

    transfers_parser = subparsers.add_parser('transfers', help='List transfers')
    transfers_parser.add_argument('--godown-id', help='Transfers into or out of this godown (default: all pending)')

    return parser


def main(argv: Optional[List[str]] = None, notifier: Optional[Notifier] = None) -> int:
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    notifier = notifier or LoggingNotifier()

    if not args.command:
        parser.print_help()
        return 1

    handler = COMMANDS[args.command]
    try:
        if args.command not in ('init-config', 'setup-db'):
            init_application()
        handler(args, notifier)
    except GodownError as e:
        log_exception('cli', e, f"{args.command} failed")
        notify_error(notifier, e)
        return 1
    except ValueError as e:
        log.error(f"{args.command} failed: {e}")
        notifier.notify("Invalid input", str(e), Severity.ERROR)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
