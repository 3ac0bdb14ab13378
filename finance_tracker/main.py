#!/usr/bin/env python3
"""Finance Tracker CLI - run the API server and manage local finance data."""
import argparse
import json
import sys
import logging
from pathlib import Path

import pandas as pd

from finance_tracker.config import API_HOST, API_PORT
from finance_tracker.api.finance_service import FinanceService, ContextNotFoundError


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    )


def cmd_serve(args):
    """Run the REST API server."""
    import uvicorn

    uvicorn.run("finance_tracker.web.api:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_contexts(args):
    """List all contexts."""
    with FinanceService() as service:
        contexts = service.store.get_all_contexts()

        print(f"{'ID':>4}  {'Type':<10} Name")
        print("-" * 40)
        for c in contexts:
            print(f"{c['id']:>4}  {c['type']:<10} {c['name']}")

    return 0


def cmd_dashboard(args):
    """Show the dashboard of a context."""
    with FinanceService() as service:
        try:
            service.require_context(args.context_id)
        except ContextNotFoundError as e:
            print(f"Error: {e}")
            return 1

        dashboard = service.get_dashboard(args.context_id, args.month)
        summary = dashboard["summary"]

        print("=" * 50)
        print(f"DASHBOARD - {dashboard['currentMonth']}")
        print("=" * 50)
        print(f"\nIncome:         ${summary['totalIncome']:,.2f}")
        print(f"Expenses:       ${summary['totalExpenses']:,.2f}")
        print(f"Net:            ${summary['netIncome']:,.2f}")
        print(f"Subscriptions:  ${summary['totalSubscriptions']:,.2f}")
        print(f"Invested:       ${summary['totalInvested']:,.2f} "
              f"(now ${summary['totalCurrentValue']:,.2f}, {summary['profitLossPercentage']:+.1f}%)")

        if dashboard["budgetVsActual"]:
            print("\nBudgets:")
            for b in dashboard["budgetVsActual"]:
                flag = " OVER" if (b["spent"] or 0) > b["monthly_limit"] else ""
                print(f"  {b['category']:<20} ${b['spent'] or 0:>9,.2f} / ${b['monthly_limit']:,.2f}"
                      f" (actual ${b['actual_spending']:,.2f}){flag}")

        if dashboard["spendingByCategory"]:
            print("\nSpending by category:")
            for s in dashboard["spendingByCategory"]:
                print(f"  {s['category']:<20} ${s['total']:>9,.2f}")

        if dashboard["upcomingRenewals"]:
            print("\nUpcoming renewals:")
            for r in dashboard["upcomingRenewals"]:
                print(f"  {r['next_billing_date']}  {r['service']} ${r['amount']:,.2f}")

    return 0


def cmd_export(args):
    """Export a context as JSON, or its transactions as CSV."""
    with FinanceService() as service:
        try:
            export = service.export_context(args.context_id)
        except ContextNotFoundError as e:
            print(f"Error: {e}")
            return 1

    if args.format == "csv":
        df = pd.DataFrame(export["data"]["transactions"])
        content = df.to_csv(index=False)
    else:
        content = json.dumps(export, indent=2)

    if args.output:
        Path(args.output).write_text(content)
        print(f"Exported context {args.context_id} to {args.output}")
    else:
        print(content)

    return 0


def cmd_import(args):
    """Import an export file into a context."""
    file_path = Path(args.file)
    if not file_path.exists():
        print(f"Error: File not found: {file_path}")
        return 1

    try:
        export = json.loads(file_path.read_text())
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {file_path}: {e}")
        return 1

    data = export.get("data", export)

    with FinanceService() as service:
        try:
            results = service.import_context(args.context_id, data)
        except ContextNotFoundError as e:
            print(f"Error: {e}")
            return 1

    print("Import complete:")
    for table, count in results["imported"].items():
        print(f"  {table:<15} {count}")
    if results["errors"]:
        print(f"\nErrors ({len(results['errors'])}):")
        for error in results["errors"]:
            print(f"  - {error}")

    return 0


def cmd_backup(args):
    """Back up the database file."""
    with FinanceService() as service:
        result = service.backup_database(args.dir)

    print(f"Backup created: {result['backupPath']}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Finance Tracker - personal finances across Home, Work and Business contexts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  finance serve                         Run the API on 127.0.0.1:5000
  finance contexts                      List contexts
  finance dashboard 1                   Show this month's dashboard for context 1
  finance export 1 -o home.json         Export context 1 as JSON
  finance export 1 --format csv         Print context 1's transactions as CSV
  finance import 2 home.json            Import an export into context 2
  finance backup                        Copy the database to the backup folder
"""
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the REST API server")
    serve_parser.add_argument("--host", default=API_HOST, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=API_PORT, help="Port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve_parser.set_defaults(func=cmd_serve)

    # Contexts command
    contexts_parser = subparsers.add_parser("contexts", help="List contexts")
    contexts_parser.set_defaults(func=cmd_contexts)

    # Dashboard command
    dashboard_parser = subparsers.add_parser("dashboard", help="Show a context's dashboard")
    dashboard_parser.add_argument("context_id", type=int, help="Context ID")
    dashboard_parser.add_argument("-m", "--month", help="Month as YYYY-MM (default: current)")
    dashboard_parser.set_defaults(func=cmd_dashboard)

    # Export command
    export_parser = subparsers.add_parser("export", help="Export a context")
    export_parser.add_argument("context_id", type=int, help="Context ID")
    export_parser.add_argument("-o", "--output", help="Output file (default: stdout)")
    export_parser.add_argument("--format", choices=["json", "csv"], default="json",
                               help="json (full export) or csv (transactions only)")
    export_parser.set_defaults(func=cmd_export)

    # Import command
    import_parser = subparsers.add_parser("import", help="Import an export file")
    import_parser.add_argument("context_id", type=int, help="Target context ID")
    import_parser.add_argument("file", help="JSON export file")
    import_parser.set_defaults(func=cmd_import)

    # Backup command
    backup_parser = subparsers.add_parser("backup", help="Back up the database")
    backup_parser.add_argument("--dir", help="Backup directory (default: ~/.finance_tracker/backups)")
    backup_parser.set_defaults(func=cmd_backup)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
