#!/usr/bin/env python3
"""
habit-ledger - local-first habit tracking with streaks, schedules and sync.
"""

import argparse
import logging
import sys

from habit_ledger.core.config import load_config, save_config, get_default_config_path
from habit_ledger.core.exceptions import HabitLedgerError
from habit_ledger.commands import (
    AddCommand,
    ListCommand,
    EditCommand,
    ArchiveCommand,
    DeleteCommand,
    ToggleCommand,
    DueCommand,
    StatsCommand,
    AchievementsCommand,
    ExportCommand,
    ImportCommand,
    SyncCommand,
    SettingsCommand,
    InsightsCommand,
    DependCommand,
    JournalCommand,
)
from habit_ledger.commands.habits import frequency_from_args


def _add_frequency_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--frequency',
        choices=['daily', 'weekly', 'monthly', 'custom'],
        help='Recurrence type (default: daily)'
    )
    parser.add_argument('--target', type=int, help='Completions per period')
    parser.add_argument('--period', type=int, help='Period length in days (custom frequency)')
    parser.add_argument(
        '--days',
        help='Weekdays for weekly habits, e.g. "mon,wed,fri" or "1,3,5" (0=Sunday)'
    )
    parser.add_argument('--month-days', help='Days of month for monthly habits, e.g. "1,15"')
    parser.add_argument(
        '--pattern',
        choices=['every-other-day', 'weekdays-only', 'custom-interval'],
        help='Refinement of a daily frequency'
    )


def _add_habit_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--description', help='Longer description')
    parser.add_argument('--icon', help='Icon token (e.g. "running", "book")')
    parser.add_argument('--color', help='Hex color (e.g. "#10B981")')
    parser.add_argument('--reminder', dest='reminder_time', help='Reminder time HH:MM')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='habit-ledger',
        description="Track recurring habits, streaks and progress",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  habit-ledger add "Read" --frequency weekly --days mon,wed,fri
  habit-ledger toggle Read                 # Mark today done (or undone)
  habit-ledger due                         # What is due today
  habit-ledger stats Read                  # Streaks and rates for one habit
  habit-ledger depend add Write --on Read  # Write needs Read done first
  habit-ledger journal add "Felt great" --mood 5
  habit-ledger export backup.json          # Export everything
  habit-ledger import backup.json --yes    # Replace the ledger
        """
    )

    default_config = get_default_config_path()

    parser.add_argument(
        '--config',
        help=f'Path to configuration file (default: {default_config})',
        default=None
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Verbose output'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    add_parser = subparsers.add_parser('add', help='Create a habit')
    add_parser.add_argument('name', help='Habit name')
    _add_habit_fields(add_parser)
    _add_frequency_arguments(add_parser)

    list_parser = subparsers.add_parser('list', help='List habits')
    list_parser.add_argument('--all', action='store_true', help='Include archived habits')
    list_parser.add_argument('--archived', action='store_true', help='Only archived habits')

    edit_parser = subparsers.add_parser('edit', help='Edit a habit')
    edit_parser.add_argument('habit', help='Habit uuid, uuid prefix or name')
    edit_parser.add_argument('--name', help='New name')
    _add_habit_fields(edit_parser)
    _add_frequency_arguments(edit_parser)

    archive_parser = subparsers.add_parser('archive', help='Archive a habit')
    archive_parser.add_argument('habit', help='Habit uuid, uuid prefix or name')

    restore_parser = subparsers.add_parser('restore', help='Restore an archived habit')
    restore_parser.add_argument('habit', help='Habit uuid, uuid prefix or name')

    delete_parser = subparsers.add_parser('delete', help='Delete a habit and its history')
    delete_parser.add_argument('habit', help='Habit uuid, uuid prefix or name')
    delete_parser.add_argument('--yes', '-y', action='store_true', help='Skip confirmation')

    toggle_parser = subparsers.add_parser('toggle', help='Toggle completion for a day')
    toggle_parser.add_argument('habit', help='Habit uuid, uuid prefix or name')
    toggle_parser.add_argument('--date', help='Date (YYYY-MM-DD, default: today)')

    due_parser = subparsers.add_parser('due', help='Show habits due on a day')
    due_parser.add_argument('--date', help='Date (YYYY-MM-DD, default: today)')

    stats_parser = subparsers.add_parser('stats', help='Show progress statistics')
    stats_parser.add_argument('habit', nargs='?', help='Habit (omit for an overview)')
    stats_parser.add_argument('--days', type=int, help='Window size in days')
    stats_parser.add_argument('--json', action='store_true', help='Print JSON')

    achievements_parser = subparsers.add_parser('achievements', help='Show achievements')
    achievements_parser.add_argument('--json', action='store_true', help='Print JSON')

    export_parser = subparsers.add_parser('export', help='Export the ledger as JSON')
    export_parser.add_argument('output', nargs='?', help='Output file (default: stdout)')

    import_parser = subparsers.add_parser('import', help='Replace the ledger from an export')
    import_parser.add_argument('source', help='Export file to import')
    import_parser.add_argument('--yes', '-y', action='store_true', help='Skip confirmation')
    import_parser.add_argument('--no-backup', action='store_true',
                               help='Do not write a backup before importing')

    sync_parser = subparsers.add_parser('sync', help='Inspect or drain the sync queue')
    sync_parser.add_argument(
        'action',
        nargs='?',
        default='status',
        choices=['status', 'run', 'online', 'offline', 'clear'],
        help='Sync action (default: status)'
    )
    sync_parser.add_argument('--yes', '-y', action='store_true', help='Skip confirmation')

    settings_parser = subparsers.add_parser('settings', help='Show or change settings')
    settings_parser.add_argument('assignments', nargs='*', metavar='KEY=VALUE',
                                 help='e.g. theme=dark startOfWeek=0 timezone=Europe/Berlin')

    insights_parser = subparsers.add_parser('insights', help='Show insights and recommendations')
    insights_parser.add_argument('--json', action='store_true', help='Print JSON')

    depend_parser = subparsers.add_parser('depend', help='Manage habit dependencies')
    depend_parser.add_argument('action', nargs='?', default='list',
                               choices=['list', 'add', 'remove', 'check'],
                               help='Dependency action (default: list)')
    depend_parser.add_argument('habit', nargs='?',
                               help='Dependent habit (or dependency id for remove)')
    depend_parser.add_argument('--on', dest='parent', help='Parent habit that must come first')
    depend_parser.add_argument(
        '--condition',
        default='requires_completion',
        choices=['requires_completion', 'requires_streak', 'blocks_if_incomplete',
                 'triggers_on_completion'],
        help='How the habit depends on its parent'
    )
    depend_parser.add_argument('--value', type=int, help='Streak length for requires_streak')
    depend_parser.add_argument('--date', help='Date to check (YYYY-MM-DD, default: today)')

    journal_parser = subparsers.add_parser('journal', help='Write or review journal entries')
    journal_parser.add_argument('action', nargs='?', default='list', choices=['list', 'add', 'mood'],
                                help='Journal action (default: list)')
    journal_parser.add_argument('content', nargs='?', help='Entry text for add')
    journal_parser.add_argument('--habit', help='Habit the entry is about')
    journal_parser.add_argument('--type', dest='entry_type', default='note',
                                choices=['reflection', 'note', 'mood', 'challenge', 'success'])
    journal_parser.add_argument('--mood', type=int, choices=range(1, 6), help='Mood from 1 to 5')
    journal_parser.add_argument('--tag', dest='tags', action='append', help='Tag (repeatable)')
    journal_parser.add_argument('--date', help='Date (YYYY-MM-DD, default: today)')
    journal_parser.add_argument('--days', type=int, default=30, help='Window for mood analytics')

    return parser


def main(argv=None):
    """Main entry point for habit-ledger."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging if verbose mode is enabled
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Show help if no command specified
    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except HabitLedgerError as exc:
        print(f"Error: invalid configuration: {exc}")
        return 1

    if args.verbose:
        actual_config_path = args.config if args.config else get_default_config_path()
        print(f"Using config: {actual_config_path}")

    try:
        if args.command == 'add':
            cmd = AddCommand(config, verbose=args.verbose)
            success = cmd.run(
                name=args.name,
                description=args.description or "",
                icon=args.icon,
                color=args.color,
                reminder_time=args.reminder_time,
                frequency=frequency_from_args(args),
            )

        elif args.command == 'list':
            cmd = ListCommand(config, verbose=args.verbose)
            success = cmd.run(include_archived=args.all, archived_only=args.archived)

        elif args.command == 'edit':
            cmd = EditCommand(config, verbose=args.verbose)
            success = cmd.run(
                ref=args.habit,
                name=args.name,
                description=args.description,
                icon=args.icon,
                color=args.color,
                reminder_time=args.reminder_time,
                frequency=frequency_from_args(args),
            )

        elif args.command in ('archive', 'restore'):
            cmd = ArchiveCommand(config, verbose=args.verbose)
            success = cmd.run(ref=args.habit, restore=args.command == 'restore')

        elif args.command == 'delete':
            cmd = DeleteCommand(config, verbose=args.verbose)
            success = cmd.run(ref=args.habit, assume_yes=args.yes)

        elif args.command == 'toggle':
            cmd = ToggleCommand(config, verbose=args.verbose)
            success = cmd.run(ref=args.habit, date_str=args.date)

        elif args.command == 'due':
            cmd = DueCommand(config, verbose=args.verbose)
            success = cmd.run(date_str=args.date)

        elif args.command == 'stats':
            cmd = StatsCommand(config, verbose=args.verbose)
            success = cmd.run(ref=args.habit, days=args.days, as_json=args.json)

        elif args.command == 'achievements':
            cmd = AchievementsCommand(config, verbose=args.verbose)
            success = cmd.run(as_json=args.json)

        elif args.command == 'export':
            cmd = ExportCommand(config, verbose=args.verbose)
            success = cmd.run(output=args.output)

        elif args.command == 'import':
            cmd = ImportCommand(config, verbose=args.verbose)
            success = cmd.run(source=args.source, assume_yes=args.yes, backup=not args.no_backup)

        elif args.command == 'sync':
            cmd = SyncCommand(config, verbose=args.verbose)
            success = cmd.run(action=args.action, assume_yes=args.yes)
            if success and args.action in ('online', 'offline'):
                save_config(config, args.config)

        elif args.command == 'settings':
            cmd = SettingsCommand(config, verbose=args.verbose)
            success = cmd.run(assignments=args.assignments)

        elif args.command == 'insights':
            cmd = InsightsCommand(config, verbose=args.verbose)
            success = cmd.run(as_json=args.json)

        elif args.command == 'depend':
            cmd = DependCommand(config, verbose=args.verbose)
            success = cmd.run(
                action=args.action,
                habit=args.habit if args.action != 'remove' else None,
                parent=args.parent,
                condition=args.condition,
                value=args.value,
                dependency_id=args.habit if args.action == 'remove' else None,
                date_str=args.date,
            )

        elif args.command == 'journal':
            cmd = JournalCommand(config, verbose=args.verbose)
            success = cmd.run(
                action=args.action,
                content=args.content,
                habit=args.habit,
                entry_type=args.entry_type,
                mood=args.mood,
                tags=args.tags,
                date_str=args.date,
                days=args.days,
            )

        else:
            print(f"Unknown command '{args.command}'.")
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 130
    except Exception as e:
        print(f"Error: {e}")
        if not args.verbose:
            print("Re-run with --verbose for more detail.")
        else:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
