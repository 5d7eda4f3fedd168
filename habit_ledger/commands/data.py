"""Export and import commands."""

import os
from datetime import datetime
from typing import Optional

from ..core.config import get_backup_dir
from ..core.exceptions import HabitLedgerError, ImportFormatError
from ..utils.io import atomic_write
from ..utils.prompts import confirm_action
from .base import BaseCommand


class ExportCommand(BaseCommand):
    """Write the whole ledger to a JSON file (or stdout)."""

    def run(self, output: Optional[str] = None) -> bool:
        tracker = None
        try:
            tracker = self.open_tracker()
            document = tracker.export_data()

            if not output or output == "-":
                print(document)
                return True

            path = os.path.abspath(os.path.expanduser(output))
            if not atomic_write(path, document + "\n"):
                print(f"❌ Could not write export to {path}")
                return False
            print(f"📄 Exported ledger to {path}")
            return True
        except HabitLedgerError as exc:
            return self.report_failure("Export", exc)
        finally:
            if tracker is not None:
                tracker.close()


class ImportCommand(BaseCommand):
    """Replace the ledger with the contents of an export file."""

    def run(self, source: str, assume_yes: bool = False, backup: bool = True) -> bool:
        tracker = None
        try:
            path = os.path.abspath(os.path.expanduser(source))
            try:
                with open(path, "r", encoding="utf-8") as handle:
                    document = handle.read()
            except OSError as exc:
                print(f"❌ Cannot read {path}: {exc}")
                return False

            tracker = self.open_tracker()
            question = "Importing replaces ALL habits, completions and settings. Continue?"
            if not confirm_action(question, assume_yes=assume_yes):
                print("Import cancelled.")
                return False

            if backup:
                stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
                backup_path = os.path.join(str(get_backup_dir()), f"ledger-{stamp}.json")
                if atomic_write(backup_path, tracker.export_data() + "\n"):
                    print(f"💾 Backup written to {backup_path}")
                else:
                    self.logger.warning("Could not write backup to %s", backup_path)

            counts = tracker.import_data(document)
            print(f"✅ Imported {counts['habits']} habit(s) and "
                  f"{counts['completions']} completion(s)")
            return True
        except ImportFormatError as exc:
            for problem in exc.problems:
                print(f"   - {problem}")
            return self.report_failure("Import", exc)
        except HabitLedgerError as exc:
            return self.report_failure("Import", exc)
        finally:
            if tracker is not None:
                tracker.close()
