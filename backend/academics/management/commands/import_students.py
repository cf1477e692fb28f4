"""Preview and import a student CSV/XLSX file from the command line."""

from __future__ import annotations

import logging
from pathlib import Path

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from rest_framework.exceptions import APIException

from academics.excel_import.commit import commit_records
from academics.excel_import.preview import discard_preview, preview_upload
from academics.scoping import UserScope, scope_for_user

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Validate a student spreadsheet and insert its valid rows (use --dry-run to only preview)."

    def add_arguments(self, parser) -> None:
        parser.add_argument("file", help="Path to a .csv, .xlsx or .xls file.")
        parser.add_argument(
            "--college-id",
            dest="college_id",
            type=int,
            default=None,
            help="Selected college; blank college cells take its name and other colleges are rejected.",
        )
        parser.add_argument("--form-id", dest="form_id", default=None, help="Form identifier recorded with the preview.")
        parser.add_argument(
            "--auto-generate",
            dest="auto_generate",
            action="store_true",
            help="Assign admission numbers to rows that have none.",
        )
        parser.add_argument(
            "--user",
            dest="username",
            default=None,
            help="Act as this user (scope and audit). Defaults to unrestricted access.",
        )
        parser.add_argument(
            "--show-invalid",
            dest="show_invalid",
            type=int,
            default=20,
            help="How many invalid rows to print (default 20).",
        )
        parser.add_argument(
            "--dry-run",
            dest="dry_run",
            action="store_true",
            help="Print the preview and skip database writes.",
        )

    def handle(self, *args, **options) -> None:
        path = Path(options["file"]).expanduser()
        if not path.is_file():
            raise CommandError(f"File not found: {path}")

        user, scope = self._resolve_user(options.get("username"))
        try:
            preview = preview_upload(
                path.read_bytes(),
                path.name,
                form_id=options.get("form_id"),
                college_id=options.get("college_id"),
                auto_generate=options["auto_generate"],
                user=user,
            )
        except APIException as exc:
            raise CommandError(str(exc.detail))

        summary = preview["summary"]
        self.stdout.write(
            f"Rows: {summary['totalRows']}  valid: {summary['validCount']}  invalid: {summary['invalidCount']}"
        )
        self._print_invalid(preview["invalidRecords"], options["show_invalid"])

        if options["dry_run"]:
            discard_preview(preview["previewToken"])
            self.stdout.write(self.style.WARNING("Dry run: nothing written."))
            return
        if not preview["validRecords"]:
            self.stdout.write(self.style.WARNING("No valid rows. Nothing to import."))
            return

        result = commit_records(
            [{"rowNumber": rec["rowNumber"]} for rec in preview["validRecords"]],
            user=user,
            scope=scope,
            preview_token=preview["previewToken"],
        )
        discard_preview(preview["previewToken"])
        for failure in result["details"]["failures"]:
            self.stdout.write(
                self.style.ERROR(f"Row {failure['rowNumber']} ({failure['admissionNumber']}): {'; '.join(failure['errors'])}")
            )
        self.stdout.write(
            self.style.SUCCESS(
                f"Import complete. Inserted: {result['successCount']}, Skipped: {result['skippedCount']}"
            )
        )

    def _resolve_user(self, username):
        if not username:
            return None, UserScope.full_access()
        User = get_user_model()
        user = User.objects.filter(username=username).first()
        if user is None:
            raise CommandError(f"User not found: {username}")
        return user, scope_for_user(user)

    def _print_invalid(self, records, limit: int) -> None:
        for record in records[:max(limit, 0)]:
            issues = record.get("issues") or []
            self.stdout.write(f"  row {record['rowNumber']}: {'; '.join(issues)}")
        hidden = len(records) - max(limit, 0)
        if hidden > 0:
            self.stdout.write(f"  ... {hidden} more invalid row(s)")
