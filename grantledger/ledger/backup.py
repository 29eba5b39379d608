"""
Backup, Export & Import

Export writes the whole ledger to a file the user picks. Import reads a
file the user picks, merges it into the current ledger (current wins,
see ledger.reconciler) and saves the merged ledger with ONE durable write.

Import never clobbers: the worst a bad file can do is add nothing.
"""

import json
from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from grantledger import __version__
from grantledger.audit import AuditLogger, create_correlation_id
from grantledger.errors import ExternalServiceError, ValidationError
from grantledger.ledger.reconciler import MergeResult, merge
from grantledger.models.audit import AuditEventType
from grantledger.models.snapshot import LedgerSnapshot
from grantledger.services.platform import PlatformServices
from grantledger.services.storage import LedgerStoreInterface


def backup_filename(on: Optional[date] = None) -> str:
    return f"grant_manager_backup_{(on or date.today()).isoformat()}.json"


def diagnostic_report_filename(at: Optional[datetime] = None) -> str:
    stamp = (at or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
    return f"grant_ledger_debug_report_{stamp}.json"


class DiagnosticFeedback(BaseModel):
    """What the user says went wrong."""

    reporter_name: str = ""
    type: str = Field(default="Bug", description="Bug, Feature Request or Question")
    description: str = ""
    reproduction_steps: str = ""


class BackupManager:
    """Moves whole ledgers between the store and files."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        platform: PlatformServices,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._platform = platform
        self._audit = audit_logger or AuditLogger()

    async def export_backup(self) -> Optional[str]:
        """
        Write the ledger to a user-chosen file.

        Returns:
            The path written, or None if the user cancelled

        Raises:
            FeatureUnavailableError: No platform to ask for a path
            ExternalServiceError: The file could not be written
        """
        path = await self._platform.select_save_path(backup_filename())
        if path is None:
            return None

        snapshot = await self._store.snapshot()
        snapshot = snapshot.model_copy(update={"timestamp": datetime.now(timezone.utc)})
        if not await self._platform.write_file(path, snapshot.to_json().encode("utf-8")):
            raise ExternalServiceError("platform", f"could not write backup to {path}")

        await self._audit.log_entity_changed(
            AuditEventType.BACKUP_EXPORTED,
            "ledger",
            str(path),
            f"Backup exported to {path}",
            details={
                "grants": len(snapshot.grants),
                "expenditures": len(snapshot.expenditures),
                "templates": len(snapshot.templates),
            },
        )
        return str(path)

    async def import_backup(self) -> Optional[MergeResult]:
        """
        Merge a user-chosen backup into the ledger.

        Returns:
            The merge result, or None if the user cancelled

        Raises:
            FeatureUnavailableError: No platform to ask for a file
            ValidationError: The file is missing or not JSON (field "file")
            PersistenceError: The merged ledger could not be saved
        """
        path = await self._platform.open_file()
        if path is None:
            return None

        raw = await self._platform.read_file(path)
        if raw is None:
            raise ValidationError(["file"], f"File not found: {path}")
        return await self.import_bytes(raw)

    async def import_bytes(self, raw: bytes) -> MergeResult:
        """Merge already-read backup contents into the ledger."""
        correlation_id = create_correlation_id()
        try:
            data = json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(
                ["file"],
                "Failed to import file. Ensure it is a valid .json backup from this app.",
            ) from e

        result = merge(await self._store.snapshot(), data)

        for kind in result.failed_kinds:
            await self._audit.log_import_kind_failed(
                kind.value,
                result.reports[kind].error or "",
                correlation_id,
            )

        if result.changed:
            await self._store.restore(result.snapshot)

        await self._audit.log_import_merged(result.inserted, result.skipped, correlation_id)
        return result

    async def export_diagnostic_report(
        self,
        feedback: DiagnosticFeedback,
        user_agent: str = "",
    ) -> Optional[str]:
        """
        Save a diagnostic report to a user-chosen file.

        Returns:
            The path written, or None if the user cancelled
        """
        path = await self._platform.select_save_path(diagnostic_report_filename())
        if path is None:
            return None

        report = build_diagnostic_report(await self._store.snapshot(), feedback, user_agent)
        payload = json.dumps(report, indent=2).encode("utf-8")
        if not await self._platform.write_file(path, payload):
            raise ExternalServiceError("platform", f"could not write report to {path}")
        return str(path)


def build_diagnostic_report(
    snapshot: LedgerSnapshot,
    feedback: DiagnosticFeedback,
    user_agent: str = "",
) -> dict:
    """
    A support report bundling the user's description with the ledger.

    Importing one of these restores its appState like a normal backup.
    """
    return {
        "meta": {
            "appName": "Grant Ledger",
            "version": __version__,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "userAgent": user_agent or f"grantledger/{__version__}",
        },
        "userFeedback": {
            "reporterName": feedback.reporter_name,
            "type": feedback.type,
            "description": feedback.description,
            "reproductionSteps": feedback.reproduction_steps,
        },
        "appState": json.loads(snapshot.to_json()),
    }
