"""Runs one post-commit operation for a visit record.

Each operation rebuilds what it needs from the record snapshot and calls the
matching downstream collaborator. Collaborator exceptions are converted into
transient failures so nothing propagates to the orchestrator.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus
from modules.post_commit.collaborators import (
    CaregiverShareService,
    MedicationChanges,
    MedicationSyncService,
    TranscriptService,
    UserPreferenceReader,
    VisitAnalysisService,
    VisitNotifier,
    VisitSummary,
)
from modules.post_commit.models import (
    PostCommitOperation,
    RecordUpdate,
    VisitRecord,
    parse_datetime,
    utc_now,
)
from modules.post_commit.store import RecordStoreError, VisitRecordStore

logger = get_module_logger()

MEDICATION_GROUPS = ("started", "stopped", "changed")


def _list(raw: Any) -> List[Any]:
    return list(raw) if isinstance(raw, (list, tuple)) else []


def _string_list(raw: Any) -> List[str]:
    return [value for value in _list(raw) if isinstance(value, str)]


def _dict_list(raw: Any) -> List[Dict[str, Any]]:
    return [value for value in _list(raw) if isinstance(value, dict)]


def normalize_medications(raw: Any) -> MedicationChanges:
    """Normalize started/stopped/changed medication entries.

    Plain strings become ``{"name": ...}``; entries without a usable name are
    dropped.
    """
    if not isinstance(raw, dict):
        raw = {}
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for group in MEDICATION_GROUPS:
        entries = []
        for entry in _list(raw.get(group)):
            if isinstance(entry, str) and entry.strip():
                entries.append({"name": entry.strip()})
            elif isinstance(entry, dict):
                name = entry.get("name")
                if isinstance(name, str) and name.strip():
                    entries.append({**entry, "name": name.strip()})
        groups[group] = entries
    return MedicationChanges(**groups)


def build_summary_for_retry(snapshot: Dict[str, Any]) -> VisitSummary:
    """Rebuild the visit summary deterministically from committed fields."""
    summary = snapshot.get("summary")
    extraction_version = snapshot.get("extraction_version")
    medication_review = snapshot.get("medication_review")
    education = snapshot.get("education")
    prompt_meta = snapshot.get("prompt_meta")
    return VisitSummary(
        summary=summary if isinstance(summary, str) else "",
        diagnoses=_string_list(snapshot.get("diagnoses")),
        diagnoses_detailed=_dict_list(snapshot.get("diagnoses_detailed")),
        medications=normalize_medications(snapshot.get("medications")),
        imaging=_string_list(snapshot.get("imaging")),
        tests_ordered=_dict_list(snapshot.get("tests_ordered")),
        next_steps=_string_list(snapshot.get("next_steps")),
        follow_ups=_dict_list(snapshot.get("follow_ups")),
        medication_review=(
            medication_review
            if isinstance(medication_review, dict)
            else {
                "reviewed": False,
                "continued": [],
                "continued_reviewed": [],
                "adherence_concerns": [],
                "review_concerns": [],
                "side_effects_discussed": [],
                "follow_up_needed": False,
                "notes": [],
            }
        ),
        education=(
            education
            if isinstance(education, dict)
            else {"diagnoses": [], "medications": []}
        ),
        extraction_version=(
            extraction_version if isinstance(extraction_version, str) else None
        ),
        prompt_meta=prompt_meta if isinstance(prompt_meta, dict) else None,
    )


def resolve_visit_date(snapshot: Dict[str, Any], now: datetime) -> datetime:
    for key in ("visit_date", "created_at", "processed_at"):
        value = parse_datetime(snapshot.get(key))
        if value is not None:
            return value
    return now


class OperationExecutor:
    """Dispatches a PostCommitOperation to its downstream collaborator.

    Args:
        medications: Medication sync collaborator
        transcripts: Transcript deletion collaborator
        analysis: Visit analysis collaborator
        notifier: Visit-ready push notifier
        caregivers: Caregiver share collaborator
        preferences: User preference reader (caregiver auto-share)
        store: Record store used to clear the transcript id after deletion
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        medications: MedicationSyncService,
        transcripts: TranscriptService,
        analysis: VisitAnalysisService,
        notifier: VisitNotifier,
        caregivers: CaregiverShareService,
        preferences: UserPreferenceReader,
        store: VisitRecordStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._medications = medications
        self._transcripts = transcripts
        self._analysis = analysis
        self._notifier = notifier
        self._caregivers = caregivers
        self._preferences = preferences
        self._store = store
        self._clock = clock
        self._handlers: Dict[
            PostCommitOperation, Callable[[VisitRecord, str], OperationResult]
        ] = {
            PostCommitOperation.SYNC_MEDICATIONS: self._sync_medications,
            PostCommitOperation.DELETE_TRANSCRIPT: self._delete_transcript,
            PostCommitOperation.VISIT_ANALYSIS: self._analyze_visit,
            PostCommitOperation.PUSH_NOTIFICATION: self._notify_visit_ready,
            PostCommitOperation.CAREGIVER_EMAILS: self._share_with_caregivers,
        }

    def execute(
        self, operation: PostCommitOperation, record: VisitRecord
    ) -> OperationResult:
        """Run ``operation`` for ``record`` and report the outcome."""
        log = logger.bind(record_id=record.id, operation=operation.value)

        user_id = (record.user_id or "").strip()
        if not user_id:
            log.warning("post_commit_operation_missing_user")
            return OperationResult.permanent_error(
                message=f"visit user_id is missing; cannot run {operation.value}",
                error_code="MISSING_USER_ID",
            )

        handler = self._handlers.get(operation)
        if handler is None:
            return OperationResult.permanent_error(
                message=f"operation {operation.value} has no executor",
                error_code="UNSUPPORTED_OPERATION",
            )

        try:
            result = handler(record, user_id)
        except Exception as e:
            log.warning("post_commit_operation_exception", error=str(e))
            return OperationResult.from_exception(e)

        if not result.is_success:
            log.warning(
                "post_commit_operation_failed",
                status=result.status.value,
                error=result.message,
                error_code=result.error_code,
            )
        return result

    def _sync_medications(self, record: VisitRecord, user_id: str) -> OperationResult:
        processed_at = parse_datetime(record.snapshot.get("processed_at"))
        return self._medications.sync_medications(
            user_id=user_id,
            visit_id=record.id,
            medications=normalize_medications(record.snapshot.get("medications")),
            processed_at=processed_at or self._clock(),
        )

    def _delete_transcript(self, record: VisitRecord, user_id: str) -> OperationResult:
        raw_id = record.snapshot.get("transcription_id")
        transcription_id = raw_id.strip() if isinstance(raw_id, str) else ""
        if not transcription_id:
            return OperationResult.success(message="transcript already absent")

        result = self._transcripts.delete_transcript(transcription_id)
        if result.status == OperationStatus.NOT_FOUND:
            logger.info(
                "transcript_already_deleted",
                record_id=record.id,
                transcription_id=transcription_id,
            )
        elif not result.is_success:
            return result

        update = (
            RecordUpdate()
            .remove("transcription_id")
            .set("transcription_deleted_at", self._clock())
        )
        try:
            self._store.update(record.id, update)
        except RecordStoreError as e:
            return OperationResult.transient_error(
                message=f"transcript deleted but record not updated: {e}",
                error_code="RECORD_STORE_ERROR",
            )
        return OperationResult.success(message="transcript deleted")

    def _analyze_visit(self, record: VisitRecord, user_id: str) -> OperationResult:
        return self._analysis.analyze_visit(
            user_id=user_id,
            visit_id=record.id,
            summary=build_summary_for_retry(record.snapshot),
            visit_date=resolve_visit_date(record.snapshot, self._clock()),
        )

    def _notify_visit_ready(self, record: VisitRecord, user_id: str) -> OperationResult:
        return self._notifier.notify_visit_ready(user_id, record.id)

    def _share_with_caregivers(
        self, record: VisitRecord, user_id: str
    ) -> OperationResult:
        if not self._auto_share_enabled(user_id):
            logger.info(
                "caregiver_share_skipped_auto_share_disabled",
                record_id=record.id,
                user_id=user_id,
            )
            return OperationResult.success(message="auto-share disabled")
        return self._caregivers.share_visit_with_caregivers(user_id, record.id)

    def _auto_share_enabled(self, user_id: str) -> bool:
        """Read the caregiver auto-share preference; unknown means enabled."""
        preference: Optional[bool] = None
        try:
            result = self._preferences.get_auto_share_with_caregivers(user_id)
        except Exception as e:
            logger.warning(
                "caregiver_preference_read_failed", user_id=user_id, error=str(e)
            )
            return True

        if not result.is_success:
            logger.warning(
                "caregiver_preference_read_failed",
                user_id=user_id,
                error=result.message,
            )
            return True
        preference = result.data if isinstance(result.data, bool) else None
        return True if preference is None else preference
