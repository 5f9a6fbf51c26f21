"""
Claim Intake Validator.

Provides:
- Diagnosis code and code-system normalization
- Procedure line item validation and totals
- Institution / personnel existence and affiliation checks

Nothing is persisted here; a submission that fails any rule is rejected
before any claim state exists.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from claims_engine.core.config import AdjudicationSettings, get_adjudication_settings
from claims_engine.core.enums import DiagnosisCodeSystem
from claims_engine.core.exceptions import NotFoundError, ValidationError
from claims_engine.gateways.provider_directory import ProviderDirectory
from claims_engine.schemas import ClaimSubmission, ProcedureItem

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Accepts "ICD-10", "icd10", "ICD 10", "icd_11", ...
_CODE_SYSTEM_ALIASES = {
    "ICD10": DiagnosisCodeSystem.ICD10,
    "ICD11": DiagnosisCodeSystem.ICD11,
}
_SEPARATORS = re.compile(r"[\s\-_.]")


@dataclass
class ValidatedClaim:
    """Normalized intake data ready to become a claim record."""

    submission: ClaimSubmission
    diagnosis_code: str
    diagnosis_code_system: DiagnosisCodeSystem
    service_date: date
    procedure_items: list[ProcedureItem] = field(default_factory=list)

    @property
    def amount(self) -> Decimal:
        return sum((item.total_amount for item in self.procedure_items), Decimal("0"))


def normalize_code_system(raw: Optional[str]) -> DiagnosisCodeSystem:
    """
    Map a code-system tag to a supported system.

    Raises:
        ValidationError: if the tag is missing or not ICD-10 / ICD-11
    """
    if raw is None or not raw.strip():
        raise ValidationError(
            "Diagnosis code system is required", guard="diagnosis_code_system"
        )
    key = _SEPARATORS.sub("", raw).upper()
    system = _CODE_SYSTEM_ALIASES.get(key)
    if system is None:
        raise ValidationError(
            f"Unsupported diagnosis code system '{raw}'; expected ICD-10 or ICD-11",
            guard="diagnosis_code_system",
        )
    return system


class ClaimIntakeValidator:
    """Structural and referential checks for new claims."""

    def __init__(
        self,
        provider_directory: ProviderDirectory,
        settings: Optional[AdjudicationSettings] = None,
    ):
        self._providers = provider_directory
        self._settings = settings or get_adjudication_settings()

    def validate_structure(self, submission: ClaimSubmission) -> ValidatedClaim:
        """
        Validate diagnosis coding and procedure items.

        Raises:
            ValidationError: on the first failing group of rules
        """
        diagnosis_code = self._validate_diagnosis_code(submission.diagnosis_code)
        code_system = normalize_code_system(submission.diagnosis_code_system)
        items = self._validate_procedure_items(submission)

        today = datetime.now(timezone.utc).date()
        service_date = submission.service_date or today
        if service_date > today:
            raise ValidationError(
                f"Service date {service_date} is in the future", guard="service_date"
            )

        return ValidatedClaim(
            submission=submission,
            diagnosis_code=diagnosis_code,
            diagnosis_code_system=code_system,
            service_date=service_date,
            procedure_items=items,
        )

    async def validate(self, submission: ClaimSubmission) -> ValidatedClaim:
        """Run structural checks, then provider reference checks."""
        validated = self.validate_structure(submission)
        await self._validate_providers(submission)
        return validated

    def _validate_diagnosis_code(self, raw: Optional[str]) -> str:
        code = (raw or "").strip()
        if not code:
            raise ValidationError("Diagnosis code is required", guard="diagnosis_code")

        min_len = self._settings.DIAGNOSIS_CODE_MIN_LENGTH
        max_len = self._settings.DIAGNOSIS_CODE_MAX_LENGTH
        if not min_len <= len(code) <= max_len:
            raise ValidationError(
                f"Diagnosis code must be {min_len}-{max_len} characters",
                guard="diagnosis_code",
            )
        return code

    def _validate_procedure_items(self, submission: ClaimSubmission) -> list[ProcedureItem]:
        raw_items = submission.procedure_items
        if not raw_items:
            raise ValidationError(
                "At least one procedure item is required", guard="procedure_items"
            )
        if len(raw_items) > self._settings.MAX_PROCEDURE_ITEMS:
            raise ValidationError(
                f"A claim may have at most {self._settings.MAX_PROCEDURE_ITEMS} procedure items",
                guard="procedure_items",
            )

        errors: list[str] = []
        items: list[ProcedureItem] = []
        for line_number, raw in enumerate(raw_items, start=1):
            code = (raw.procedure_code or "").strip()
            if not code:
                errors.append(f"Line {line_number}: procedure code is required")
            if raw.quantity < 1:
                errors.append(f"Line {line_number}: quantity must be at least 1")
            unit_amount = None
            if raw.unit_amount is not None:
                unit_amount = raw.unit_amount.quantize(CENTS, rounding=ROUND_HALF_UP)
            # Checked after rounding so sub-cent amounts cannot reach zero
            if unit_amount is None or unit_amount <= 0:
                errors.append(f"Line {line_number}: unit amount must be at least 0.01")
            if errors:
                continue

            items.append(
                ProcedureItem(
                    line_number=line_number,
                    procedure_code=code,
                    quantity=raw.quantity,
                    unit_amount=unit_amount,
                    total_amount=(unit_amount * raw.quantity).quantize(CENTS),
                    notes=raw.notes,
                )
            )

        if errors:
            raise ValidationError(
                "Invalid procedure items", guard="procedure_items", errors=errors
            )
        return items

    async def _validate_providers(self, submission: ClaimSubmission) -> None:
        institution_status = await self._providers.get_institution_approval_status(
            submission.institution_id
        )
        if institution_status is None:
            raise NotFoundError(
                f"Medical institution {submission.institution_id} not found",
                guard="institution",
            )

        if submission.personnel_id is None:
            return

        personnel_status = await self._providers.get_personnel_approval_status(
            submission.personnel_id
        )
        if personnel_status is None:
            raise NotFoundError(
                f"Medical personnel {submission.personnel_id} not found",
                guard="personnel",
            )

        affiliation = await self._providers.get_personnel_institution(submission.personnel_id)
        if affiliation != submission.institution_id:
            logger.warning(
                f"Personnel {submission.personnel_id} is not affiliated with "
                f"institution {submission.institution_id}"
            )
            raise ValidationError(
                "Medical personnel is not affiliated with the submitting institution",
                guard="personnel_affiliation",
            )
