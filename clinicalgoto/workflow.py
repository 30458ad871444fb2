import html
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from fastapi import Depends
from pydantic import ValidationError as PydanticValidationError

from . import models, schemas
from .errors import ConflictError, UpstreamError, ValidationError
from .notifications import Notifier, get_notifier
from .store import RegistrantStore, get_store, normalize_email
from .trials import DEFAULT_PAGE_SIZE, ClinicalTrialsClient, get_trial_search

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"

REGISTER_REQUIRED = ("fullName", "email", "phone")
REGISTER_AND_SEARCH_REQUIRED = ("fullName", "email", "phone", "condition", "location")


@dataclass
class RegistrationOutcome:
    registrant: models.Registrant
    trials: List[schemas.TrialSummary] = field(default_factory=list)
    searched: bool = False


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _escape(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return html.escape(value, quote=True)


def _describe(exc: PydanticValidationError) -> str:
    results = schemas.format_errors(exc)
    if any(result.loc == "email" for result in results):
        return "Invalid email format"
    return "; ".join(f"{result.loc}: {result.msg}" for result in results)


class RegistrationWorkflow:
    """Validate, de-duplicate, persist and (optionally) search for one registrant.

    Holds no state between requests. Registration success does not depend
    on the trial search: an upstream failure degrades to an empty list and
    the stored row is kept.
    """

    def __init__(
        self,
        store: RegistrantStore,
        trial_search: ClinicalTrialsClient,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.trial_search = trial_search
        self.notifier = notifier

    def validate(self, fields: Dict[str, Any], required: Sequence[str]) -> schemas.RegistrationForm:
        if not isinstance(fields, dict):
            raise ValidationError("Request body must be a JSON object")

        missing = [name for name in required if _is_blank(fields.get(name))]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        payload = {
            key: fields[key].strip() if isinstance(fields[key], str) else fields[key]
            for key in ("fullName", "email", "phone", "condition", "location", "address")
            if not _is_blank(fields.get(key))
        }
        # Only a literal JSON true counts as consent.
        payload["consent"] = fields.get("consent") is True
        try:
            return schemas.RegistrationForm(**payload)
        except PydanticValidationError as exc:
            raise ValidationError(_describe(exc)) from exc

    def _ensure_unique(self, email: str) -> None:
        if self.store.find_active_by_email(email) is not None:
            logger.info("Rejected duplicate registration for %s", normalize_email(email))
            raise ConflictError("An account with this email already exists.")

    def _sanitize(self, form: schemas.RegistrationForm) -> schemas.NewRegistrant:
        location = form.location or form.address or NOT_SPECIFIED
        return schemas.NewRegistrant(
            full_name=_escape(form.full_name),
            email=normalize_email(form.email),
            phone=_escape(form.phone),
            condition=_escape(form.condition or NOT_SPECIFIED),
            location=_escape(location),
            consent=form.consent,
        )

    def _notify(self, registrant: models.Registrant) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send_welcome(registrant)
        except Exception as exc:  # mail delivery never fails a registration
            logger.warning("Welcome email failed for %s: %s", registrant.email, exc)

    def _persist(self, fields: Dict[str, Any], required: Sequence[str]) -> models.Registrant:
        form = self.validate(fields, required)
        self._ensure_unique(form.email)
        registrant = self.store.insert(self._sanitize(form))
        logger.info("New registration: %s", registrant.email)
        return registrant

    def register(self, fields: Dict[str, Any]) -> models.Registrant:
        registrant = self._persist(fields, REGISTER_REQUIRED)
        self._notify(registrant)
        return registrant

    def register_and_search(
        self, fields: Dict[str, Any], page_size: int = DEFAULT_PAGE_SIZE
    ) -> RegistrationOutcome:
        registrant = self._persist(fields, REGISTER_AND_SEARCH_REQUIRED)
        outcome = RegistrationOutcome(registrant=registrant)

        try:
            # Search with the raw, unescaped query text the client submitted.
            result = self.trial_search.search(
                location=str(fields["location"]),
                condition=str(fields["condition"]),
                page_size=page_size,
            )
            outcome.trials = result.studies
            outcome.searched = True
        except UpstreamError as exc:
            logger.warning(
                "Trial search failed for registrant id=%s, returning no trials: %s",
                registrant.id,
                exc.message,
            )

        self._notify(registrant)
        return outcome


def get_workflow(
    store: RegistrantStore = Depends(get_store),
    trial_search: ClinicalTrialsClient = Depends(get_trial_search),
    notifier: Notifier = Depends(get_notifier),
) -> RegistrationWorkflow:
    return RegistrationWorkflow(store, trial_search, notifier)
