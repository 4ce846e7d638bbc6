"""
bulk_actions/services.py

Bulk workflow transition for a selection of content entities.

This file controls:
- Selection parsing
- Eligibility (moderated + latest revision)
- Transition resolution
- Batch preview grouped by workflow/transition
- Batch execution with revision stamping
"""

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.db import models
from django.utils import timezone

from bulk_actions.messenger import Messenger
from content.storage import EntityStorage, entity_type_of
from workflows.models import WorkflowTransition
from workflows.moderation import ModerationInformation
from workflows.state_machine import get_state_label
from workflows.validation import StateTransitionValidation

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "The selection does not support passing entities correctly."
NO_TRANSITIONS_MESSAGE = (
    "None of the selected entities have any transitions available to them. "
    "Your account may not have permission to transitions that might be supported."
)
DEFAULT_LOG_MESSAGE_MAX_LENGTH = 255


def log_message_max_length() -> int:
    return getattr(
        settings,
        "BULK_TRANSITION_LOG_MESSAGE_MAX_LENGTH",
        DEFAULT_LOG_MESSAGE_MAX_LENGTH,
    )


# ============================================================
# ERRORS
# ============================================================

class BulkTransitionError(ValidationError):
    pass


class UnsupportedSelection(BulkTransitionError):
    def __init__(self, message=UNSUPPORTED_MESSAGE):
        super().__init__(message, code="unsupported")


class NoTransitionsAvailable(BulkTransitionError):
    def __init__(self, message=NO_TRANSITIONS_MESSAGE):
        super().__init__(message, code="no_transitions")


# ============================================================
# RECORDS
# ============================================================

@dataclass(frozen=True)
class SelectedEntity:
    entity_type: str
    entity_id: str


@dataclass(frozen=True)
class TransitionChoice:
    workflow_id: str
    transition_id: str
    revision_log_message: str = ""


@dataclass
class EntityAnnotation:
    entity_type: str
    entity_id: str
    label: str


@dataclass
class TransitionOption:
    transition_id: str
    label: str
    to_state_label: str
    entities: list = field(default_factory=list)


@dataclass
class WorkflowOption:
    workflow_id: str
    label: str
    transitions: list = field(default_factory=list)

    def option_for(self, transition):
        for option in self.transitions:
            if option.transition_id == transition.transition_id:
                return option
        option = TransitionOption(
            transition_id=transition.transition_id,
            label=transition.label,
            to_state_label=transition.to_state.label,
        )
        self.transitions.append(option)
        return option


@dataclass
class TransitionChoices:
    total_entities: int
    workflows: list = field(default_factory=list)

    def as_dict(self):
        return asdict(self)


class OutcomeStatus(models.TextChoices):
    TRANSITIONED = "transitioned", "Transitioned"
    SKIPPED = "skipped", "Skipped"
    DENIED = "denied", "Access denied"
    MISSING = "missing", "Not found"


@dataclass(frozen=True)
class TransitionOutcome:
    entity_type: str
    entity_id: str
    status: str
    new_state: str | None = None


# ============================================================
# SELECTION
# ============================================================

def _selected_entity(row):
    if isinstance(row, SelectedEntity):
        return row
    if isinstance(row, Mapping):
        return SelectedEntity(row.get("entity_type"), row.get("entity_id"))
    if isinstance(row, (list, tuple)) and len(row) == 2:
        return SelectedEntity(row[0], row[1])
    raise UnsupportedSelection()


def parse_selection(rows) -> list:
    """
    Normalise selection rows. Any row without an entity type or id
    rejects the whole selection.
    """

    if not isinstance(rows, (list, tuple)) or not rows:
        raise UnsupportedSelection()

    selection = []
    for row in rows:
        entity = _selected_entity(row)
        if not entity.entity_type or entity.entity_id in (None, ""):
            raise UnsupportedSelection()
        selection.append(SelectedEntity(str(entity.entity_type), str(entity.entity_id)))
    return selection


def _ids_by_type(selection) -> dict:
    ids_by_type = {}
    for row in selection:
        ids_by_type.setdefault(row.entity_type, [])
        if row.entity_id not in ids_by_type[row.entity_type]:
            ids_by_type[row.entity_type].append(row.entity_id)
    return ids_by_type


# ============================================================
# ACTION
# ============================================================

class WorkflowTransitionAction:
    """
    Transition content to a new workflow state.

    All selected entities are passed through; only those in the chosen
    workflow with the chosen transition available are changed.
    """

    label = "Transition content to a new workflow state"

    def __init__(
        self,
        *,
        current_user,
        storage=None,
        moderation_info=None,
        validator=None,
        clock=None,
        messenger=None,
        configuration=None,
    ):
        self.current_user = current_user
        self.moderation_info = moderation_info or ModerationInformation()
        self.storage = storage or EntityStorage()
        self.validator = validator or StateTransitionValidation(self.moderation_info)
        self.clock = clock or timezone.now
        self.messenger = messenger or Messenger()
        self.configuration = {**self.default_configuration(), **(configuration or {})}
        self._request_time = None

    @staticmethod
    def default_configuration() -> dict:
        return {
            "workflow_id": "",
            "transition_id": "",
            "revision_log_message": "",
        }

    @property
    def request_time(self):
        # One timestamp for the whole batch.
        if self._request_time is None:
            self._request_time = self.clock()
        return self._request_time

    @property
    def choice(self) -> TransitionChoice:
        return TransitionChoice(**self.configuration)

    def submit_choice(self, choice: TransitionChoice) -> TransitionChoice:
        max_length = log_message_max_length()
        message = choice.revision_log_message or ""
        if len(message) > max_length:
            raise ValidationError(
                f"Revision log message may not exceed {max_length} characters."
            )
        if not WorkflowTransition.objects.filter(
            workflow_id=choice.workflow_id,
            transition_id=choice.transition_id,
        ).exists():
            raise ValidationError(
                f"Unknown transition '{choice.transition_id}' "
                f"for workflow '{choice.workflow_id}'."
            )

        self.configuration.update(
            workflow_id=choice.workflow_id,
            transition_id=choice.transition_id,
            revision_log_message=message,
        )
        return self.choice

    def access(self, entity, user=None) -> bool:
        """
        Delegates to the "update" permission of the entity's type.
        Transition permissions are checked per entity during execute().
        """

        user = user if user is not None else self.current_user
        if user is None or not user.is_authenticated:
            return False
        opts = entity._meta
        return user.has_perm(f"{opts.app_label}.change_{opts.model_name}")

    # --------------------------------------------------------
    # ELIGIBILITY
    # --------------------------------------------------------

    def resolve_workflow(self, entity, *, explain=False):
        """
        Return (workflow, entity at its latest revision), or None when
        the entity cannot change state. The given entity is not modified.
        """

        if not self.moderation_info.is_editorial_entity(entity):
            if explain:
                self.messenger.add_warning(
                    f'"{entity}" is not an editorial entity, it cannot change state.'
                )
            return None

        workflow = self.moderation_info.get_workflow_for_entity(entity)
        if workflow is None:
            if explain:
                self.messenger.add_warning(
                    f'"{entity}" is not a moderated entity, it cannot change state.'
                )
            return None

        # Only the latest revision is ever transitioned.
        if not entity.is_latest_revision():
            entity = self.storage.load_latest_revision(entity)
        return workflow, entity

    # --------------------------------------------------------
    # RESOLUTION
    # --------------------------------------------------------

    def resolve_new_state(self, entity, transition_id, *, workflow=None):
        matches = [
            transition
            for transition in self.validator.get_valid_transitions(entity, self.current_user)
            if transition.transition_id == transition_id
            and (workflow is None or transition.workflow_id == workflow.id)
        ]
        if len(matches) > 1:
            raise ImproperlyConfigured(
                f"Transition '{transition_id}' is offered more than once for {entity}."
            )
        if not matches:
            return None
        return matches[0].to_state.state_id

    # --------------------------------------------------------
    # EXECUTION
    # --------------------------------------------------------

    def execute(self, entity):
        """
        Apply the configured transition to one entity.
        Returns the saved entity, or None when it was skipped.
        """

        choice = self.choice
        resolved = self.resolve_workflow(entity)
        if resolved is None:
            logger.debug("Skipping %s: not moderated.", entity)
            return None

        workflow, entity = resolved
        if workflow.id != choice.workflow_id:
            logger.debug("Skipping %s: governed by workflow %s.", entity, workflow.id)
            return None

        new_state = self.resolve_new_state(entity, choice.transition_id, workflow=workflow)
        if new_state is None:
            logger.debug("Skipping %s: transition %s unavailable.", entity, choice.transition_id)
            return None

        previous_state = entity.moderation_state
        entity.moderation_state = new_state
        entity.new_revision = True
        entity.revision_log_message = choice.revision_log_message
        entity.revision_created_at = self.request_time
        entity.changed_at = self.request_time
        # Revisions without this flag are left out of the revision history.
        entity.revision_translation_affected = True
        entity.revision_user = self.current_user

        self.storage.save(entity)
        logger.info(
            "Transitioned %s %s from %s to %s via %s.",
            entity_type_of(entity),
            entity.pk,
            previous_state,
            new_state,
            choice.transition_id,
        )
        return entity

    def _normalize_selection(self, rows) -> list:
        # Ids in the same form load_multiple keys its results by.
        normalized = []
        for row in rows:
            try:
                entity_id = self.storage.normalize_id(row.entity_type, row.entity_id)
            except (LookupError, ValueError, ValidationError) as exc:
                raise UnsupportedSelection() from exc
            normalized.append(SelectedEntity(row.entity_type, entity_id))
        return normalized

    def _load_group(self, entity_type, entity_ids) -> dict:
        try:
            return self.storage.load_multiple(entity_type, entity_ids)
        except (LookupError, ValueError, ValidationError) as exc:
            raise UnsupportedSelection() from exc

    def apply_choice(self, selection, choice: TransitionChoice = None) -> list:
        if choice is not None:
            self.submit_choice(choice)

        rows = self._normalize_selection(parse_selection(selection))
        loaded = {
            entity_type: self._load_group(entity_type, entity_ids)
            for entity_type, entity_ids in _ids_by_type(rows).items()
        }

        outcomes = []
        processed = set()
        for row in rows:
            entity = loaded[row.entity_type].get(row.entity_id)
            if entity is None:
                status, new_state = OutcomeStatus.MISSING, None
            elif row in processed:
                # Each entity changes state at most once per batch.
                status, new_state = OutcomeStatus.SKIPPED, None
            elif not self.access(entity):
                status, new_state = OutcomeStatus.DENIED, None
            else:
                saved = self.execute(entity)
                if saved is None:
                    status, new_state = OutcomeStatus.SKIPPED, None
                else:
                    status, new_state = OutcomeStatus.TRANSITIONED, saved.moderation_state
            processed.add(row)
            outcomes.append(
                TransitionOutcome(
                    entity_type=row.entity_type,
                    entity_id=row.entity_id,
                    status=status,
                    new_state=new_state,
                )
            )
        return outcomes

    # --------------------------------------------------------
    # PREVIEW
    # --------------------------------------------------------

    def _annotate(self, entity, workflow, current_state_id) -> str:
        current_label = get_state_label(workflow, current_state_id)
        latest_label = get_state_label(workflow, entity.moderation_state)
        extra = f" (Current State: {current_label}"
        # Make it clear the latest revision differs from the current one.
        if current_label != latest_label:
            extra += f", Latest State: {latest_label}"
        extra += ")"
        return f"{entity}{extra}"

    def build_choices(self, selection) -> TransitionChoices:
        rows = self._normalize_selection(parse_selection(selection))

        workflows = {}
        for entity_type, entity_ids in _ids_by_type(rows).items():
            entities = self._load_group(entity_type, entity_ids)
            if len(entities) != len(entity_ids):
                raise UnsupportedSelection(
                    f"All entities of type {entity_type} were unable to be loaded."
                )

            for entity in entities.values():
                current_state_id = getattr(entity, "moderation_state", "")
                resolved = self.resolve_workflow(entity, explain=True)
                if resolved is None or not current_state_id:
                    continue

                workflow, latest = resolved
                label = self._annotate(latest, workflow, current_state_id)
                transitions = self.validator.get_valid_transitions(latest, self.current_user)
                for transition in transitions:
                    workflow_option = workflows.setdefault(
                        workflow.id,
                        WorkflowOption(workflow_id=workflow.id, label=workflow.label),
                    )
                    workflow_option.option_for(transition).entities.append(
                        EntityAnnotation(
                            entity_type=entity_type,
                            entity_id=str(latest.pk),
                            label=label,
                        )
                    )

        if not workflows:
            raise NoTransitionsAvailable()

        return TransitionChoices(
            total_entities=len(rows),
            workflows=list(workflows.values()),
        )
