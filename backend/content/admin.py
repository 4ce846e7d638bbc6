from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm
from django.core import validators
from django.core.exceptions import ValidationError

from .models import Article, ContentRevision, Page, Tag
from .storage import entity_type_of
from bulk_actions.messenger import RequestMessenger
from bulk_actions.services import (
    OutcomeStatus,
    SelectedEntity,
    TransitionChoice,
    WorkflowTransitionAction,
    log_message_max_length,
)


class BulkTransitionActionForm(ActionForm):
    workflow_id = forms.CharField(required=False, label="Workflow")
    transition_id = forms.CharField(required=False, label="Transition")
    revision_log_message = forms.CharField(
        required=False,
        label="Revision log message",
        widget=forms.Textarea(
            attrs={
                "rows": 2,
                "cols": 40,
                "placeholder": "Why are you making this transition?",
            }
        ),
        help_text='This message will display in the "Revisions" history of each piece of content.',
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Same limit submit_choice() enforces.
        max_length = log_message_max_length()
        field = self.fields["revision_log_message"]
        field.max_length = max_length
        field.validators.append(validators.MaxLengthValidator(max_length))
        field.widget.attrs["maxlength"] = str(max_length)


class EditorialContentAdmin(admin.ModelAdmin):
    action_form = BulkTransitionActionForm
    list_display = (
        "title",
        "moderation_state",
        "changed_at",
        "revision",
    )
    list_filter = ("moderation_state",)
    search_fields = ("title", "body")
    readonly_fields = ("moderation_state", "created_at", "changed_at", "revision")
    actions = ["preview_transitions", "transition_moderation_state"]

    def _selection(self, queryset):
        return [SelectedEntity(entity_type_of(obj), obj.pk) for obj in queryset]

    def preview_transitions(self, request, queryset):
        messenger = RequestMessenger(request)
        action = WorkflowTransitionAction(current_user=request.user, messenger=messenger)
        try:
            choices = action.build_choices(self._selection(queryset))
        except ValidationError as exc:
            messenger.add_error(exc.messages[0])
            return

        for workflow in choices.workflows:
            for transition in workflow.transitions:
                messenger.add_message(
                    f"Workflow: {workflow.label} / {transition.label}: "
                    f"{len(transition.entities)} of {choices.total_entities} "
                    f"selected entities can make the transition to {transition.to_state_label}",
                    messages.INFO,
                )

    preview_transitions.short_description = "Preview available workflow transitions"

    def transition_moderation_state(self, request, queryset):
        messenger = RequestMessenger(request)
        workflow_id = (request.POST.get("workflow_id") or "").strip()
        transition_id = (request.POST.get("transition_id") or "").strip()
        if not workflow_id or not transition_id:
            messenger.add_error(
                "Transition action requires a workflow and a transition."
            )
            return

        action = WorkflowTransitionAction(current_user=request.user, messenger=messenger)
        try:
            outcomes = action.apply_choice(
                self._selection(queryset),
                TransitionChoice(
                    workflow_id=workflow_id,
                    transition_id=transition_id,
                    revision_log_message=(request.POST.get("revision_log_message") or "").strip(),
                ),
            )
        except ValidationError as exc:
            messenger.add_error(exc.messages[0])
            return

        transitioned = sum(
            1 for outcome in outcomes if outcome.status == OutcomeStatus.TRANSITIONED
        )
        if transitioned:
            self.message_user(
                request,
                f"{transitioned} of {len(outcomes)} item(s) transitioned.",
                messages.SUCCESS,
            )
        else:
            self.message_user(
                request,
                "None of the selected items could make that transition.",
                messages.WARNING,
            )

    transition_moderation_state.short_description = "Transition selected content"


@admin.register(Article)
class ArticleAdmin(EditorialContentAdmin):
    pass


@admin.register(Page)
class PageAdmin(EditorialContentAdmin):
    list_display = EditorialContentAdmin.list_display + ("menu_weight",)


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    list_display = ("name",)
    search_fields = ("name",)


@admin.register(ContentRevision)
class ContentRevisionAdmin(admin.ModelAdmin):
    """
    Read-only revision history.
    """

    list_display = (
        "id",
        "content_type",
        "object_id",
        "moderation_state",
        "is_default",
        "revision_user",
        "created_at",
    )
    list_filter = ("content_type", "moderation_state", "is_default")
    readonly_fields = (
        "content_type",
        "object_id",
        "title",
        "body",
        "moderation_state",
        "changed_at",
        "log_message",
        "revision_user",
        "created_at",
        "translation_affected",
        "is_default",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
