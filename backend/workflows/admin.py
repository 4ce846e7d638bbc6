from django.contrib import admin

from .models import Workflow, WorkflowState, WorkflowTransition


class WorkflowStateInline(admin.TabularInline):
    model = WorkflowState
    extra = 0
    fields = ("state_id", "label", "published", "default_revision", "weight")


@admin.register(Workflow)
class WorkflowAdmin(admin.ModelAdmin):
    list_display = ("id", "label", "created_at")
    search_fields = ("id", "label")
    filter_horizontal = ("entity_types",)
    inlines = [WorkflowStateInline]


@admin.register(WorkflowTransition)
class WorkflowTransitionAdmin(admin.ModelAdmin):
    list_display = ("transition_id", "label", "workflow", "to_state", "weight")
    list_filter = ("workflow",)
    search_fields = ("transition_id", "label")
    filter_horizontal = ("from_states", "allowed_groups")
