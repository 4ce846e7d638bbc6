from django.contrib.auth.models import Group
from django.contrib.contenttypes.models import ContentType
from django.db import models


# ============================================
# WORKFLOW
# ============================================

class Workflow(models.Model):
    """
    A named moderation state machine.
    Entity types opt in through `entity_types`.
    """

    id = models.SlugField(primary_key=True, max_length=64)
    label = models.CharField(max_length=255)

    entity_types = models.ManyToManyField(
        ContentType,
        related_name="moderation_workflows",
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.label


# ============================================
# STATES
# ============================================

class WorkflowState(models.Model):
    workflow = models.ForeignKey(
        Workflow,
        on_delete=models.CASCADE,
        related_name="states",
    )

    state_id = models.SlugField(max_length=64)
    label = models.CharField(max_length=255)

    # A published state always becomes the default revision.
    published = models.BooleanField(default=False)
    default_revision = models.BooleanField(default=False)

    weight = models.IntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=("workflow", "state_id"),
                name="uniq_state_id_per_workflow",
            ),
        ]
        ordering = ["weight", "state_id"]

    def __str__(self):
        return f"{self.workflow_id}:{self.state_id}"


# ============================================
# TRANSITIONS
# ============================================

class WorkflowTransition(models.Model):
    workflow = models.ForeignKey(
        Workflow,
        on_delete=models.CASCADE,
        related_name="transitions",
    )

    transition_id = models.SlugField(max_length=64)
    label = models.CharField(max_length=255)

    from_states = models.ManyToManyField(
        WorkflowState,
        related_name="outgoing_transitions",
    )
    to_state = models.ForeignKey(
        WorkflowState,
        on_delete=models.PROTECT,
        related_name="incoming_transitions",
    )

    allowed_groups = models.ManyToManyField(
        Group,
        related_name="workflow_transitions",
        blank=True,
    )

    weight = models.IntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=("workflow", "transition_id"),
                name="uniq_transition_id_per_workflow",
            ),
        ]
        ordering = ["weight", "transition_id"]

    def __str__(self):
        return f"{self.workflow_id}:{self.transition_id} → {self.to_state.state_id}"
