from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey, GenericRelation
from django.contrib.contenttypes.models import ContentType
from django.db import models, transaction
from django.utils import timezone


# ============================================
# REVISION (IMMUTABLE SNAPSHOT)
# ============================================

class ContentRevision(models.Model):
    """
    Snapshot of an editorial entity at a point in time.
    Every save that asks for a new revision appends one row here.
    """

    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.CASCADE,
        related_name="+",
    )
    object_id = models.PositiveBigIntegerField()
    content_object = GenericForeignKey("content_type", "object_id")

    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    moderation_state = models.CharField(max_length=64, blank=True, default="")
    changed_at = models.DateTimeField(null=True, blank=True)

    log_message = models.TextField(blank=True)
    revision_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="content_revisions",
    )
    created_at = models.DateTimeField()

    # Only flagged revisions are listed in the revision history.
    translation_affected = models.BooleanField(null=True)
    is_default = models.BooleanField(default=False)

    class Meta:
        indexes = [
            models.Index(
                fields=["content_type", "object_id"],
                name="content_rev_target_idx",
            ),
        ]
        ordering = ["id"]

    def __str__(self):
        return f"{self.content_type_id}:{self.object_id} r{self.id} ({self.moderation_state})"


# ============================================
# EDITORIAL CONTENT (REVISIONABLE BASE)
# ============================================

class EditorialContent(models.Model):
    """
    Revisionable content. The table row always holds the default
    revision; newer non-default revisions live in ContentRevision only.
    """

    REVISION_FIELDS = ("title", "body", "moderation_state", "changed_at")
    # Fields whose change marks a revision as affecting the content.
    CONTENT_FIELDS = ("title", "body")

    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    moderation_state = models.CharField(max_length=64, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    changed_at = models.DateTimeField(null=True, blank=True)

    revision = models.ForeignKey(
        ContentRevision,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    revision_history = GenericRelation(ContentRevision)

    # Revision metadata consumed by the next save().
    new_revision = False
    revision_log_message = ""
    revision_created_at = None
    revision_user = None
    revision_translation_affected = None

    _loaded_revision_id = None

    class Meta:
        abstract = True
        ordering = ["id"]

    def __str__(self):
        return self.title

    # -------------------------------
    # REVISION LOOKUPS
    # -------------------------------

    @property
    def loaded_revision_id(self):
        return self._loaded_revision_id or self.revision_id

    @classmethod
    def from_revision(cls, revision):
        entity = cls.objects.get(pk=revision.object_id)
        for field in cls.REVISION_FIELDS:
            setattr(entity, field, getattr(revision, field))
        entity._loaded_revision_id = revision.pk
        return entity

    def refresh_from_db(self, *args, **kwargs):
        super().refresh_from_db(*args, **kwargs)
        self._loaded_revision_id = None

    def latest_revision_id(self):
        if self.pk is None:
            return None
        return (
            self.revision_history.order_by("-id")
            .values_list("id", flat=True)
            .first()
        )

    def is_latest_revision(self) -> bool:
        latest = self.latest_revision_id()
        return latest is None or latest == self.loaded_revision_id

    def is_default_revision(self) -> bool:
        return self.loaded_revision_id == self.revision_id

    def visible_revisions(self):
        return self.revision_history.filter(translation_affected=True).order_by("-id")

    # -------------------------------
    # SAVING
    # -------------------------------

    def _revision_snapshot(self) -> dict:
        return {field: getattr(self, field) for field in self.REVISION_FIELDS}

    def _content_changed(self) -> bool:
        if self.loaded_revision_id is None:
            return True
        previous = (
            ContentRevision.objects.filter(pk=self.loaded_revision_id)
            .values(*self.CONTENT_FIELDS)
            .first()
        )
        if previous is None:
            return True
        return any(previous[field] != getattr(self, field) for field in self.CONTENT_FIELDS)

    def _becomes_default_revision(self, workflow) -> bool:
        if self.pk is None or workflow is None or not self.moderation_state:
            return True

        state = workflow.states.filter(state_id=self.moderation_state).first()
        if state is None or state.published or state.default_revision:
            return True

        # A draft on top of published content stays pending until it
        # reaches a default-revision state itself.
        default_state_id = (
            type(self).objects.filter(pk=self.pk)
            .values_list("moderation_state", flat=True)
            .first()
        )
        default_state = workflow.states.filter(state_id=default_state_id).first()
        return default_state is None or not default_state.published

    def _point_default_revision_at(self, revision_id):
        self.revision_history.exclude(pk=revision_id).filter(is_default=True).update(
            is_default=False
        )
        self.revision_history.filter(pk=revision_id).update(is_default=True)
        type(self).objects.filter(pk=self.pk).update(revision_id=revision_id)
        self.revision_id = revision_id

    def save(self, *args, default_revision=None, **kwargs):
        from workflows.moderation import ModerationInformation
        from workflows.state_machine import initial_state

        workflow = ModerationInformation().get_workflow_for_entity(self)
        if workflow is not None and not self.moderation_state:
            state = initial_state(workflow)
            if state is not None:
                self.moderation_state = state.state_id

        if default_revision is None:
            default_revision = self._becomes_default_revision(workflow)
        if not default_revision and self.pk is None:
            raise ValueError("A new entity must be saved as its default revision.")

        creating_revision = self.new_revision or self.loaded_revision_id is None
        translation_affected = self.revision_translation_affected
        if translation_affected is None:
            translation_affected = self._content_changed()

        with transaction.atomic():
            if default_revision:
                super().save(*args, **kwargs)

            if creating_revision:
                revision = ContentRevision.objects.create(
                    content_type=ContentType.objects.get_for_model(type(self)),
                    object_id=self.pk,
                    log_message=self.revision_log_message or "",
                    revision_user=self.revision_user,
                    created_at=self.revision_created_at or timezone.now(),
                    translation_affected=translation_affected,
                    is_default=default_revision,
                    **self._revision_snapshot(),
                )
                self._loaded_revision_id = revision.pk
            else:
                ContentRevision.objects.filter(pk=self.loaded_revision_id).update(
                    translation_affected=translation_affected,
                    **self._revision_snapshot(),
                )

            if default_revision:
                self._point_default_revision_at(self.loaded_revision_id)

        self.new_revision = False


# ============================================
# CONCRETE ENTITY TYPES
# ============================================

class Article(EditorialContent):
    summary = models.TextField(blank=True)


class Page(EditorialContent):
    menu_weight = models.IntegerField(default=0)


class Tag(models.Model):
    """
    Plain taxonomy term. Not revisionable, never moderated.
    """

    name = models.CharField(max_length=100, unique=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name
