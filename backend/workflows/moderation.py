"""
workflows/moderation.py

Answers "which workflow governs this entity?".
Only revisionable editorial content can be moderated.
"""

from django.contrib.contenttypes.models import ContentType

from content.models import EditorialContent
from workflows.models import Workflow


class ModerationInformation:
    def is_editorial_entity(self, entity) -> bool:
        return isinstance(entity, EditorialContent)

    def get_workflow_for_entity_type(self, model):
        content_type = ContentType.objects.get_for_model(model)
        # An entity type is expected to sit in one workflow only;
        # lowest id wins if the configuration says otherwise.
        return (
            Workflow.objects.filter(entity_types=content_type)
            .order_by("id")
            .first()
        )

    def get_workflow_for_entity(self, entity):
        if not self.is_editorial_entity(entity):
            return None
        return self.get_workflow_for_entity_type(type(entity))

    def is_moderated_entity(self, entity) -> bool:
        return self.get_workflow_for_entity(entity) is not None
