"""
content/storage.py

Entity storage addressed by entity type strings ("content.article").
Loads defaults, latest revisions and specific revisions; saves entities.
"""

import logging

from django.apps import apps
from django.contrib.contenttypes.models import ContentType

from content.models import ContentRevision, EditorialContent

logger = logging.getLogger(__name__)


def entity_type_of(entity) -> str:
    return entity._meta.label_lower


class EntityStorage:
    def get_model(self, entity_type: str):
        """
        Resolve "app_label.model_name". Raises LookupError when unknown.
        """

        try:
            return apps.get_model(entity_type)
        except ValueError as exc:
            raise LookupError(f"Malformed entity type '{entity_type}'.") from exc

    def normalize_id(self, entity_type: str, entity_id) -> str:
        """
        Canonical string form of a primary key, e.g. "07" -> "7".
        Raises ValidationError for ids the key field cannot hold.
        """

        model = self.get_model(entity_type)
        return str(model._meta.pk.to_python(entity_id))

    def load(self, entity_type: str, entity_id):
        model = self.get_model(entity_type)
        return model.objects.filter(pk=entity_id).first()

    def load_multiple(self, entity_type: str, entity_ids) -> dict:
        """
        Load entities keyed by str(pk). Ids that do not exist are absent
        from the result; callers compare counts to detect that.
        """

        model = self.get_model(entity_type)
        return {
            str(entity.pk): entity
            for entity in model.objects.filter(pk__in=list(entity_ids))
        }

    def get_latest_revision_id(self, entity):
        if not isinstance(entity, EditorialContent):
            return None
        return entity.latest_revision_id()

    def load_revision(self, entity_type: str, revision_id):
        model = self.get_model(entity_type)
        revision = ContentRevision.objects.filter(
            pk=revision_id,
            content_type=ContentType.objects.get_for_model(model),
        ).first()
        if revision is None:
            return None
        return model.from_revision(revision)

    def load_latest_revision(self, entity):
        revision_id = self.get_latest_revision_id(entity)
        if revision_id is None or revision_id == entity.loaded_revision_id:
            return entity
        latest = self.load_revision(entity_type_of(entity), revision_id)
        logger.debug(
            "Resolved %s %s to latest revision %s",
            entity_type_of(entity),
            entity.pk,
            revision_id,
        )
        return latest

    def save(self, entity):
        entity.save()
        return entity
