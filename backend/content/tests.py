from django.core.exceptions import ValidationError
from django.test import TestCase

from content.models import Article, ContentRevision, Page, Tag
from content.storage import EntityStorage, entity_type_of
from workflows.tests import create_editorial_workflow


def _save_revision(entity, **changes):
    for field, value in changes.items():
        setattr(entity, field, value)
    entity.new_revision = True
    entity.save()
    return entity


class EditorialContentRevisionTests(TestCase):
    def setUp(self):
        self.workflow = create_editorial_workflow()

    def test_new_article_starts_in_initial_state_with_default_revision(self):
        article = Article.objects.create(title="Harbor opening", body="Text")

        self.assertEqual(article.moderation_state, "draft")
        revision = ContentRevision.objects.get(pk=article.revision_id)
        self.assertTrue(revision.is_default)
        self.assertEqual(revision.title, "Harbor opening")
        self.assertTrue(article.is_latest_revision())
        self.assertTrue(article.is_default_revision())

    def test_published_revision_becomes_default(self):
        article = Article.objects.create(title="Harbor opening")
        _save_revision(article, moderation_state="published")

        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "published")
        self.assertEqual(article.revision_history.count(), 2)
        self.assertEqual(
            article.revision_history.filter(is_default=True).get().pk,
            article.revision_id,
        )

    def test_draft_on_top_of_published_stays_pending(self):
        article = Article.objects.create(title="Harbor opening")
        _save_revision(article, moderation_state="published")
        _save_revision(article, title="Harbor opening (updated)", moderation_state="draft")

        fresh = Article.objects.get(pk=article.pk)
        self.assertEqual(fresh.title, "Harbor opening")
        self.assertEqual(fresh.moderation_state, "published")
        self.assertFalse(fresh.is_latest_revision())
        self.assertNotEqual(fresh.latest_revision_id(), fresh.revision_id)

        pending = ContentRevision.objects.get(pk=fresh.latest_revision_id())
        self.assertFalse(pending.is_default)
        self.assertEqual(pending.moderation_state, "draft")

    def test_archived_state_replaces_published_default(self):
        article = Article.objects.create(title="Harbor opening")
        _save_revision(article, moderation_state="published")
        _save_revision(article, moderation_state="archived")

        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "archived")
        self.assertTrue(article.is_latest_revision())

    def test_state_only_change_is_hidden_from_revision_history(self):
        article = Article.objects.create(title="Harbor opening")
        _save_revision(article, moderation_state="published")

        latest = article.revision_history.order_by("-id").first()
        self.assertFalse(latest.translation_affected)
        self.assertNotIn(latest, list(article.visible_revisions()))

    def test_explicit_translation_affected_flag_is_listed(self):
        article = Article.objects.create(title="Harbor opening")
        article.revision_translation_affected = True
        _save_revision(article, moderation_state="published")

        latest = article.revision_history.order_by("-id").first()
        self.assertTrue(latest.translation_affected)
        self.assertEqual(article.visible_revisions().first(), latest)

    def test_unmoderated_page_keeps_blank_state(self):
        page = Page.objects.create(title="About us")
        _save_revision(page, title="About the newsroom")

        page.refresh_from_db()
        self.assertEqual(page.moderation_state, "")
        self.assertEqual(page.title, "About the newsroom")
        self.assertEqual(page.revision_history.count(), 2)

    def test_new_entity_cannot_be_saved_as_pending_revision(self):
        with self.assertRaises(ValueError):
            Article(title="Orphan").save(default_revision=False)


class EntityStorageTests(TestCase):
    def setUp(self):
        create_editorial_workflow()
        self.storage = EntityStorage()

    def test_entity_type_of_uses_app_label_and_model_name(self):
        article = Article.objects.create(title="Harbor opening")
        self.assertEqual(entity_type_of(article), "content.article")
        self.assertEqual(entity_type_of(Tag.objects.create(name="weather")), "content.tag")

    def test_unknown_and_malformed_entity_types_raise_lookup_error(self):
        with self.assertRaises(LookupError):
            self.storage.get_model("content.video")
        with self.assertRaises(LookupError):
            self.storage.get_model("article")

    def test_normalize_id_matches_load_multiple_keys(self):
        article = Article.objects.create(title="Harbor opening")

        self.assertEqual(self.storage.normalize_id("content.article", "07"), "7")
        padded = self.storage.normalize_id("content.article", f"00{article.pk}")
        self.assertIn(padded, self.storage.load_multiple("content.article", [padded]))
        with self.assertRaises(ValidationError):
            self.storage.normalize_id("content.article", "harbor")

    def test_load_multiple_skips_missing_ids(self):
        first = Article.objects.create(title="First")
        second = Article.objects.create(title="Second")

        loaded = self.storage.load_multiple(
            "content.article", [first.pk, str(second.pk), 987654]
        )

        self.assertEqual(set(loaded), {str(first.pk), str(second.pk)})
        self.assertEqual(loaded[str(second.pk)].title, "Second")

    def test_load_returns_none_for_missing_entity(self):
        self.assertIsNone(self.storage.load("content.article", 987654))

    def test_load_latest_revision_materialises_pending_draft(self):
        article = Article.objects.create(title="Harbor opening")
        _save_revision(article, moderation_state="published")
        _save_revision(article, title="Harbor opening (updated)", moderation_state="draft")

        fresh = self.storage.load("content.article", article.pk)
        latest = self.storage.load_latest_revision(fresh)

        self.assertIsNot(latest, fresh)
        self.assertEqual(latest.title, "Harbor opening (updated)")
        self.assertEqual(latest.moderation_state, "draft")
        self.assertTrue(latest.is_latest_revision())
        self.assertFalse(fresh.is_latest_revision())

    def test_load_latest_revision_returns_same_object_when_current(self):
        article = Article.objects.create(title="Harbor opening")
        fresh = self.storage.load("content.article", article.pk)
        self.assertIs(self.storage.load_latest_revision(fresh), fresh)

    def test_saving_latest_revision_as_published_updates_row(self):
        article = Article.objects.create(title="Harbor opening")
        _save_revision(article, moderation_state="published")
        _save_revision(article, title="Harbor opening (updated)", moderation_state="draft")

        latest = self.storage.load_latest_revision(
            self.storage.load("content.article", article.pk)
        )
        latest.moderation_state = "published"
        latest.new_revision = True
        self.storage.save(latest)

        fresh = self.storage.load("content.article", article.pk)
        self.assertEqual(fresh.title, "Harbor opening (updated)")
        self.assertEqual(fresh.moderation_state, "published")
        self.assertTrue(fresh.is_latest_revision())
