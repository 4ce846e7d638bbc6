import json
from datetime import datetime, timezone as dt_timezone
from io import StringIO
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser, Group, Permission
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import TestCase, override_settings

from bulk_actions.messenger import Messenger
from bulk_actions.services import (
    NO_TRANSITIONS_MESSAGE,
    UNSUPPORTED_MESSAGE,
    NoTransitionsAvailable,
    OutcomeStatus,
    SelectedEntity,
    TransitionChoice,
    UnsupportedSelection,
    WorkflowTransitionAction,
    parse_selection,
)
from content.admin import BulkTransitionActionForm
from content.models import Article, ContentRevision, Page, Tag
from content.storage import EntityStorage
from workflows.models import Workflow, WorkflowState, WorkflowTransition
from workflows.tests import create_editorial_workflow


User = get_user_model()

REQUEST_TIME = datetime(2026, 3, 2, 9, 30, tzinfo=dt_timezone.utc)


def _fixed_clock():
    return REQUEST_TIME


def _save_revision(entity, **changes):
    for field, value in changes.items():
        setattr(entity, field, value)
    entity.new_revision = True
    entity.save()
    return entity


class RecordingStorage(EntityStorage):
    def __init__(self):
        self.saved = []

    def save(self, entity):
        self.saved.append(entity)
        return super().save(entity)


class FailingStorage(EntityStorage):
    def save(self, entity):
        raise DatabaseError("disk full")


class StaticValidator:
    def __init__(self, transitions):
        self.transitions = transitions

    def get_valid_transitions(self, entity, user):
        return list(self.transitions)


class BulkTransitionTestCase(TestCase):
    """
    Editors may draft/publish articles and update articles and pages.
    Pages are editorial but not moderated; tags are not editorial.
    """

    def setUp(self):
        self.editor_group, _ = Group.objects.get_or_create(name="Editor")
        self.editor_group.permissions.add(
            Permission.objects.get(content_type__app_label="content", codename="change_article"),
            Permission.objects.get(content_type__app_label="content", codename="change_page"),
            Permission.objects.get(content_type__app_label="content", codename="change_tag"),
        )
        self.workflow = create_editorial_workflow(editor_group=self.editor_group)

        self.editor = User.objects.create_user(username="editor", password="testpass123")
        self.editor.groups.add(self.editor_group)
        self.messenger = Messenger()

    def _action(self, user=None, **kwargs):
        kwargs.setdefault("clock", _fixed_clock)
        kwargs.setdefault("messenger", self.messenger)
        return WorkflowTransitionAction(current_user=user or self.editor, **kwargs)

    def _article(self, title, state="draft"):
        article = Article.objects.create(title=title)
        if state != "draft":
            _save_revision(article, moderation_state=state)
        return Article.objects.get(pk=article.pk)

    def _article_with_pending_draft(self, title):
        article = Article.objects.create(title=title)
        _save_revision(article, moderation_state="published")
        _save_revision(article, title=f"{title} (updated)", moderation_state="draft")
        return Article.objects.get(pk=article.pk)


# ============================================================
# ELIGIBILITY
# ============================================================

class EligibilityFilterTests(BulkTransitionTestCase):
    def test_non_editorial_entity_is_ineligible_and_explained(self):
        tag = Tag.objects.create(name="weather")

        self.assertIsNone(self._action().resolve_workflow(tag, explain=True))
        self.assertEqual(
            self.messenger.messages[-1][1],
            '"weather" is not an editorial entity, it cannot change state.',
        )

    def test_unmoderated_entity_is_ineligible_and_explained(self):
        page = Page.objects.create(title="About us")

        self.assertIsNone(self._action().resolve_workflow(page, explain=True))
        self.assertEqual(
            self.messenger.messages[-1][1],
            '"About us" is not a moderated entity, it cannot change state.',
        )

    def test_diagnostics_are_silent_outside_explain_mode(self):
        page = Page.objects.create(title="About us")
        self.assertIsNone(self._action().resolve_workflow(page))
        self.assertEqual(self.messenger.messages, [])

    def test_ineligible_reference_is_not_mutated(self):
        page = Page.objects.create(title="About us")
        before = (page.title, page.moderation_state, page.loaded_revision_id)

        self._action().resolve_workflow(page, explain=True)

        self.assertEqual(before, (page.title, page.moderation_state, page.loaded_revision_id))

    def test_latest_entity_is_returned_as_is(self):
        article = self._article("Harbor opening")

        workflow, resolved = self._action().resolve_workflow(article)

        self.assertEqual(workflow, self.workflow)
        self.assertIs(resolved, article)

    def test_stale_reference_is_replaced_by_latest_revision(self):
        article = self._article_with_pending_draft("Harbor opening")
        self.assertFalse(article.is_latest_revision())

        _, resolved = self._action().resolve_workflow(article)

        self.assertIsNot(resolved, article)
        self.assertTrue(resolved.is_latest_revision())
        self.assertEqual(resolved.title, "Harbor opening (updated)")
        # The caller's object still points at the default revision.
        self.assertEqual(article.title, "Harbor opening")
        self.assertFalse(article.is_latest_revision())


# ============================================================
# RESOLUTION
# ============================================================

class TransitionResolverTests(BulkTransitionTestCase):
    def test_resolves_destination_state_for_valid_transition(self):
        article = self._article("Harbor opening")
        self.assertEqual(self._action().resolve_new_state(article, "publish"), "published")

    def test_unknown_transition_is_no_match(self):
        article = self._article("Harbor opening")
        self.assertIsNone(self._action().resolve_new_state(article, "unpublish"))

    def test_transition_without_permission_is_no_match(self):
        article = self._article("Harbor opening", state="published")
        self.assertIsNone(self._action().resolve_new_state(article, "archive"))

    def test_transition_from_another_workflow_is_no_match(self):
        article = self._article("Harbor opening")
        other = Workflow(id="legal_review", label="Legal review")
        self.assertIsNone(
            self._action().resolve_new_state(article, "publish", workflow=other)
        )

    def test_resolved_state_is_always_an_oracle_destination(self):
        admin = User.objects.create_superuser(
            username="root", email="root@example.com", password="testpass123"
        )
        article = self._article("Harbor opening", state="published")
        action = self._action(user=admin)
        offered = action.validator.get_valid_transitions(article, admin)
        destinations = {transition.to_state.state_id for transition in offered}

        for transition_id in ["create_new_draft", "publish", "archive", "restore", ""]:
            state = action.resolve_new_state(article, transition_id)
            if transition_id in {t.transition_id for t in offered}:
                self.assertIn(state, destinations)
            else:
                self.assertIsNone(state)

    def test_duplicate_transition_ids_are_rejected(self):
        article = self._article("Harbor opening")
        duplicated = [
            SimpleNamespace(
                transition_id="publish",
                workflow_id="editorial",
                to_state=SimpleNamespace(state_id="published"),
            ),
            SimpleNamespace(
                transition_id="publish",
                workflow_id="editorial",
                to_state=SimpleNamespace(state_id="archived"),
            ),
        ]
        action = self._action(validator=StaticValidator(duplicated))

        with self.assertRaises(ImproperlyConfigured):
            action.resolve_new_state(article, "publish")


# ============================================================
# EXECUTION
# ============================================================

class BatchExecutorTests(BulkTransitionTestCase):
    def test_mixed_selection_transitions_only_the_moderated_entity(self):
        article = self._article("Harbor opening")
        page = Page.objects.create(title="About us")
        page_revisions = page.revision_history.count()

        outcomes = self._action().apply_choice(
            [("content.article", article.pk), ("content.page", page.pk)],
            TransitionChoice("editorial", "publish", "Publishing the morning batch"),
        )

        self.assertEqual(
            [(outcome.status, outcome.new_state) for outcome in outcomes],
            [(OutcomeStatus.TRANSITIONED, "published"), (OutcomeStatus.SKIPPED, None)],
        )
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "published")
        self.assertEqual(article.revision_history.count(), 2)

        page.refresh_from_db()
        self.assertEqual(page.moderation_state, "")
        self.assertEqual(page.revision_history.count(), page_revisions)

    def test_persisted_revision_carries_batch_metadata(self):
        article = self._article("Harbor opening")

        self._action().apply_choice(
            [{"entity_type": "content.article", "entity_id": article.pk}],
            TransitionChoice("editorial", "publish", "Publishing the morning batch"),
        )

        article.refresh_from_db()
        revision = ContentRevision.objects.get(pk=article.revision_id)
        self.assertEqual(revision.moderation_state, "published")
        self.assertEqual(revision.log_message, "Publishing the morning batch")
        self.assertEqual(revision.created_at, REQUEST_TIME)
        self.assertEqual(revision.changed_at, REQUEST_TIME)
        self.assertEqual(revision.revision_user, self.editor)
        self.assertTrue(revision.translation_affected)
        self.assertTrue(revision.is_default)
        self.assertEqual(article.changed_at, REQUEST_TIME)
        self.assertEqual(article.visible_revisions().first(), revision)

    def test_no_match_is_never_persisted(self):
        article = self._article("Harbor opening", state="archived")
        storage = RecordingStorage()

        outcomes = self._action(storage=storage).apply_choice(
            [("content.article", article.pk)],
            TransitionChoice("editorial", "publish"),
        )

        self.assertEqual(outcomes[0].status, OutcomeStatus.SKIPPED)
        self.assertEqual(storage.saved, [])

    def test_entity_in_other_workflow_is_skipped(self):
        other = Workflow.objects.create(id="legal_review", label="Legal review")
        cleared = WorkflowState.objects.create(workflow=other, state_id="cleared", label="Cleared")
        WorkflowTransition.objects.create(
            workflow=other, transition_id="publish", label="Publish", to_state=cleared
        )
        article = self._article("Harbor opening")

        outcomes = self._action().apply_choice(
            [("content.article", article.pk)],
            TransitionChoice("legal_review", "publish"),
        )

        self.assertEqual(outcomes[0].status, OutcomeStatus.SKIPPED)
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "draft")

    def test_latest_revision_is_the_one_transitioned(self):
        article = self._article_with_pending_draft("Harbor opening")

        self._action().apply_choice(
            [("content.article", article.pk)],
            TransitionChoice("editorial", "publish"),
        )

        article.refresh_from_db()
        self.assertEqual(article.title, "Harbor opening (updated)")
        self.assertEqual(article.moderation_state, "published")
        self.assertTrue(article.is_latest_revision())

    def test_entities_without_update_access_are_denied(self):
        outsider = User.objects.create_user(username="outsider", password="testpass123")
        outsider.groups.add(Group.objects.create(name="Contributors"))
        article = self._article("Harbor opening")

        outcomes = self._action(user=outsider).apply_choice(
            [("content.article", article.pk)],
            TransitionChoice("editorial", "publish"),
        )

        self.assertEqual(outcomes[0].status, OutcomeStatus.DENIED)
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "draft")

    def test_missing_entities_are_reported(self):
        outcomes = self._action().apply_choice(
            [("content.article", 987654)],
            TransitionChoice("editorial", "publish"),
        )
        self.assertEqual(outcomes[0].status, OutcomeStatus.MISSING)

    def test_repeated_row_is_transitioned_once(self):
        article = self._article("Harbor opening", state="published")
        revisions_before = article.revision_history.count()

        outcomes = self._action().apply_choice(
            [("content.article", article.pk), ("content.article", str(article.pk))],
            TransitionChoice("editorial", "publish"),
        )

        self.assertEqual(
            [(outcome.status, outcome.new_state) for outcome in outcomes],
            [(OutcomeStatus.TRANSITIONED, "published"), (OutcomeStatus.SKIPPED, None)],
        )
        self.assertEqual(article.revision_history.count(), revisions_before + 1)

    def test_padded_id_is_applied_to_the_same_entity(self):
        article = self._article("Harbor opening")

        outcomes = self._action().apply_choice(
            [("content.article", f"0{article.pk}")],
            TransitionChoice("editorial", "publish"),
        )

        self.assertEqual(outcomes[0].status, OutcomeStatus.TRANSITIONED)
        self.assertEqual(outcomes[0].entity_id, str(article.pk))
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "published")

    def test_clock_is_read_once_per_batch(self):
        calls = []

        def clock():
            calls.append(1)
            return REQUEST_TIME

        first = self._article("First")
        second = self._article("Second")

        self._action(clock=clock).apply_choice(
            [("content.article", first.pk), ("content.article", second.pk)],
            TransitionChoice("editorial", "publish"),
        )

        self.assertEqual(len(calls), 1)
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.changed_at, second.changed_at)

    def test_storage_failures_propagate(self):
        article = self._article("Harbor opening")

        with self.assertRaises(DatabaseError):
            self._action(storage=FailingStorage()).apply_choice(
                [("content.article", article.pk)],
                TransitionChoice("editorial", "publish"),
            )

    def test_malformed_selection_is_rejected_before_any_change(self):
        article = self._article("Harbor opening")

        with self.assertRaises(UnsupportedSelection):
            self._action().apply_choice(
                [("content.article", article.pk), ("content.article", "")],
                TransitionChoice("editorial", "publish"),
            )

        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "draft")


class TransitionChoiceTests(BulkTransitionTestCase):
    def test_default_configuration_is_empty(self):
        self.assertEqual(
            WorkflowTransitionAction.default_configuration(),
            {"workflow_id": "", "transition_id": "", "revision_log_message": ""},
        )
        self.assertEqual(self._action().choice, TransitionChoice("", "", ""))

    def test_submitted_choice_is_stored(self):
        action = self._action()
        action.submit_choice(TransitionChoice("editorial", "publish", "Go live"))
        self.assertEqual(action.choice, TransitionChoice("editorial", "publish", "Go live"))

    def test_unknown_transition_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._action().submit_choice(TransitionChoice("editorial", "unpublish"))

    @override_settings(BULK_TRANSITION_LOG_MESSAGE_MAX_LENGTH=10)
    def test_long_log_message_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._action().submit_choice(
                TransitionChoice("editorial", "publish", "A message that is far too long")
            )


class SelectionParsingTests(TestCase):
    def test_accepts_records_mappings_and_pairs(self):
        self.assertEqual(
            parse_selection(
                [
                    SelectedEntity("content.article", 1),
                    {"entity_type": "content.page", "entity_id": "2"},
                    ("content.tag", 3),
                ]
            ),
            [
                SelectedEntity("content.article", "1"),
                SelectedEntity("content.page", "2"),
                SelectedEntity("content.tag", "3"),
            ],
        )

    def test_rows_missing_metadata_are_unsupported(self):
        for rows in (
            [],
            5,
            "content.article:4",
            {"entity_type": "content.article", "entity_id": 4},
            [{"entity_type": "content.article"}],
            [("", 4)],
            ["content.article:4"],
        ):
            with self.assertRaises(UnsupportedSelection):
                parse_selection(rows)


# ============================================================
# PREVIEW
# ============================================================

class BatchPreviewTests(BulkTransitionTestCase):
    def test_groups_entities_by_workflow_and_transition(self):
        first = self._article("First draft")
        second = self._article("Live story", state="published")

        choices = self._action().build_choices(
            [("content.article", first.pk), ("content.article", second.pk)]
        )

        self.assertEqual(choices.total_entities, 2)
        self.assertEqual(len(choices.workflows), 1)
        workflow = choices.workflows[0]
        self.assertEqual((workflow.workflow_id, workflow.label), ("editorial", "Editorial"))
        self.assertEqual(
            [option.transition_id for option in workflow.transitions],
            ["create_new_draft", "publish"],
        )
        publish = workflow.transitions[1]
        self.assertEqual(publish.label, "Publish")
        self.assertEqual(publish.to_state_label, "Published")
        self.assertEqual(
            [entity.label for entity in publish.entities],
            [
                "First draft (Current State: Draft)",
                "Live story (Current State: Published)",
            ],
        )

    def test_annotation_distinguishes_current_and_latest_state(self):
        article = self._article_with_pending_draft("Harbor opening")

        choices = self._action().build_choices([("content.article", article.pk)])

        entity = choices.workflows[0].transitions[0].entities[0]
        self.assertEqual(
            entity.label,
            "Harbor opening (updated) (Current State: Published, Latest State: Draft)",
        )

    def test_heterogeneous_selection_explains_ineligible_entities(self):
        article = self._article("Harbor opening")
        page = Page.objects.create(title="About us")
        tag = Tag.objects.create(name="weather")

        choices = self._action().build_choices(
            [
                ("content.article", article.pk),
                ("content.page", page.pk),
                ("content.tag", tag.pk),
            ]
        )

        self.assertEqual(choices.total_entities, 3)
        member_ids = {
            entity.entity_id
            for option in choices.workflows[0].transitions
            for entity in option.entities
        }
        self.assertEqual(member_ids, {str(article.pk)})
        self.assertEqual(
            [message for _, message in self.messenger.messages],
            [
                '"About us" is not a moderated entity, it cannot change state.',
                '"weather" is not an editorial entity, it cannot change state.',
            ],
        )

    def test_row_missing_metadata_fails_closed(self):
        article = self._article("Harbor opening")

        with self.assertRaises(UnsupportedSelection) as ctx:
            self._action().build_choices(
                [
                    {"entity_type": "content.article", "entity_id": article.pk},
                    {"entity_type": "", "entity_id": article.pk},
                ]
            )

        self.assertEqual(ctx.exception.code, "unsupported")
        self.assertEqual(ctx.exception.messages, [UNSUPPORTED_MESSAGE])

    def test_partially_loaded_type_fails_closed(self):
        article = self._article("Harbor opening")

        with self.assertRaises(UnsupportedSelection) as ctx:
            self._action().build_choices(
                [("content.article", article.pk), ("content.article", 987654)]
            )

        self.assertEqual(
            ctx.exception.messages,
            ["All entities of type content.article were unable to be loaded."],
        )

    def test_padded_and_repeated_ids_count_as_one_entity(self):
        article = self._article("Harbor opening")

        choices = self._action().build_choices(
            [("content.article", f"0{article.pk}"), ("content.article", article.pk)]
        )

        publish = choices.workflows[0].transitions[1]
        self.assertEqual(
            [entity.entity_id for entity in publish.entities], [str(article.pk)]
        )

    def test_non_numeric_id_is_unsupported(self):
        with self.assertRaises(UnsupportedSelection):
            self._action().build_choices([("content.article", "harbor")])

    def test_unknown_entity_type_is_unsupported(self):
        with self.assertRaises(UnsupportedSelection):
            self._action().build_choices([("content.video", 1)])

    def test_terminal_states_have_no_transitions_available(self):
        first = self._article("Old story", state="published")
        _save_revision(first, moderation_state="archived")
        second = self._article("Older story", state="published")
        _save_revision(second, moderation_state="archived")

        with self.assertRaises(NoTransitionsAvailable) as ctx:
            self._action().build_choices(
                [("content.article", first.pk), ("content.article", second.pk)]
            )

        self.assertEqual(ctx.exception.code, "no_transitions")
        self.assertEqual(ctx.exception.messages, [NO_TRANSITIONS_MESSAGE])

    def test_user_without_transition_permissions_sees_none(self):
        outsider = User.objects.create_user(username="outsider", password="testpass123")
        article = self._article("Harbor opening")

        with self.assertRaises(NoTransitionsAvailable):
            self._action(user=outsider).build_choices([("content.article", article.pk)])


class AccessCheckTests(BulkTransitionTestCase):
    def test_update_permission_grants_access(self):
        article = self._article("Harbor opening")
        action = self._action()

        self.assertTrue(action.access(article))
        self.assertFalse(action.access(article, AnonymousUser()))
        self.assertFalse(
            action.access(
                article,
                User.objects.create_user(username="reader", password="testpass123"),
            )
        )


# ============================================================
# HOST SURFACES
# ============================================================

class BulkTransitionApiTests(BulkTransitionTestCase):
    def _post(self, url, payload):
        return self.client.post(
            url,
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_endpoints_require_authentication(self):
        response = self._post("/api/bulk/transitions/choices", {"selection": []})
        self.assertEqual(response.status_code, 401)
        response = self._post("/api/bulk/transitions/apply", {"selection": []})
        self.assertEqual(response.status_code, 401)

    def test_choices_endpoint_returns_grouped_transitions(self):
        article = self._article("Harbor opening")
        page = Page.objects.create(title="About us")
        self.client.force_login(self.editor)

        response = self._post(
            "/api/bulk/transitions/choices",
            {
                "selection": [
                    {"entity_type": "content.article", "entity_id": article.pk},
                    {"entity_type": "content.page", "entity_id": page.pk},
                ]
            },
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["total_entities"], 2)
        self.assertEqual(payload["workflows"][0]["workflow_id"], "editorial")
        transition_ids = [t["transition_id"] for t in payload["workflows"][0]["transitions"]]
        self.assertEqual(transition_ids, ["create_new_draft", "publish"])
        self.assertEqual(payload["messages"][0]["level"], "warning")

    def test_choices_endpoint_reports_unsupported_selection(self):
        self.client.force_login(self.editor)
        response = self._post(
            "/api/bulk/transitions/choices",
            {"selection": [{"entity_type": "content.article"}]},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "unsupported")

    def test_non_list_selection_returns_400(self):
        self.client.force_login(self.editor)

        response = self._post("/api/bulk/transitions/choices", {"selection": 5})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "unsupported")

        response = self._post(
            "/api/bulk/transitions/apply",
            {"selection": 5, "workflow_id": "editorial", "transition_id": "publish"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "unsupported")

    def test_non_string_choice_fields_return_400(self):
        article = self._article("Harbor opening")
        self.client.force_login(self.editor)
        selection = [{"entity_type": "content.article", "entity_id": article.pk}]

        for overrides in (
            {"revision_log_message": 5},
            {"workflow_id": ["editorial"]},
            {"transition_id": {"id": "publish"}},
        ):
            payload = {
                "selection": selection,
                "workflow_id": "editorial",
                "transition_id": "publish",
                **overrides,
            }
            response = self._post("/api/bulk/transitions/apply", payload)
            self.assertEqual(response.status_code, 400)

        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "draft")

    def test_invalid_json_returns_400(self):
        self.client.force_login(self.editor)
        response = self.client.post(
            "/api/bulk/transitions/choices",
            data="{not json",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    def test_apply_endpoint_transitions_selection(self):
        article = self._article("Harbor opening")
        self.client.force_login(self.editor)

        response = self._post(
            "/api/bulk/transitions/apply",
            {
                "selection": [{"entity_type": "content.article", "entity_id": article.pk}],
                "workflow_id": "editorial",
                "transition_id": "publish",
                "revision_log_message": "Go live",
            },
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["transitioned"], 1)
        self.assertEqual(payload["results"][0]["new_state"], "published")
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "published")

    def test_apply_endpoint_requires_choice(self):
        self.client.force_login(self.editor)
        response = self._post(
            "/api/bulk/transitions/apply",
            {"selection": [{"entity_type": "content.article", "entity_id": 1}]},
        )
        self.assertEqual(response.status_code, 400)


class BulkTransitionCommandTests(BulkTransitionTestCase):
    def test_command_applies_transition(self):
        article = self._article("Harbor opening")
        out = StringIO()

        call_command(
            "bulk_transition",
            f"content.article:{article.pk}",
            "--user",
            "editor",
            "--workflow",
            "editorial",
            "--transition",
            "publish",
            "--message",
            "Published from the command line",
            stdout=out,
        )

        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "published")
        self.assertIn("transitioned=1", out.getvalue())

    def test_command_preview_lists_transitions(self):
        article = self._article("Harbor opening")
        out = StringIO()

        call_command(
            "bulk_transition",
            f"content.article:{article.pk}",
            "--user",
            "editor",
            "--preview",
            stdout=out,
            stderr=StringIO(),
        )

        self.assertIn("Workflow: Editorial (editorial)", out.getvalue())
        self.assertIn("publish: Publish -> Published (1 of 1)", out.getvalue())

    def test_command_reports_malformed_targets(self):
        with self.assertRaises(CommandError):
            call_command(
                "bulk_transition",
                "content.article",
                "--user",
                "editor",
                "--workflow",
                "editorial",
                "--transition",
                "publish",
                stdout=StringIO(),
            )

    def test_command_rejects_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command(
                "bulk_transition",
                "content.article:1",
                "--user",
                "nobody",
                "--preview",
                stdout=StringIO(),
            )


class AdminBulkActionTests(BulkTransitionTestCase):
    def setUp(self):
        super().setUp()
        self.superuser = User.objects.create_superuser(
            username="root", email="root@example.com", password="testpass123"
        )
        self.client.force_login(self.superuser)

    def test_admin_action_transitions_selected_articles(self):
        article = self._article("Harbor opening")

        response = self.client.post(
            "/admin/content/article/",
            {
                "action": "transition_moderation_state",
                "_selected_action": [str(article.pk)],
                "workflow_id": "editorial",
                "transition_id": "publish",
                "revision_log_message": "Published from admin",
            },
        )

        self.assertEqual(response.status_code, 302)
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "published")
        revision = ContentRevision.objects.get(pk=article.revision_id)
        self.assertEqual(revision.log_message, "Published from admin")
        self.assertEqual(revision.revision_user, self.superuser)

    def test_admin_action_without_choice_changes_nothing(self):
        article = self._article("Harbor opening")

        response = self.client.post(
            "/admin/content/article/",
            {
                "action": "transition_moderation_state",
                "_selected_action": [str(article.pk)],
            },
        )

        self.assertEqual(response.status_code, 302)
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "draft")

    @override_settings(BULK_TRANSITION_LOG_MESSAGE_MAX_LENGTH=10)
    def test_action_form_uses_configured_log_message_limit(self):
        too_long = BulkTransitionActionForm(data={"revision_log_message": "x" * 11})
        self.assertIn("revision_log_message", too_long.errors)

        within = BulkTransitionActionForm(data={"revision_log_message": "x" * 10})
        self.assertNotIn("revision_log_message", within.errors)

    def test_admin_preview_action_does_not_change_content(self):
        article = self._article("Harbor opening")

        response = self.client.post(
            "/admin/content/article/",
            {
                "action": "preview_transitions",
                "_selected_action": [str(article.pk)],
            },
        )

        self.assertEqual(response.status_code, 302)
        article.refresh_from_db()
        self.assertEqual(article.moderation_state, "draft")
        self.assertEqual(article.revision_history.count(), 1)
