from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser, Group
from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import ValidationError
from django.test import TestCase

from content.models import Article, Page, Tag
from workflows.models import Workflow, WorkflowState, WorkflowTransition
from workflows.moderation import ModerationInformation
from workflows.state_machine import get_state_label, initial_state, transitions_from_state
from workflows.validation import StateTransitionValidation, can_use_transition


User = get_user_model()


def create_editorial_workflow(*, editor_group=None, entity_models=(Article,)):
    """
    draft -> published -> archived, with "archived" as a dead end.
    Editors may draft and publish; archiving is left to admins.
    """

    workflow = Workflow.objects.create(id="editorial", label="Editorial")
    workflow.entity_types.set(
        [ContentType.objects.get_for_model(model) for model in entity_models]
    )

    draft = WorkflowState.objects.create(
        workflow=workflow, state_id="draft", label="Draft", weight=0
    )
    published = WorkflowState.objects.create(
        workflow=workflow,
        state_id="published",
        label="Published",
        published=True,
        default_revision=True,
        weight=1,
    )
    archived = WorkflowState.objects.create(
        workflow=workflow,
        state_id="archived",
        label="Archived",
        default_revision=True,
        weight=2,
    )

    create_new_draft = WorkflowTransition.objects.create(
        workflow=workflow,
        transition_id="create_new_draft",
        label="Create New Draft",
        to_state=draft,
        weight=0,
    )
    create_new_draft.from_states.set([draft, published])

    publish = WorkflowTransition.objects.create(
        workflow=workflow,
        transition_id="publish",
        label="Publish",
        to_state=published,
        weight=1,
    )
    publish.from_states.set([draft, published])

    archive = WorkflowTransition.objects.create(
        workflow=workflow,
        transition_id="archive",
        label="Archive",
        to_state=archived,
        weight=2,
    )
    archive.from_states.set([published])

    if editor_group is not None:
        create_new_draft.allowed_groups.add(editor_group)
        publish.allowed_groups.add(editor_group)

    return workflow


def _ids(transitions):
    return [transition.transition_id for transition in transitions]


class StateMachineTests(TestCase):
    def setUp(self):
        self.workflow = create_editorial_workflow()

    def test_state_label_lookup(self):
        self.assertEqual(get_state_label(self.workflow, "published"), "Published")

    def test_unknown_state_label_raises(self):
        with self.assertRaises(ValidationError):
            get_state_label(self.workflow, "needs_review")

    def test_initial_state_is_lowest_weight(self):
        self.assertEqual(initial_state(self.workflow).state_id, "draft")

    def test_transitions_follow_source_states_in_weight_order(self):
        self.assertEqual(
            _ids(transitions_from_state(self.workflow, "published")),
            ["create_new_draft", "publish", "archive"],
        )
        self.assertEqual(
            _ids(transitions_from_state(self.workflow, "draft")),
            ["create_new_draft", "publish"],
        )
        self.assertEqual(transitions_from_state(self.workflow, "archived"), [])


class ModerationInformationTests(TestCase):
    def setUp(self):
        self.workflow = create_editorial_workflow()
        self.info = ModerationInformation()

    def test_article_is_governed_by_editorial_workflow(self):
        article = Article.objects.create(title="Harbor opening")
        self.assertTrue(self.info.is_editorial_entity(article))
        self.assertEqual(self.info.get_workflow_for_entity(article), self.workflow)
        self.assertTrue(self.info.is_moderated_entity(article))

    def test_page_without_workflow_is_editorial_but_not_moderated(self):
        page = Page.objects.create(title="About us")
        self.assertTrue(self.info.is_editorial_entity(page))
        self.assertIsNone(self.info.get_workflow_for_entity(page))
        self.assertFalse(self.info.is_moderated_entity(page))

    def test_tag_is_not_editorial(self):
        tag = Tag.objects.create(name="weather")
        self.assertFalse(self.info.is_editorial_entity(tag))
        self.assertIsNone(self.info.get_workflow_for_entity(tag))

    def test_workflow_lookup_by_entity_type(self):
        self.assertEqual(self.info.get_workflow_for_entity_type(Article), self.workflow)
        self.assertIsNone(self.info.get_workflow_for_entity_type(Page))


class StateTransitionValidationTests(TestCase):
    def setUp(self):
        self.editor_group, _ = Group.objects.get_or_create(name="Editor")
        self.admin_group, _ = Group.objects.get_or_create(name="Admin")
        self.workflow = create_editorial_workflow(editor_group=self.editor_group)
        self.validator = StateTransitionValidation()

        self.editor = User.objects.create_user(username="editor", password="testpass123")
        self.editor.groups.add(self.editor_group)
        self.admin = User.objects.create_user(username="admin1", password="testpass123")
        self.admin.groups.add(self.admin_group)
        self.regular = User.objects.create_user(username="regular", password="testpass123")

        self.article = Article.objects.create(title="Harbor opening")
        self.article.moderation_state = "published"
        self.article.new_revision = True
        self.article.save()

    def test_editor_cannot_see_admin_only_transition(self):
        self.assertEqual(
            _ids(self.validator.get_valid_transitions(self.article, self.editor)),
            ["create_new_draft", "publish"],
        )

    def test_admin_group_sees_every_transition(self):
        self.assertEqual(
            _ids(self.validator.get_valid_transitions(self.article, self.admin)),
            ["create_new_draft", "publish", "archive"],
        )

    def test_superuser_sees_every_transition(self):
        superuser = User.objects.create_superuser(
            username="root", email="root@example.com", password="testpass123"
        )
        self.assertEqual(
            _ids(self.validator.get_valid_transitions(self.article, superuser)),
            ["create_new_draft", "publish", "archive"],
        )

    def test_users_without_groups_get_nothing(self):
        self.assertEqual(self.validator.get_valid_transitions(self.article, self.regular), [])
        self.assertEqual(
            self.validator.get_valid_transitions(self.article, AnonymousUser()), []
        )
        self.assertEqual(self.validator.get_valid_transitions(self.article, None), [])

    def test_unmoderated_entity_has_no_transitions(self):
        page = Page.objects.create(title="About us")
        self.assertEqual(self.validator.get_valid_transitions(page, self.admin), [])

    def test_blank_state_counts_as_initial_state(self):
        article = Article(title="Legacy import")
        self.assertEqual(article.moderation_state, "")
        self.assertEqual(
            _ids(self.validator.get_valid_transitions(article, self.editor)),
            ["create_new_draft", "publish"],
        )

    def test_can_use_transition_by_group_membership(self):
        publish = self.workflow.transitions.get(transition_id="publish")
        archive = self.workflow.transitions.get(transition_id="archive")
        self.assertTrue(can_use_transition(self.editor, publish))
        self.assertFalse(can_use_transition(self.editor, archive))
        self.assertFalse(can_use_transition(self.regular, publish))
