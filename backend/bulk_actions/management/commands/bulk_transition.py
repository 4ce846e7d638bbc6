from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from bulk_actions.services import (
    OutcomeStatus,
    TransitionChoice,
    WorkflowTransitionAction,
)


User = get_user_model()


class Command(BaseCommand):
    help = "Apply one workflow transition to many content entities (entity_type:id)."

    def add_arguments(self, parser):
        parser.add_argument("targets", nargs="+", help="e.g. content.article:12")
        parser.add_argument("--user", required=True, help="Username acting on the content.")
        parser.add_argument("--workflow", default="")
        parser.add_argument("--transition", default="")
        parser.add_argument("--message", default="", help="Revision log message.")
        parser.add_argument(
            "--preview",
            action="store_true",
            help="List available transitions instead of applying one.",
        )

    def handle(self, *args, **options):
        try:
            user = User.objects.get(username=options["user"])
        except User.DoesNotExist as exc:
            raise CommandError(f"Unknown user '{options['user']}'.") from exc

        selection = [self._parse_target(target) for target in options["targets"]]
        action = WorkflowTransitionAction(current_user=user)

        try:
            if options["preview"]:
                self._preview(action, selection)
                return
            if not options["workflow"] or not options["transition"]:
                raise CommandError("--workflow and --transition are required.")
            outcomes = action.apply_choice(
                selection,
                TransitionChoice(
                    workflow_id=options["workflow"],
                    transition_id=options["transition"],
                    revision_log_message=options["message"],
                ),
            )
        except ValidationError as exc:
            raise CommandError(exc.messages[0]) from exc

        transitioned = 0
        for outcome in outcomes:
            if outcome.status == OutcomeStatus.TRANSITIONED:
                transitioned += 1
            self.stdout.write(
                f"{outcome.entity_type}:{outcome.entity_id} {outcome.status}"
                + (f" -> {outcome.new_state}" if outcome.new_state else "")
            )

        self.stdout.write(
            self.style.SUCCESS(
                f"Bulk transition complete: transitioned={transitioned}, "
                f"selected={len(outcomes)}"
            )
        )

    def _parse_target(self, target):
        entity_type, _, entity_id = target.rpartition(":")
        return {"entity_type": entity_type, "entity_id": entity_id}

    def _preview(self, action, selection):
        choices = action.build_choices(selection)
        for _, message in action.messenger.messages:
            self.stderr.write(message)
        for workflow in choices.workflows:
            self.stdout.write(f"Workflow: {workflow.label} ({workflow.workflow_id})")
            for transition in workflow.transitions:
                self.stdout.write(
                    f"  {transition.transition_id}: {transition.label} -> "
                    f"{transition.to_state_label} "
                    f"({len(transition.entities)} of {choices.total_entities})"
                )
                for entity in transition.entities:
                    self.stdout.write(f"    - {entity.label}")
