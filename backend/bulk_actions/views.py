import json
from dataclasses import asdict

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_POST

from bulk_actions.messenger import Messenger
from bulk_actions.services import (
    OutcomeStatus,
    TransitionChoice,
    WorkflowTransitionAction,
)


def _load_payload(request):
    try:
        payload = json.loads(request.body or "{}")
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def _error_response(exc: ValidationError):
    return JsonResponse(
        {
            "detail": exc.messages[0],
            "code": getattr(exc, "code", None),
        },
        status=400,
    )


@require_POST
def transition_choices_view(request):
    user = request.user
    if not user.is_authenticated:
        return JsonResponse({"detail": "Authentication required."}, status=401)

    payload = _load_payload(request)
    if payload is None:
        return JsonResponse({"detail": "Invalid JSON body."}, status=400)

    messenger = Messenger()
    action = WorkflowTransitionAction(current_user=user, messenger=messenger)
    try:
        choices = action.build_choices(payload.get("selection") or [])
    except ValidationError as exc:
        return _error_response(exc)

    response = choices.as_dict()
    response["messages"] = messenger.as_list()
    return JsonResponse(response)


@require_POST
def apply_transition_view(request):
    user = request.user
    if not user.is_authenticated:
        return JsonResponse({"detail": "Authentication required."}, status=401)

    payload = _load_payload(request)
    if payload is None:
        return JsonResponse({"detail": "Invalid JSON body."}, status=400)

    fields = {
        name: payload.get(name) or ""
        for name in ("workflow_id", "transition_id", "revision_log_message")
    }
    if not all(isinstance(value, str) for value in fields.values()):
        return JsonResponse(
            {"detail": "workflow_id, transition_id and revision_log_message must be strings."},
            status=400,
        )

    choice = TransitionChoice(**{name: value.strip() for name, value in fields.items()})
    if not choice.workflow_id or not choice.transition_id:
        return JsonResponse(
            {"detail": "workflow_id and transition_id are required."},
            status=400,
        )

    action = WorkflowTransitionAction(current_user=user)
    try:
        outcomes = action.apply_choice(payload.get("selection") or [], choice)
    except ValidationError as exc:
        return _error_response(exc)

    results = [asdict(outcome) for outcome in outcomes]
    return JsonResponse(
        {
            "results": results,
            "transitioned": sum(
                1 for outcome in outcomes if outcome.status == OutcomeStatus.TRANSITIONED
            ),
        }
    )
