from django.core.exceptions import ValidationError


def get_state_label(workflow, state_id: str) -> str:
    state = workflow.states.filter(state_id=state_id).first()
    if state is None:
        raise ValidationError(
            f"Unknown moderation state '{state_id}' in workflow {workflow.id}."
        )
    return state.label


def initial_state(workflow):
    """
    The lowest weighted state is where new content starts.
    """

    return workflow.states.order_by("weight", "state_id").first()


def transitions_from_state(workflow, state_id: str) -> list:
    return list(
        workflow.transitions.filter(from_states__state_id=state_id)
        .select_related("to_state")
        .order_by("weight", "transition_id")
        .distinct()
    )
