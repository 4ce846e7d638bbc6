from workflows.moderation import ModerationInformation
from workflows.state_machine import initial_state, transitions_from_state

ADMIN_GROUP = "Admin"


# ============================================================
# ROLE HELPERS
# ============================================================

def is_admin(user):
    """Return True if user is admin (superuser OR Admin group)."""
    return user.is_superuser or user.groups.filter(name=ADMIN_GROUP).exists()


def can_use_transition(user, transition) -> bool:
    if user is None or not user.is_authenticated:
        return False
    if is_admin(user):
        return True
    return transition.allowed_groups.filter(user=user).exists()


# ============================================================
# VALIDITY ORACLE
# ============================================================

class StateTransitionValidation:
    """
    Lists the transitions an entity can take right now,
    from its present state, for a given user.
    """

    def __init__(self, moderation_info=None):
        self.moderation_info = moderation_info or ModerationInformation()

    def get_valid_transitions(self, entity, user) -> list:
        workflow = self.moderation_info.get_workflow_for_entity(entity)
        if workflow is None:
            return []

        state_id = entity.moderation_state
        if not state_id:
            state = initial_state(workflow)
            if state is None:
                return []
            state_id = state.state_id

        return [
            transition
            for transition in transitions_from_state(workflow, state_id)
            if can_use_transition(user, transition)
        ]
