from django.urls import path

from bulk_actions.views import apply_transition_view, transition_choices_view


urlpatterns = [
    path(
        "api/bulk/transitions/choices",
        transition_choices_view,
        name="bulk_transition_choices",
    ),
    path(
        "api/bulk/transitions/apply",
        apply_transition_view,
        name="bulk_transition_apply",
    ),
]
