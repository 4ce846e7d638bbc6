from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
        ("contenttypes", "0002_remove_content_type_name"),
    ]

    operations = [
        migrations.CreateModel(
            name="Workflow",
            fields=[
                (
                    "id",
                    models.SlugField(
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("label", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "entity_types",
                    models.ManyToManyField(
                        blank=True,
                        related_name="moderation_workflows",
                        to="contenttypes.contenttype",
                    ),
                ),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="WorkflowState",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("state_id", models.SlugField(max_length=64)),
                ("label", models.CharField(max_length=255)),
                ("published", models.BooleanField(default=False)),
                ("default_revision", models.BooleanField(default=False)),
                ("weight", models.IntegerField(default=0)),
                (
                    "workflow",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="states",
                        to="workflows.workflow",
                    ),
                ),
            ],
            options={
                "ordering": ["weight", "state_id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("workflow", "state_id"),
                        name="uniq_state_id_per_workflow",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WorkflowTransition",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("transition_id", models.SlugField(max_length=64)),
                ("label", models.CharField(max_length=255)),
                ("weight", models.IntegerField(default=0)),
                (
                    "workflow",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transitions",
                        to="workflows.workflow",
                    ),
                ),
                (
                    "to_state",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="incoming_transitions",
                        to="workflows.workflowstate",
                    ),
                ),
                (
                    "from_states",
                    models.ManyToManyField(
                        related_name="outgoing_transitions",
                        to="workflows.workflowstate",
                    ),
                ),
                (
                    "allowed_groups",
                    models.ManyToManyField(
                        blank=True,
                        related_name="workflow_transitions",
                        to="auth.group",
                    ),
                ),
            ],
            options={
                "ordering": ["weight", "transition_id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("workflow", "transition_id"),
                        name="uniq_transition_id_per_workflow",
                    ),
                ],
            },
        ),
    ]
