"""
Add celery-beat schedule for retrying failed connections.

Creates the periodic task for auto_retry_failed_connections, which runs
every 30 minutes and retries FAILED / PENDING_SETUP connections that
still have retries left.
"""

from django.db import migrations


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for retrying failed connections."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=30,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name="Retry Failed Marketplace Connections",
        defaults={
            "task": "marketplace.tasks.auto_retry_failed_connections",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Queues a retry for each failed or pending-setup connection "
                "below its retry limit."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name="Retry Failed Marketplace Connections",
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("marketplace", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
