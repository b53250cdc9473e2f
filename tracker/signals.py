from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from .models import Student


@receiver(pre_save, sender=Student)
def remember_previous_handle(sender, instance, **kwargs):
    previous = None
    if instance.pk:
        previous = (
            Student.objects.filter(pk=instance.pk)
            .values_list("codeforces_handle", flat=True)
            .first()
        )
    instance._previous_handle = previous


@receiver(post_save, sender=Student)
def queue_sync_on_handle_change(sender, instance, created, raw=False, **kwargs):
    if raw:
        return
    if not created and getattr(instance, "_previous_handle", None) == instance.codeforces_handle:
        return

    from .tasks import sync_student

    student_id = instance.pk
    transaction.on_commit(lambda: sync_student.delay(student_id))
