from django.db import models


class Student(models.Model):
    name = models.CharField(max_length=200)
    email = models.EmailField(max_length=254, blank=True, default="")
    codeforces_handle = models.CharField(max_length=100, unique=True)

    # Derived from Codeforces; replaced wholesale on every sync
    current_rating = models.IntegerField(default=0)
    max_rating = models.IntegerField(default=0)
    contest_history = models.JSONField(default=list, blank=True)
    solve_stats = models.JSONField(default=dict, blank=True)
    last_submission_date = models.DateTimeField(null=True, blank=True)

    # Inactivity reminders
    email_reminders_enabled = models.BooleanField(default=True)
    reminder_emails_sent = models.PositiveIntegerField(default=0)
    last_reminder_sent = models.DateTimeField(null=True, blank=True)

    last_synced_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['codeforces_handle']
        verbose_name = "Student"
        verbose_name_plural = "Students"

    def __str__(self):
        return f"{self.name} ({self.codeforces_handle})"
