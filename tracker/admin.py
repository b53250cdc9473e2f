from django.contrib import admin, messages
from django.utils import timezone

from .models import Student
from .services.repository import to_snapshot
from .services.windows import contests_since, recent_solve_stats
from .tasks import sync_student

admin.site.site_header = "Codeforces Progress Administration"
admin.site.site_title = "Codeforces Progress Admin"


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = (
        'name',
        'codeforces_handle',
        'email',
        'current_rating',
        'max_rating',
        'total_solved',
        'last_submission_date',
        'email_reminders_enabled',
        'reminder_emails_sent',
        'last_synced_at',
    )
    search_fields = ('name', 'email', 'codeforces_handle')
    list_filter = ('email_reminders_enabled',)
    readonly_fields = (
        'current_rating',
        'max_rating',
        'contest_history',
        'solve_stats',
        'last_submission_date',
        'reminder_emails_sent',
        'last_reminder_sent',
        'last_synced_at',
        'contests_last_30_days',
        'accepted_last_7_days',
        'created_at',
        'updated_at',
    )
    actions = ['sync_now', 'toggle_email_reminders']

    @admin.display(description="Solved")
    def total_solved(self, obj: Student):
        return (obj.solve_stats or {}).get('total_solved', 0)

    @admin.display(description="Contests (30 days)")
    def contests_last_30_days(self, obj: Student):
        return len(contests_since(to_snapshot(obj), 30, timezone.now()))

    @admin.display(description="Accepted submissions (7 days)")
    def accepted_last_7_days(self, obj: Student):
        return recent_solve_stats(to_snapshot(obj), 7, timezone.now()).total_solved

    def sync_now(self, request, queryset):
        student_ids = list(queryset.values_list('id', flat=True))
        for student_id in student_ids:
            sync_student.delay(student_id)
        self.message_user(request, f"Queued sync for {len(student_ids)} student(s).", level=messages.SUCCESS)

    def toggle_email_reminders(self, request, queryset):
        toggled = 0
        for student in queryset:
            student.email_reminders_enabled = not student.email_reminders_enabled
            student.save(update_fields=['email_reminders_enabled', 'updated_at'])
            toggled += 1
        self.message_user(request, f"Toggled email reminders for {toggled} student(s).", level=messages.SUCCESS)

    sync_now.short_description = "Sync now"
    toggle_email_reminders.short_description = "Toggle email reminders"
