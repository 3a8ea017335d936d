"""remindkit — cron tasks, reminders, and retried fetches on a polling scheduler."""
