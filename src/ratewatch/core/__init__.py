"""Alert evaluation, checking and background execution."""
