"""
academia – local schedule engine for a student dashboard.

Weekly lessons, conflict detection, timetable grid layout, class reminders
and the draft review step for imported timetables.
"""
