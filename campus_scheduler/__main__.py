from campus_scheduler.cli import app

app(prog_name="campus-scheduler")
