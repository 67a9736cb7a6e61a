from mess import create_app
from mess.seed import seed_data
from mess.tasks import daily_attendance, monthly_billing
from flask.cli import with_appcontext
from flask_migrate import upgrade, migrate, init
import click

app = create_app()


@app.cli.command("db-init")
@with_appcontext
def db_init():
    """Initializes migrations directory"""
    init()


@app.cli.command("db-migrate")
@click.option("--message", "-m", default=None, help="Migration message")
@with_appcontext
def db_migrate(message):
    """Creates a new migration"""
    migrate(message=message)


@app.cli.command("db-upgrade")
@with_appcontext
def db_upgrade():
    """Applies migrations"""
    upgrade()


@app.cli.command("seed")
@click.option("--no-menu", is_flag=True, help="Skip the default weekly menu")
@with_appcontext
def seed(no_menu):
    """Creates roles, the admin account, default billing rates and the weekly menu"""
    admin = seed_data(with_menu=not no_menu)
    click.echo(f"Seeded. Admin account: {admin.username}")


@app.cli.command("run-job")
@click.argument("job", type=click.Choice(["attendance", "billing"]))
@click.option("--date", "day", default=None, help="Run as if today were YYYY-MM-DD")
@click.option("--enqueue", is_flag=True, help="Send the job to the Celery worker instead of running it here")
@with_appcontext
def run_job(job, day, enqueue):
    """Runs one billing cycle batch immediately"""
    task = daily_attendance if job == "attendance" else monthly_billing
    if enqueue:
        click.echo(f"Queued {task.name}: {task.delay(day).id}")
        return
    click.echo(task.apply(args=(day,)).get())


if __name__ == "__main__":
    app.run()
