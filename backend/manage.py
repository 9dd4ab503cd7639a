import click
from flask_migrate import upgrade, migrate, init

from schooladmin import create_app
from schooladmin.extensions import db
from schooladmin.models import RoleEnum, User
from schooladmin.seed import seed_data

app = create_app()


@app.cli.command("db-init")
def db_init():
    """Initializes migrations directory"""
    init()


@app.cli.command("db-migrate")
@click.option("-m", "--message", default=None)
def db_migrate(message):
    """Creates a new migration"""
    migrate(message=message)


@app.cli.command("db-upgrade")
def db_upgrade():
    """Applies migrations"""
    upgrade()


@app.cli.command("seed")
def seed():
    """Loads demo data"""
    seed_data()
    click.echo("Seed data loaded.")


@app.cli.command("create-user")
@click.argument("username")
@click.option("--role", type=click.Choice([r.value for r in RoleEnum]), default=RoleEnum.user.value)
@click.option("--full-name", default=None)
@click.password_option()
def create_user(username, role, full_name, password):
    """Creates a user account"""
    if User.query.filter_by(username=username).first():
        raise click.ClickException(f"User '{username}' already exists")
    user = User(username=username, role=RoleEnum(role), full_name=full_name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    click.echo(f"Created {role} '{username}' (id={user.id})")
