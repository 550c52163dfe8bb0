import click
from catalog.core.context import CatalogContext
from catalog.core.logging import get_logger
from catalog.db.base import Base
import catalog.db.models  # noqa: F401  registers tables on Base.metadata

logger = get_logger(__name__)


@click.group()
def cli():
    """Catalog hierarchy CLI"""
    pass


@cli.command()
def init_db():
    """Create the category tables (use alembic for managed databases)"""
    with CatalogContext() as context:
        Base.metadata.create_all(context.engine)
    click.echo("Category tables created")


@cli.command()
def sweep():
    """Repair stale category paths"""
    with CatalogContext() as context:
        with context.session() as db_session:
            report = context.consistency_service(db_session).sweep()

    click.echo(f"Checked: {report.checked}")
    click.echo(f"Repaired: {len(report.repaired)}")
    for category_id, slug in report.repaired.items():
        click.echo(f"  - {slug} ({category_id})")
    if report.unreachable:
        click.echo(f"Unreachable: {len(report.unreachable)}")
        for category_id in report.unreachable:
            click.echo(f"  - {category_id}")


@cli.command()
@click.option("--include-inactive", is_flag=True, help="Show inactive categories too")
def tree(include_inactive):
    """Print the category tree"""
    with CatalogContext() as context:
        with context.session() as db_session:
            roots = context.category_service(db_session).get_tree(include_inactive=include_inactive)

    stack = [(node, 0) for node in reversed(roots)]
    while stack:
        node, depth = stack.pop()
        marker = "" if node.is_active else " (inactive)"
        click.echo(f"{'  ' * depth}{node.name} [{node.path}]{marker}")
        stack.extend((child, depth + 1) for child in reversed(node.children))


@cli.command()
@click.option("--beat", is_flag=True, help="Also run the beat scheduler")
@click.option("--loglevel", default="info")
def worker(beat, loglevel):
    """Start the maintenance worker"""
    from catalog.worker.celery_app import celery_app

    argv = ["worker", f"--loglevel={loglevel}", "-Q", "maintenance,celery"]
    if beat:
        argv.append("--beat")
    celery_app.worker_main(argv)


if __name__ == "__main__":
    cli()
