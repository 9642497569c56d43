"""
Flask CLI commands.

Commands:
- flask init-db: Create database tables
- flask refresh-metal-rates: Fetch and store current metal rates
"""

import click

from jewelbill.database import create_all, get_session


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('refresh-metal-rates')
    def refresh_metal_rates_command():
        """Fetch current metal rates (fallback rates if the source is down)."""
        from jewelbill.services.metal_rates_service import refresh_metal_rates

        db_session = get_session()
        try:
            source = refresh_metal_rates(db_session, app.config)
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Error refreshing metal rates: {e}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(f'Metal rates updated from {source}.', fg='green'))
