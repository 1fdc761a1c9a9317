"""
Maintenance commands: analyze, cleanup, migrate.

Usage:
    sessionkeeper analyze
    sessionkeeper cleanup
    sessionkeeper migrate
"""

import typer

from sessionkeeper.cli.main import (
    CLIState,
    format_duration,
    format_size,
    maintenance_errors,
)


def run_analyze(state: CLIState):
    manager = state.manager
    config = manager.config
    typer.echo("📊 Analyzing sessions...\n")

    with maintenance_errors():
        report = manager.analyze()

    stats = report.stats
    typer.echo("📈 Session Statistics:")
    typer.echo(f"   Total sessions: {stats.total}")
    typer.echo(f"   Total size: {format_size(stats.total_size_bytes)}")
    typer.echo(f"   Average session size: {format_size(stats.average_size_bytes)}")
    typer.echo(f"   Largest session size: {format_size(stats.largest_size_bytes)}")
    typer.echo(
        f"   Large sessions (>{format_size(config.session_size_threshold_bytes)}): "
        f"{stats.count_above_size_threshold}"
    )
    typer.echo(
        f"   Old sessions (>{format_duration(config.max_session_age)}): "
        f"{stats.count_older_than_max_age}"
    )
    typer.echo(
        f"   Inactive sessions (>{format_duration(config.max_inactive_age)}): "
        f"{stats.count_inactive_beyond_threshold}"
    )

    recommendations = []
    if stats.count_above_size_threshold:
        recommendations.append(f"Optimize {stats.count_above_size_threshold} large sessions")
    if stats.count_older_than_max_age:
        recommendations.append(f"Remove {stats.count_older_than_max_age} old sessions")
    if stats.count_inactive_beyond_threshold:
        recommendations.append(
            f"Remove {stats.count_inactive_beyond_threshold} inactive sessions"
        )
    if report.estimated_savings_bytes:
        recommendations.append(
            f"Potential savings: {format_size(report.estimated_savings_bytes)}"
        )

    if recommendations:
        typer.echo("\n💡 Recommendations:")
        for line in recommendations:
            typer.echo(f"   - {line}")
    else:
        typer.echo("\n✅ Nothing to clean up.")


def run_cleanup(state: CLIState):
    typer.echo("🧹 Starting session cleanup...\n")

    with maintenance_errors():
        report = state.manager.cleanup()

    typer.echo(f"💾 Backup created: {report.backup_path}")
    for removed in report.removed:
        typer.echo(f"🗑️  Removed session {removed.id}: {removed.reason}")
    for optimized in report.optimized:
        typer.echo(
            f"🔧 Optimized session {optimized.id}: "
            f"{format_size(optimized.original_size)} -> "
            f"{format_size(optimized.optimized_size)} "
            f"({optimized.compression_ratio:.2f}%)"
        )

    delta = report.delta
    typer.echo("\n✅ Cleanup completed!")
    typer.echo(f"   Sessions removed: {report.removed_count}")
    typer.echo(f"   Sessions optimized: {report.optimized_count}")
    typer.echo(f"   Optimization savings: {format_size(report.optimization_saved_bytes)}")
    typer.echo(f"   Final sessions count: {report.after.total}")
    typer.echo(f"   Final total size: {format_size(report.after.total_size_bytes)}")
    typer.echo(f"   Size reduction: {delta.size_reduction_percent:.2f}%")

    if report.after.count_above_size_threshold or report.after.count_older_than_max_age:
        typer.echo(
            f"\n⚠️  Still have {report.after.count_above_size_threshold} large sessions "
            f"and {report.after.count_older_than_max_age} old sessions"
        )


def run_migrate(state: CLIState):
    typer.echo("🔄 Migrating sessions to the canonical schema...\n")

    with maintenance_errors():
        report = state.manager.migrate()

    typer.echo(f"💾 Backup created: {report.backup_path}")
    for failure in report.failures:
        typer.echo(f"❌ {failure.message}")

    typer.echo("\n✅ Migration completed!")
    typer.echo(f"   Migrated: {report.migrated_count}")
    typer.echo(f"   Failed: {report.failed_count}")
    typer.echo(f"   Size before: {format_size(report.size_before)}")
    typer.echo(f"   Size after: {format_size(report.size_after)}")


def register_commands(app: typer.Typer):
    """Register maintenance commands on the root app."""

    @app.command("analyze")
    def analyze(ctx: typer.Context):
        """Report session statistics without modifying the store."""
        run_analyze(ctx.obj)

    @app.command("cleanup")
    def cleanup(ctx: typer.Context):
        """Back up, evict expired sessions, compact large ones and rewrite the store."""
        run_cleanup(ctx.obj)

    @app.command("migrate")
    def migrate(ctx: typer.Context):
        """Back up and rewrite every session into the canonical schema."""
        run_migrate(ctx.obj)
