"""Operator commands for ShareHub deployments."""

# purpose: bootstrap the first administrator and trigger blob reclamation out-of-band
# status: active
# depends_on: sharehub.database, sharehub.models, sharehub.tasks

from __future__ import annotations

import typer

from . import models
from .database import Base, SessionLocal, engine
from .tasks import enqueue_reclaim_orphaned_blobs

app = typer.Typer(help="ShareHub administration utilities")


@app.command()
def promote(
    username: str = typer.Argument(..., help="Username to update"),
    revoke: bool = typer.Option(False, "--revoke", help="Remove admin privilege instead"),
) -> None:
    """Grant (or revoke) administrator privilege directly in the store."""

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = db.query(models.User).filter(models.User.username == username).first()
        if user is None:
            raise typer.BadParameter(f"user {username!r} not found")
        user.is_admin = not revoke
        db.commit()
    finally:
        db.close()
    state = "revoked from" if revoke else "granted to"
    typer.echo(f"Admin privilege {state} {username}")


@app.command("reclaim-blobs")
def reclaim_blobs(
    limit: int = typer.Option(1000, help="Maximum blobs to inspect"),
    min_age: float = typer.Option(3600, "--min-age", help="Skip blobs modified less than this many seconds ago"),
) -> None:
    """Delete blobs with no matching file record."""

    reclaimed = enqueue_reclaim_orphaned_blobs(limit, min_age)
    if isinstance(reclaimed, list):
        for name in reclaimed:
            typer.echo(name)
        typer.echo(f"Reclaimed {len(reclaimed)} blob(s)")
    else:
        typer.echo(f"Queued reclamation task {reclaimed.id}")


if __name__ == "__main__":
    app()
