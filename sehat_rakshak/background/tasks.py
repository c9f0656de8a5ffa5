# sehat_rakshak/background/tasks.py
import logging
from typing import Any, Callable

from fastapi import BackgroundTasks

from sehat_rakshak.core.database import SessionLocal

logger = logging.getLogger(__name__)


def enqueue_task(
    background_tasks: BackgroundTasks,
    func: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> None:
    """
    Helper to add a background task in a consistent way.

    Usage in endpoints:
        from fastapi import BackgroundTasks
        from sehat_rakshak.background.tasks import enqueue_task, run_with_session
        from sehat_rakshak.services.notification_service import deliver_prescription_email

        @router.post("/something")
        def handler(..., background_tasks: BackgroundTasks):
            enqueue_task(
                background_tasks,
                run_with_session,
                deliver_prescription_email,
                prescription_id,
                email_config,
            )
    """
    background_tasks.add_task(func, *args, **kwargs)


def run_with_session(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Run func(db, *args, **kwargs) with a fresh session.

    Background tasks run after the request's session is closed, so they open
    their own. Failures are logged; they never reach the client.
    """
    db = SessionLocal()
    try:
        return func(db, *args, **kwargs)
    except Exception:
        logger.exception("Background task %s failed", getattr(func, "__name__", func))
        return None
    finally:
        db.close()
