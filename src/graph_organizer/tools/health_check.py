"""Health check tool for Graph Organizer."""

import httpx
import psycopg
from structlog import get_logger

from graph_organizer import __version__
from graph_organizer.settings import get_settings

logger = get_logger()


async def health_check() -> str:
    """Check if the server is running and can connect to services."""
    settings = get_settings()

    checks = {
        "server": True,
        "database": False,
        "naming_model": False,
    }

    # Test database connection
    if settings.database_url:
        try:
            async with await psycopg.AsyncConnection.connect(
                str(settings.database_url)
            ) as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
                    await cur.fetchone()
            checks["database"] = True
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))

    # Test naming model endpoint
    if settings.openai_base_url:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{str(settings.openai_base_url).rstrip('/')}/models",
                    timeout=5.0,
                )
                if response.status_code == 200:
                    checks["naming_model"] = True
        except Exception as e:
            logger.error("naming_model_health_check_failed", error=str(e))

    # Build prose response
    status = "healthy" if all(checks.values()) else "partially operational"
    issues = []

    if not checks["database"]:
        issues.append("Database connection failed")
    if not checks["naming_model"]:
        issues.append("Naming model is not responding (clusters get fallback titles)")

    response = f"Graph Organizer (v{__version__}) is {status}."

    if issues:
        response += "\n\nIssues:\n" + "\n".join(f"• {issue}" for issue in issues)
    else:
        response += "\n\nAll systems operational."

    return response
