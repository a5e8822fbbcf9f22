"""Control API router — reusable FastAPI router driving a WHIPSession.

Exposes start/stop and live preference changes to a UI. Mount it in any
FastAPI app::

    from whip_client.control import create_control_router

    app.include_router(create_control_router(session=session))
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from whip_client.errors import (
    InvalidEndpointError,
    NegotiationError,
    SessionBusyError,
    SignalingError,
)
from whip_client.session import WHIPSession


def session_status(session: WHIPSession) -> dict:
    """Plain-dict view of the session for the UI."""
    return {
        "state": session.state.value,
        "connection_state": session.connection_state.value,
        "signaling_state": session.signaling_state.value,
        "session_id": session.resource.session_id,
        "resource_location": session.resource.location,
        "preferences": session.preferences.snapshot(),
    }


def create_control_router(*, session: WHIPSession, auth_dependency=None) -> APIRouter:
    """Create an APIRouter with session control endpoints.

    Args:
        session: The WHIPSession to drive.
        auth_dependency: Optional FastAPI dependency for POST endpoints.

    Returns:
        An APIRouter to mount with ``app.include_router()``.
    """
    router = APIRouter()

    post_deps = [Depends(auth_dependency)] if auth_dependency else []

    @router.get("/api/session")
    async def get_session():
        """Return the session state and current preferences."""
        return session_status(session)

    @router.post("/api/session/start", dependencies=post_deps)
    async def start_session(request: Request):
        """Publish to the given endpoint. Returns once live."""
        body = await request.json()
        endpoint = body.get("endpoint", "")
        if not endpoint:
            raise HTTPException(status_code=400, detail="'endpoint' is required")

        try:
            await session.start(endpoint)
        except InvalidEndpointError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except SessionBusyError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        except SignalingError as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        except NegotiationError as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        return session_status(session)

    @router.post("/api/session/stop", dependencies=post_deps)
    async def stop_session():
        """Tear the session down. Safe to call in any state."""
        await session.stop()
        return session_status(session)

    @router.get("/api/preferences")
    async def get_preferences():
        return session.preferences.snapshot()

    @router.post("/api/preferences", dependencies=post_deps)
    async def post_preferences(request: Request):
        """Apply a partial preference update. Returns full preferences after update."""
        body = await request.json()
        try:
            return session.update_preferences(body)
        except (KeyError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    return router
