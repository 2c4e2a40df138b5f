"""
FastAPI application exposing the session coordinator.

Host identity is taken from the request body; callers are expected to have
authenticated the user upstream.
"""

import asyncio
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..core import (
    AuditEntry,
    EventPolicy,
    EventSessionManager,
    HostRole,
    ModerationType,
    NotificationKind,
    OperationResult,
)
from ..infrastructure import setup_logging
from ..infrastructure.exceptions import ErrorKind, MultiHostError
from ..platform import VoicePlatformAdapter

logger = setup_logging(
    component_name="control_api",
    log_file="logs/multihost.log",
)

STATUS_BY_ERROR = {
    ErrorKind.SESSION_NOT_FOUND: 404,
    ErrorKind.PARTICIPANT_NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.ADAPTER_FAILURE: 502,
    ErrorKind.JOIN_TIMEOUT: 504,
    ErrorKind.INVALID_REQUEST: 400,
}


class PolicyModel(BaseModel):
    """Session policy fields."""
    auto_mute_on_join: bool = False
    auto_deafen_on_join: bool = False
    participant_lock_duration_seconds: int = Field(10, gt=0)


class CreateSessionRequest(BaseModel):
    """Request model for creating a session."""
    guild_id: int
    guild_name: str
    voice_channel_id: int
    voice_channel_name: str
    owner_id: int
    owner_username: str
    policy: Optional[PolicyModel] = None


class PolicyUpdateRequest(BaseModel):
    """Request model for changing a session policy before it starts."""
    requester_id: int
    auto_mute_on_join: Optional[bool] = None
    auto_deafen_on_join: Optional[bool] = None
    participant_lock_duration_seconds: Optional[int] = None


class AddHostRequest(BaseModel):
    """Request model for adding a co-host or moderator."""
    requester_id: int
    user_id: int
    username: str
    role: str


class HostOnlineRequest(BaseModel):
    online: bool


class HostActionRequest(BaseModel):
    """Acting host for lock/unlock and moderation calls."""
    host_id: int
    host_username: str = ""


class ToggleActionRequest(HostActionRequest):
    enabled: bool = True


class MoveRequest(HostActionRequest):
    target_channel_id: int


# Global coordinator instances, set by create_app
session_manager: Optional[EventSessionManager] = None
voice_adapter: Optional[VoicePlatformAdapter] = None


def get_session_manager() -> EventSessionManager:
    """Dependency to get the session coordinator."""
    if session_manager is None:
        raise HTTPException(status_code=500, detail="Session manager not initialized")
    return session_manager


def get_voice_adapter() -> VoicePlatformAdapter:
    """Dependency to get the voice platform adapter."""
    if voice_adapter is None:
        raise HTTPException(status_code=500, detail="Voice adapter not initialized")
    return voice_adapter


def result_response(result: OperationResult) -> Dict[str, Any]:
    """Return the result body, or raise the HTTP error matching its kind."""
    if not result.success:
        raise HTTPException(
            status_code=STATUS_BY_ERROR.get(result.error, 500),
            detail=result.to_dict(),
        )
    return result.to_dict()


def moderation_response(session_id: str, entry: Optional[AuditEntry]) -> Dict[str, Any]:
    """Translate the audit entry recorded for a moderation attempt into a response."""
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    if entry.success:
        return {"success": True, "audit": entry.to_dict()}

    raise HTTPException(
        status_code=STATUS_BY_ERROR.get(entry.error_kind, 500),
        detail={"success": False, "audit": entry.to_dict()},
    )


def create_app(
    manager: EventSessionManager,
    adapter: Optional[VoicePlatformAdapter] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        manager: Session coordinator to expose
        adapter: Voice platform used for guild/channel discovery
            (defaults to the manager's adapter)

    Returns:
        Configured FastAPI application
    """
    global session_manager, voice_adapter

    session_manager = manager
    voice_adapter = adapter or manager.adapter

    app = FastAPI(
        title="Discord MultiHost API",
        description="Control API for multi-host Discord voice events",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MultiHostError)
    async def multihost_error_handler(request: Request, exc: MultiHostError):
        status = STATUS_BY_ERROR.get(exc.kind, 500)
        if status >= 500:
            logger.error(f"Error handling {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status,
            content={
                "success": False,
                "error": exc.kind.value if exc.kind else None,
                "message": exc.message,
                "detail": exc.detail,
            },
        )

    @app.get("/health")
    async def health_check(
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "sessions": len(await manager.list_sessions()),
            "subscribers": manager.notifications.subscriber_count,
        }

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @app.get("/guilds")
    async def list_guilds(adapter: VoicePlatformAdapter = Depends(get_voice_adapter)):
        return [{"guild_id": g.guild_id, "name": g.name} for g in adapter.list_guilds()]

    @app.get("/guilds/{guild_id}/voice-channels")
    async def list_voice_channels(
        guild_id: int,
        adapter: VoicePlatformAdapter = Depends(get_voice_adapter),
    ):
        return [
            {
                "channel_id": c.channel_id,
                "name": c.name,
                "occupant_count": c.occupant_count,
            }
            for c in adapter.list_voice_channels(guild_id)
        ]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @app.post("/sessions", status_code=201)
    async def create_session(
        request: CreateSessionRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        """
        Create a session in STARTING status.

        Args:
            request: Guild, channel and owner of the new session
            manager: Session coordinator dependency

        Returns:
            Session data
        """
        policy = EventPolicy(**request.policy.model_dump()) if request.policy else None
        session = await manager.create_session(
            guild_id=request.guild_id,
            guild_name=request.guild_name,
            voice_channel_id=request.voice_channel_id,
            voice_channel_name=request.voice_channel_name,
            owner_id=request.owner_id,
            owner_username=request.owner_username,
            policy=policy,
        )
        return session.to_dict()

    @app.get("/sessions")
    async def list_sessions(
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        return [s.to_dict() for s in await manager.list_sessions()]

    @app.get("/sessions/{session_id}")
    async def get_session(
        session_id: str,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        session = await manager.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return session.to_dict()

    @app.patch("/sessions/{session_id}/policy")
    async def update_policy(
        session_id: str,
        request: PolicyUpdateRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        return result_response(
            await manager.update_policy(
                session_id,
                request.requester_id,
                auto_mute_on_join=request.auto_mute_on_join,
                auto_deafen_on_join=request.auto_deafen_on_join,
                participant_lock_duration_seconds=request.participant_lock_duration_seconds,
            )
        )

    @app.post("/sessions/{session_id}/start")
    async def start_session(
        session_id: str,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        return result_response(await manager.start_session(session_id))

    @app.post("/sessions/{session_id}/end")
    async def end_session(
        session_id: str,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        return result_response(await manager.end_session(session_id))

    @app.get("/sessions/{session_id}/audit")
    async def get_audit_log(
        session_id: str,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        entries = await manager.get_audit_log(session_id)
        if entries is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return [e.to_dict() for e in entries]

    # ------------------------------------------------------------------
    # Hosts
    # ------------------------------------------------------------------

    @app.post("/sessions/{session_id}/hosts", status_code=201)
    async def add_host(
        session_id: str,
        request: AddHostRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        try:
            role = HostRole(request.role.lower())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid role '{request.role}'. Valid roles: {[r.value for r in HostRole]}",
            )

        return result_response(
            await manager.add_host(
                session_id, request.requester_id, request.user_id, request.username, role
            )
        )

    @app.delete("/sessions/{session_id}/hosts/{user_id}")
    async def remove_host(
        session_id: str,
        user_id: int,
        requester_id: int,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        return result_response(
            await manager.remove_host(session_id, requester_id, user_id)
        )

    @app.put("/sessions/{session_id}/hosts/{user_id}/online")
    async def set_host_online(
        session_id: str,
        user_id: int,
        request: HostOnlineRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        return result_response(
            await manager.set_host_online(session_id, user_id, request.online)
        )

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    @app.post("/sessions/{session_id}/participants/{participant_id}/lock")
    async def lock_participant(
        session_id: str,
        participant_id: int,
        request: HostActionRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        locked = await manager.try_lock_participant(session_id, participant_id, request.host_id)
        return {"locked": locked}

    @app.post("/sessions/{session_id}/participants/{participant_id}/unlock")
    async def unlock_participant(
        session_id: str,
        participant_id: int,
        request: HostActionRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        unlocked = await manager.unlock_participant(session_id, participant_id, request.host_id)
        return {"unlocked": unlocked}

    @app.post("/sessions/{session_id}/participants/{participant_id}/mute")
    async def mute_participant(
        session_id: str,
        participant_id: int,
        request: ToggleActionRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        entry = await manager.moderate(
            session_id,
            request.host_id,
            request.host_username,
            participant_id,
            ModerationType.MUTE if request.enabled else ModerationType.UNMUTE,
        )
        return moderation_response(session_id, entry)

    @app.post("/sessions/{session_id}/participants/{participant_id}/deafen")
    async def deafen_participant(
        session_id: str,
        participant_id: int,
        request: ToggleActionRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        entry = await manager.moderate(
            session_id,
            request.host_id,
            request.host_username,
            participant_id,
            ModerationType.DEAF if request.enabled else ModerationType.UNDEAF,
        )
        return moderation_response(session_id, entry)

    @app.post("/sessions/{session_id}/participants/{participant_id}/disconnect")
    async def disconnect_participant(
        session_id: str,
        participant_id: int,
        request: HostActionRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        entry = await manager.moderate(
            session_id,
            request.host_id,
            request.host_username,
            participant_id,
            ModerationType.DISCONNECT,
        )
        return moderation_response(session_id, entry)

    @app.post("/sessions/{session_id}/participants/{participant_id}/move")
    async def move_participant(
        session_id: str,
        participant_id: int,
        request: MoveRequest,
        manager: EventSessionManager = Depends(get_session_manager),
    ):
        entry = await manager.moderate(
            session_id,
            request.host_id,
            request.host_username,
            participant_id,
            ModerationType.MOVE,
            target_channel_id=request.target_channel_id,
        )
        return moderation_response(session_id, entry)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @app.websocket("/sessions/{session_id}/events")
    async def session_events(websocket: WebSocket, session_id: str):
        """Stream session and audit notifications for one session."""
        manager = get_session_manager()
        await websocket.accept()

        session = await manager.get_session(session_id)
        if session is None:
            await websocket.close(code=4404, reason="Session not found")
            return

        with manager.notifications.subscribe(session_id) as subscription:
            await websocket.send_json(
                {
                    "kind": NotificationKind.SESSION_UPDATED.value,
                    "session_id": session_id,
                    "payload": session.to_dict(),
                }
            )

            async def forward():
                async for notification in subscription:
                    await websocket.send_json(notification.to_dict())

            forward_task = asyncio.create_task(forward())
            try:
                # Incoming messages are ignored; reading detects the disconnect
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                logger.info(f"Event stream for session {session_id} closed by client")
            finally:
                forward_task.cancel()

    return app
