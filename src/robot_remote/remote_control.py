import logging

from robot_remote.adapters.unix_control import ControlHandler
from robot_remote.domain.commands import CommandToken
from robot_remote.domain.session import ControlSession
from robot_remote.ports.control import ControlCommand

logger = logging.getLogger(__name__)


def build_control_handler(session: ControlSession) -> ControlHandler:
    async def handle(command: ControlCommand) -> dict:
        if command.action == "send":
            raw_token = str((command.payload or {}).get("token", ""))
            try:
                token = CommandToken.parse(raw_token)
            except ValueError as exc:
                return {"status": "error", "action": "send", "error": str(exc)}
            sent = await session.dispatch(token)
            return {
                "status": "ok" if sent else "error",
                "action": "send",
                "token": token.name,
                "state": session.state.name,
            }

        if command.action == "status":
            peer = session.peer
            return {
                "status": "ok",
                "action": "status",
                "state": session.state.name,
                "text": session.status,
                "peer": peer.address if peer else None,
                "name": peer.name if peer else None,
            }

        logger.warning("Unknown control action: %s", command.action)
        return {"status": "error", "action": command.action, "error": f"Unknown action: {command.action}"}

    return handle
