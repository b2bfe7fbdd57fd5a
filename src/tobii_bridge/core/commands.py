import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .state import ControlState
from ..models import Command, CommandType
from ..models.messages import calibration_response, status_response

logger = logging.getLogger(__name__)

Reply = Optional[dict[str, Any]]


class CommandHandler:
    """
    Interprets control messages from WebSocket clients.

    `handle_message` returns the reply for the originating connection, or
    None when nothing should be sent back (malformed payloads and unknown
    command types).
    """

    def __init__(self, state: ControlState):
        self._state = state
        self._handlers: dict[str, Callable[[Command], Reply]] = {
            CommandType.START_CALIBRATION: self._start_calibration,
            CommandType.STOP_CALIBRATION: self._stop_calibration,
            CommandType.SET_RECORDING: self._set_recording,
            CommandType.GET_STATUS: self._get_status,
        }

    def handle_message(self, raw: str | bytes) -> Reply:
        try:
            command = Command.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Dropping malformed command: %s", e.errors(include_url=False))
            return None

        handler = self._handlers.get(command.type)
        if handler is None:
            logger.debug("Ignoring unknown command type %r", command.type)
            return None

        return handler(command)

    # --- Handlers ---

    def _start_calibration(self, command: Command) -> Reply:
        # Calibration itself is driven by the provider's own tooling.
        self._state.set_calibrating(True)
        logger.info("Calibration started by client request.")
        return calibration_response("started", result="success")

    def _stop_calibration(self, command: Command) -> Reply:
        self._state.set_calibrating(False)
        logger.info("Calibration stopped by client request.")
        return calibration_response("stopped")

    def _set_recording(self, command: Command) -> Reply:
        enabled = command.flag("enabled", default=False)
        self._state.set_recording(enabled)
        logger.info("Recording %s.", "enabled" if enabled else "disabled")
        return status_response(recording=self._state.recording.is_set())

    def _get_status(self, command: Command) -> Reply:
        report = self._state.snapshot()
        return status_response(
            connected=report.connected,
            recording=report.recording,
            clients=report.clients,
            packets_processed=report.packets_processed,
            packets_distributed=report.packets_distributed,
            calibrating=report.calibrating,
        )
