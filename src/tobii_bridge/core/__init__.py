from .state import AtomicCounter, BridgeState, ControlState, StatusReport
from .store import SnapshotStore
from .registry import ClientEntry, ClientRegistry
from .commands import CommandHandler

# AcquisitionLoop and BridgeServer depend on the sinks and transports, which
# themselves build on the modules above; import them from .runner / .manager.
__all__ = [
    "AtomicCounter",
    "BridgeState",
    "ControlState",
    "StatusReport",
    "SnapshotStore",
    "ClientEntry",
    "ClientRegistry",
    "CommandHandler",
]
