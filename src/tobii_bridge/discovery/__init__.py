from .beacon import DiscoveryBeacon, DiscoveryResponder, start_discovery_responder

__all__ = ["DiscoveryBeacon", "DiscoveryResponder", "start_discovery_responder"]
