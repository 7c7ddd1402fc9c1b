from deepguard.services.detector import DeepfakeDetector, Notification
from deepguard.services.run_store import RunStore

__all__ = ["DeepfakeDetector", "Notification", "RunStore"]
