from stratus.deployment.client.stratus_function import StratusFunction
from stratus.deployment.client.stratus_service import StratusService

__version__ = "0.1.0"

__all__ = ["StratusFunction", "StratusService", "__version__"]
