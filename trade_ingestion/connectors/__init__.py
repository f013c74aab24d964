from .bitflyer import BitflyerConnector
from .bitmex import BitmexConnector
from .liquid import LiquidConnector

__all__ = ["BitflyerConnector", "BitmexConnector", "LiquidConnector"]
