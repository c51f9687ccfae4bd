"""SensorChain - tamper-evident hash-chain log for periodic sensor readings"""

__version__ = "0.1.0"
