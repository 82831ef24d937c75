from .base import BatchCheck, Tweak, SAFETY_LEVELS
from .registry import TweakRegistry
from .strategies import CommandTweak, RegistryTweak, RegistryValue, ServiceTweak

__all__ = [
    "BatchCheck",
    "CommandTweak",
    "RegistryTweak",
    "RegistryValue",
    "SAFETY_LEVELS",
    "ServiceTweak",
    "Tweak",
    "TweakRegistry",
]
