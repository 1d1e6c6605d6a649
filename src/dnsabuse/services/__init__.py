"""Features served under their own DNS zone.

Every module here provides one service class built from its config
section by a ``from_config`` classmethod.  ``SERVICE_FACTORIES`` maps
each config section to its constructor:

- ``rand`` — random integers.
- ``dice`` — dice rolls.
- ``fx`` — currency conversion (the only stateful service).
- ``dict`` — WordNet definitions.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, TypeAlias

from dnsabuse.services.dice import DiceService
from dnsabuse.services.dictionary import DictionaryService
from dnsabuse.services.fx import FxService
from dnsabuse.services.rand import RandomService

if TYPE_CHECKING:
    from dnsabuse.config import ServiceConfig
    from dnsabuse.logging import Logger
    from dnsabuse.services.base import Service

ServiceFactory: TypeAlias = "Callable[[ServiceConfig, Logger], Service]"

SERVICE_FACTORIES: dict[str, ServiceFactory] = {
    "rand": lambda cfg, _logger: RandomService.from_config(cfg),
    "dice": lambda cfg, _logger: DiceService.from_config(cfg),
    "fx": lambda cfg, logger: FxService.from_config(cfg, logger=logger),
    "dict": lambda cfg, _logger: DictionaryService.from_config(cfg),
}


def build_service(name: str, cfg: ServiceConfig, logger: Logger) -> Service:
    """Construct service *name* from its settings.

    Raises:
        KeyError: If no service is called *name*.
        ConfigError: If the settings are invalid.

    """
    return SERVICE_FACTORIES[name](cfg, logger)
