import logging
from typing import Optional

from hs2client.types import LogStrategy
from hs2client.utils import _bound

logger = logging.getLogger(__name__)

# see ClientConfig for parameter descriptions.
# - Min/Max avoids unsustainable configs
_config_policy = {  # (type, default, min, max)
    "max_rows": (int, 10000, 1, 1000000),
    "poll_interval": (float, 0.5, 0.05, 60),
}


class ClientConfig:
    """
    Settings consumed by the operation controller.

    :param max_rows: Page size requested from FetchResults.
    :param log_strategy: How operation logs are retrieved, one of LogStrategy.ALL,
        or None when the server offers no way to read them.
    :param poll_interval: Seconds to sleep between two GetOperationStatus calls
        while waiting for an operation to finish.
    """

    max_rows: int
    poll_interval: float

    def __init__(self, log_strategy: Optional[str] = None, **kwargs):
        if log_strategy is not None and log_strategy not in LogStrategy.ALL:
            raise ValueError(
                "Unknown log strategy {}, expected one of {}".format(
                    log_strategy, ", ".join(LogStrategy.ALL)
                )
            )
        self.log_strategy = log_strategy

        for key, (type_, default, min, max) in _config_policy.items():
            given_or_default = type_(kwargs.get(key, default))
            bound = _bound(min, max, given_or_default)
            setattr(self, key, bound)
            logger.debug(
                "config parameter: {} given_or_default {}".format(key, given_or_default)
            )
            if bound != given_or_default:
                logger.warning(
                    "Override out of policy config parameter: "
                    + "{} given {}, restricted to {}".format(
                        key, given_or_default, bound
                    )
                )

    @classmethod
    def from_kwargs(cls, **kwargs) -> "ClientConfig":
        """Build a config from connection keyword arguments, ignoring unrelated keys"""
        known = {k: kwargs[k] for k in _config_policy if k in kwargs}
        return cls(log_strategy=kwargs.get("log_strategy"), **known)

    def __repr__(self):
        return "ClientConfig(max_rows={}, log_strategy={!r}, poll_interval={})".format(
            self.max_rows, self.log_strategy, self.poll_interval
        )
