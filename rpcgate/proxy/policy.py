from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)


class MethodListConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    whitelisted_methods: Optional[List[str]] = None
    blacklisted_methods: Optional[List[str]] = None


@dataclass(frozen=True)
class MethodPolicy:
    allowed: FrozenSet[str]
    blocked: FrozenSet[str]

    @classmethod
    def from_lists(
        cls, allowed: Iterable[str] = (), blocked: Iterable[str] = ()
    ) -> "MethodPolicy":
        return cls(allowed=frozenset(allowed), blocked=frozenset(blocked))

    @classmethod
    def from_mapping(cls, data: Any) -> "MethodPolicy":
        if data is None:
            return cls.from_lists()
        if not isinstance(data, dict):
            raise ConfigError("failed to parse config file: expected a JSON object")
        try:
            parsed = MethodListConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"failed to parse config file: {exc}") from exc
        return cls.from_lists(
            parsed.whitelisted_methods or (),
            parsed.blacklisted_methods or (),
        )

    @classmethod
    def from_file(cls, path: str) -> "MethodPolicy":
        try:
            with open(path, "rb") as fh:
                raw = fh.read()
        except OSError as exc:
            raise ConfigError(f"failed to read config file: {exc}") from exc
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise ConfigError(f"failed to parse config file: {exc}") from exc
        policy = cls.from_mapping(data)
        logger.info(
            "method policy loaded: path=%s allowed=%d blocked=%d",
            path,
            len(policy.allowed),
            len(policy.blocked),
        )
        return policy

    def is_allowed(self, method: str) -> bool:
        # Blocked wins over allowed; anything unlisted is denied.
        if method in self.blocked:
            logger.warning("Blocked method: %s", method)
            return False
        if method in self.allowed:
            return True
        logger.warning("Method not whitelisted or blacklisted: %s", method)
        return False
