from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AllocatorSettings(BaseSettings):
    """Keyspace limits and conflict-retry policy for department id allocation."""

    model_config = SettingsConfigDict(
        env_prefix="DEPTREE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Exclusive upper bound of the id keyspace.
    max_id_num: int = Field(default=10000, gt=1)
    # Probe window per parent is ``max_id_length - 1`` candidate children.
    max_id_length: int = Field(default=9, ge=2, le=10)
    # Root id handed out when the table is still empty.
    first_root_id: int = Field(default=1000, ge=10)
    insert_max_attempts: int = Field(default=3, ge=1)
    insert_retry_wait_seconds: float = Field(default=0.05, ge=0)

    @property
    def child_slots(self) -> int:
        return self.max_id_length - 1

    def model_post_init(self, __context: Any) -> None:
        if self.first_root_id >= self.max_id_num:
            raise ValueError("DEPTREE_FIRST_ROOT_ID must be below DEPTREE_MAX_ID_NUM")
        if self.first_root_id % 10 != 0:
            raise ValueError("DEPTREE_FIRST_ROOT_ID must end in a zero digit")


@lru_cache(maxsize=1)
def get_allocator_settings() -> AllocatorSettings:
    return AllocatorSettings()
