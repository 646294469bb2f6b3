"""Enums and type aliases for brandcontext."""

from enum import StrEnum


class BrandKey(StrEnum):
    OCTOPUS = "octopus"
    TALENTQX = "talentqx"


class Severity(StrEnum):
    INFO = "info"
    WARN = "warn"
    CRITICAL = "critical"


class InterviewStatus(StrEnum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CommandClass(StrEnum):
    RIVER = "RIVER"
    COASTAL = "COASTAL"
    DEEP_SEA = "DEEP_SEA"
    CONTAINER_ULCS = "CONTAINER_ULCS"
    TANKER = "TANKER"
    LNG = "LNG"
    OFFSHORE = "OFFSHORE"
    PASSENGER = "PASSENGER"


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CacheDriver(StrEnum):
    MEMORY = "memory"
    REDIS = "redis"
