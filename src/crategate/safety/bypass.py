"""Time-limited per-stage bypasses and their audit trail.

Layout under the config root::

    safety-bypasses/<stage>.json   current bypass for a stage, absent when none
    safety-bypasses/audit.log      one JSON record per created bypass, append-only
    safety-bypasses/quota.json     successful bypasses per user for the current day
    safety-bypasses/.lock          advisory lock serializing every mutation
"""

from __future__ import annotations

import fcntl
import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from crategate.artifacts.canonical_json import append_jsonl, write_json_atomic
from crategate.config import BypassConfig
from crategate.safety.types import PipelineStage
from crategate.schemas.validator import validate_data

logger = logging.getLogger(__name__)

BYPASS_DIRNAME = "safety-bypasses"
AUDIT_LOG_FILENAME = "audit.log"
QUOTA_FILENAME = "quota.json"
LOCK_FILENAME = ".lock"

BYPASS_REASON_DISABLED = "BYPASS_DISABLED"
BYPASS_REASON_REASON_REQUIRED = "BYPASS_REASON_REQUIRED"
BYPASS_REASON_QUOTA_EXCEEDED = "BYPASS_QUOTA_EXCEEDED"
BYPASS_REASON_INVALID_DURATION = "BYPASS_INVALID_DURATION"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def _day(moment: datetime) -> str:
    """UTC calendar day used for quota accounting."""
    return moment.astimezone(UTC).date().isoformat()


class BypassError(RuntimeError):
    """Bypass creation refused."""

    reason_code: str

    def __init__(self, message: str, reason_code: str) -> None:
        super().__init__(message)
        self.reason_code = reason_code


@dataclass(frozen=True)
class ActiveBypass:
    """A persisted override for one stage."""

    stage: PipelineStage
    reason: str
    user: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def remaining(self, now: datetime) -> timedelta:
        return max(self.expires_at - now, timedelta(0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "reason": self.reason,
            "user": self.user,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActiveBypass:
        return cls(
            stage=PipelineStage(data["stage"]),
            reason=data["reason"],
            user=data["user"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


@dataclass(frozen=True)
class BypassLogEntry:
    """One audit record."""

    stage: PipelineStage
    reason: str
    user: str
    timestamp: datetime
    successful: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "reason": self.reason,
            "user": self.user,
            "timestamp": self.timestamp.isoformat(),
            "successful": self.successful,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BypassLogEntry:
        return cls(
            stage=PipelineStage(data["stage"]),
            reason=data["reason"],
            user=data["user"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            successful=bool(data["successful"]),
        )


class BypassManager:
    """Creates, checks and audits stage bypasses.

    Every mutation happens under an exclusive ``fcntl`` lock so concurrent
    CLI invocations cannot both pass the quota check or race an expiry.
    """

    def __init__(self, config: BypassConfig, root: Path, *, clock: Clock | None = None) -> None:
        self.config = config
        self.root = root
        self._clock = clock or utc_now

    @property
    def directory(self) -> Path:
        return self.root / BYPASS_DIRNAME

    @property
    def audit_log_path(self) -> Path:
        return self.directory / AUDIT_LOG_FILENAME

    @property
    def quota_path(self) -> Path:
        return self.directory / QUOTA_FILENAME

    def bypass_path(self, stage: PipelineStage) -> Path:
        return self.directory / f"{stage.value}.json"

    @contextmanager
    def _lock(self) -> Iterator[None]:
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self.directory / LOCK_FILENAME, "a+", encoding="utf-8") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def create_bypass(
        self,
        stage: PipelineStage,
        reason: str,
        user: str,
        duration_hours: float = 24.0,
    ) -> ActiveBypass:
        """Create (or replace) the bypass for ``stage``.

        All validation happens before anything is written, so a refused
        attempt leaves the bypass files, quota and audit log untouched.

        Raises:
            BypassError: If bypasses are disabled, the reason is missing,
                the duration is not positive or the daily quota is used up
        """
        if not self.config.enabled:
            raise BypassError(
                "Bypass system is disabled. Enable it with `crategate config set bypass.enabled true`.",
                BYPASS_REASON_DISABLED,
            )
        if duration_hours <= 0:
            raise BypassError(
                f"Bypass duration must be positive, got {duration_hours}",
                BYPASS_REASON_INVALID_DURATION,
            )
        reason = reason.strip()
        if self.config.require_reason and not reason:
            logger.warning("bypass refused for %s on %s: no reason given", user, stage.value)
            raise BypassError("Bypass reason is required", BYPASS_REASON_REASON_REQUIRED)

        with self._lock():
            now = self._clock()
            counts = self._load_quota(now)
            used = counts.get(user, 0)
            limit = self.config.max_bypasses_per_day
            if limit > 0 and used >= limit:
                logger.warning("bypass refused for %s on %s: daily quota %d reached", user, stage.value, limit)
                raise BypassError(
                    f"Daily bypass limit reached ({used}/{limit}) for {user}",
                    BYPASS_REASON_QUOTA_EXCEEDED,
                )

            bypass = ActiveBypass(
                stage=stage,
                reason=reason,
                user=user,
                created_at=now,
                expires_at=now + timedelta(hours=duration_hours),
            )
            write_json_atomic(self.bypass_path(stage), bypass.to_dict())
            counts[user] = used + 1
            write_json_atomic(self.quota_path, {"date": _day(now), "counts": counts})
            if self.config.log_bypasses:
                entry = BypassLogEntry(stage=stage, reason=reason, user=user, timestamp=now, successful=True)
                append_jsonl(self.audit_log_path, entry.to_dict())

        logger.warning(
            "bypass created for %s by %s until %s: %s",
            stage.value,
            user,
            bypass.expires_at.isoformat(),
            reason,
        )
        return bypass

    def check_active_bypass(self, stage: PipelineStage) -> ActiveBypass | None:
        """Return the live bypass for ``stage``, deleting it if it has expired.

        A corrupt bypass file counts as no bypass.
        """
        if not self.config.enabled:
            return None
        path = self.bypass_path(stage)
        if not path.exists():
            return None

        with self._lock():
            bypass = self._read_bypass(path)
            if bypass is None:
                return None
            if bypass.is_expired(self._clock()):
                path.unlink(missing_ok=True)
                logger.info("bypass for %s expired at %s and was removed", stage.value, bypass.expires_at)
                return None
        return bypass

    def remove_bypass(self, stage: PipelineStage) -> bool:
        """Delete the bypass for ``stage``; return whether one existed."""
        path = self.bypass_path(stage)
        if not path.exists():
            return False
        with self._lock():
            existed = path.exists()
            path.unlink(missing_ok=True)
        return existed

    def get_audit_log(self, limit: int | None = None) -> list[BypassLogEntry]:
        """Audit entries newest first, truncated to ``limit``."""
        entries = list(self._iter_audit_log())
        entries.reverse()
        return entries if limit is None else entries[:limit]

    def count_bypasses_today(self, user: str) -> int:
        """Successful bypasses created by ``user`` on the current UTC day."""
        with self._lock():
            return self._load_quota(self._clock()).get(user, 0)

    def active_bypasses(self) -> list[ActiveBypass]:
        """Live bypasses across every stage."""
        found = []
        for stage in PipelineStage:
            bypass = self.check_active_bypass(stage)
            if bypass is not None:
                found.append(bypass)
        return found

    def _read_bypass(self, path: Path) -> ActiveBypass | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            validate_data(data, "active_bypass")
            return ActiveBypass.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("ignoring unreadable bypass file %s: %s", path, exc)
            return None

    def _load_quota(self, now: datetime) -> dict[str, int]:
        """Per-user counts for ``now``'s day; caller holds the lock."""
        today = _day(now)
        try:
            data = json.loads(self.quota_path.read_text(encoding="utf-8"))
            if data["date"] != today:
                return {}
            return {str(user): int(count) for user, count in data["counts"].items()}
        except FileNotFoundError:
            pass
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("rebuilding bypass quota from audit log: %s", exc)
        return self._rebuild_quota(today)

    def _rebuild_quota(self, day: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for entry in self._iter_audit_log():
            if entry.successful and _day(entry.timestamp) == day:
                counts[entry.user] = counts.get(entry.user, 0) + 1
        return counts

    def _iter_audit_log(self) -> Iterator[BypassLogEntry]:
        if not self.audit_log_path.exists():
            return
        with self.audit_log_path.open(encoding="utf-8") as handle:
            for number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                    validate_data(data, "bypass_log_entry")
                    yield BypassLogEntry.from_dict(data)
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("skipping malformed audit log line %d: %s", number, exc)
