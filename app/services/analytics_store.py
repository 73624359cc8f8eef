"""
In-process telemetry buffer and the dashboard aggregates computed from it

The store keeps the most recent ``capacity`` events in arrival order and
evicts the oldest first. Every query scans the buffer and returns plain
JSON-serializable dicts. Aggregation tolerates events with a missing or
malformed ``properties.timestamp`` by skipping them; only ``add_event``
validates shape and raises ``InvalidEventError``.

One instance is created per process at application startup and handed to
request handlers through a FastAPI dependency. Each process has its own
buffer; nothing here is shared across instances.

Figures that are placeholders rather than measurements are wrapped with
``estimated()``; figures derived from events that appear next to them are
wrapped with ``measured()``.
"""
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple
import logging
import math
import os
import platform
import random
import sys
import time

import psutil

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

DEFAULT_CAPACITY = 10000

SESSION_EVENTS = ("session_start", "session_heartbeat")
INSTALL_EVENT = "zing_version_install_complete"
LAUNCH_EVENT = "zing_app_launch"
INSTALL_TYPES = ("fresh_install", "version_update", "reinstall", "existing_install")

REGION_BY_PLATFORM = {
    "darwin": "North America",
    "win32": "Europe",
    "linux": "Asia Pacific",
}


class InvalidEventError(ValueError):
    """Raised when an ingested payload lacks the required event shape"""


def measured(value: Any) -> Dict[str, Any]:
    return {"value": value, "source": "measured"}


def estimated(value: Any) -> Dict[str, Any]:
    return {"value": value, "source": "estimated"}


def parse_version(version: str) -> Tuple[int, ...]:
    """Numeric sort key for dotted versions: '1.10.0' sorts after '1.9.3'"""
    parts = []
    for component in str(version).lstrip("vV").split("."):
        digits = ""
        for char in component:
            if not char.isdigit():
                break
            digits += char
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


@dataclass
class VersionPolicy:
    """Which installed versions count as current, outdated or legacy"""
    current_line: str = "1.3"
    current_min_patch: int = 5
    outdated_min_patch: int = 2

    def classify(self, version: str) -> str:
        line = parse_version(self.current_line)
        parsed = parse_version(version)
        if parsed[:len(line)] != line or len(parsed) <= len(line):
            return "legacy"
        patch = parsed[len(line)]
        if patch >= self.current_min_patch:
            return "current"
        if patch >= self.outdated_min_patch:
            return "outdated"
        return "legacy"


def _timestamp(event: Dict[str, Any]) -> Optional[int]:
    value = event.get("properties", {}).get("timestamp")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return int(value)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def as_text(value: Any) -> Optional[str]:
    """Passthrough properties are opaque; only non-empty strings are used as keys"""
    return value if isinstance(value, str) and value else None


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _identity(properties: Dict[str, Any]) -> Optional[str]:
    return (
        as_text(properties.get("hardware_id"))
        or as_text(properties.get("installation_id"))
        or as_text(properties.get("user_id"))
    )


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _format_time_ago(now_ms: int, ms: int) -> str:
    diff = max(0, now_ms - ms)
    minutes = diff // MINUTE_MS
    hours = diff // HOUR_MS
    days = diff // DAY_MS
    if minutes < 60:
        return f"{minutes} minutes ago"
    if hours < 24:
        return f"{hours} hours ago"
    return f"{days} days ago"


def _process_resources() -> Dict[str, Any]:
    process = psutil.Process(os.getpid())
    counters = psutil.net_io_counters()
    return {
        "memory_usage": round(process.memory_info().rss / (1024 * 1024), 1),
        "cpu_usage": psutil.cpu_percent(interval=None),
        "disk_usage": psutil.disk_usage("/").percent,
        "network_io": {
            "inbound": counters.bytes_recv if counters else 0,
            "outbound": counters.bytes_sent if counters else 0,
        },
    }


class AnalyticsStore:

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
        version_policy: Optional[VersionPolicy] = None,
        resource_reader: Optional[Callable[[], Dict[str, Any]]] = None,
        environment: str = "production"
    ):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._events: Deque[Dict[str, Any]] = deque(maxlen=capacity)
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._rng = rng or random.Random()
        self.version_policy = version_policy or VersionPolicy()
        self._resource_reader = resource_reader or _process_resources
        self.environment = environment

    def now(self) -> int:
        return self._clock()

    # Ingestion

    @staticmethod
    def validate_event(event: Any) -> Dict[str, Any]:
        if not isinstance(event, dict):
            raise InvalidEventError("event payload must be an object")
        name = event.get("event")
        if not isinstance(name, str) or not name:
            raise InvalidEventError("event: a non-empty event name is required")
        properties = event.get("properties")
        if not isinstance(properties, dict):
            raise InvalidEventError("properties: an object is required")
        user_id = properties.get("user_id")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidEventError("properties.user_id: a non-empty string is required")
        if _timestamp({"properties": properties}) is None:
            raise InvalidEventError("properties.timestamp: epoch milliseconds are required")
        return {"event": name, "properties": properties}

    def add_event(self, event: Dict[str, Any]) -> None:
        """Append an event; beyond capacity the oldest event is dropped"""
        self._events.append(self.validate_event(event))

    def add_events(self, events: Iterable[Dict[str, Any]]) -> int:
        added = 0
        for event in events:
            self.add_event(event)
            added += 1
        return added

    def get_events(self) -> List[Dict[str, Any]]:
        return list(self._events)

    def get_recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        return list(self._events)[-limit:]

    def get_total_events(self) -> int:
        return len(self._events)

    def clear(self) -> int:
        """Drop every buffered event regardless of timestamp"""
        removed = len(self._events)
        self._events.clear()
        return removed

    def clear_old_events(self, cutoff: int) -> int:
        """Keep only events stamped strictly after ``cutoff``; returns how many were dropped"""
        kept = [
            event for event in self._events
            if (ts := _timestamp(event)) is not None and ts > cutoff
        ]
        removed = len(self._events) - len(kept)
        self._events = deque(kept, maxlen=self.capacity)
        if removed:
            logger.info(f"Cleared {removed} analytics events older than {_iso(cutoff)}")
        return removed

    def delete_older_than(self, age_in_days: int) -> Tuple[int, int]:
        if age_in_days < 1:
            raise ValueError("age_in_days must be at least 1")
        cutoff = self.now() - age_in_days * DAY_MS
        return self.clear_old_events(cutoff), cutoff

    def _window(self, start: int, end: Optional[int] = None) -> List[Tuple[int, Dict[str, Any]]]:
        """Events with a valid timestamp in [start, end]"""
        end = self.now() if end is None else end
        window = []
        for event in self._events:
            ts = _timestamp(event)
            if ts is not None and start <= ts <= end:
                window.append((ts, event))
        return window

    # Dashboard aggregates

    def get_realtime_metrics(self) -> Dict[str, Any]:
        now = self.now()
        last_hour = self._window(now - HOUR_MS, now)

        hour_users = set()
        active_users = set()
        active_sessions = 0
        current_version_users = 0
        for ts, event in last_hour:
            properties = event["properties"]
            user_id = properties.get("user_id")
            if user_id is not None:
                hour_users.add(user_id)
                if ts >= now - 5 * MINUTE_MS:
                    active_users.add(user_id)
            if event["event"] in SESSION_EVENTS:
                active_sessions += 1
            if properties.get("app_version"):
                current_version_users += 1

        return {
            "active_users_now": len(active_users),
            "users_last_hour": len(hour_users),
            "active_sessions": active_sessions,
            "current_version_users": current_version_users,
            "pending_updates": estimated(max(0, math.floor(current_version_users * 0.05))),
            "last_updated": _iso(now),
        }

    def get_historical_metrics(self, days: int = 7) -> Dict[str, Any]:
        """Daily series over the last ``days`` local calendar days, oldest first, gaps zero-filled"""
        if days < 1:
            raise ValueError("days must be at least 1")
        now = self.now()
        today = datetime.fromtimestamp(now / 1000).date()
        dates = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
        start = int(datetime.combine(dates[0], datetime.min.time()).timestamp() * 1000)

        buckets: Dict[Any, Dict[str, Any]] = {
            day: {"users": set(), "sessions": 0, "durations": []} for day in dates
        }
        total_events = 0
        unique_users = set()
        for ts, event in self._window(start, now):
            bucket = buckets.get(datetime.fromtimestamp(ts / 1000).date())
            if bucket is None:
                continue
            total_events += 1
            properties = event["properties"]
            user_id = properties.get("user_id")
            if user_id is not None:
                bucket["users"].add(user_id)
                unique_users.add(user_id)
            if event["event"] == "session_start":
                bucket["sessions"] += 1
            elif event["event"] == "session_end":
                bucket["durations"].append(_number(properties.get("duration_minutes")) or 0.0)

        daily_metrics = [
            {
                "date": day.isoformat(),
                "active_users": len(buckets[day]["users"]),
                "new_sessions": buckets[day]["sessions"],
                "avg_session_duration": round(_mean(buckets[day]["durations"])),
            }
            for day in dates
        ]
        return {
            "days": days,
            "total_events": total_events,
            "unique_users": len(unique_users),
            "daily_metrics": daily_metrics,
        }

    def get_geographic_metrics(self) -> List[Dict[str, Any]]:
        """Users of the last 24 hours grouped by a coarse platform-to-region lookup"""
        now = self.now()
        users_by_region: Dict[str, set] = {}
        for _, event in self._window(now - DAY_MS, now):
            properties = event["properties"]
            region = REGION_BY_PLATFORM.get(as_text(properties.get("platform")) or "unknown", "Other")
            users = users_by_region.setdefault(region, set())
            if properties.get("user_id") is not None:
                users.add(properties["user_id"])

        regions = []
        for region, users in sorted(users_by_region.items(), key=lambda item: (-len(item[1]), item[0])):
            if self._rng.random() > 0.5:
                growth = self._rng.randint(5, 24)
            else:
                growth = -self._rng.randint(0, 9)
            regions.append({
                "country": region,
                "users": len(users),
                "sessions": estimated(math.floor(len(users) * 1.2)),
                "growth": estimated(growth),
            })
        return regions

    def get_country_breakdown(self) -> List[Dict[str, Any]]:
        """Users per country from ingestion-time geolocation"""
        countries: Dict[str, Dict[str, Any]] = {}
        for event in self._events:
            properties = event["properties"]
            code = as_text(properties.get("country_code")) or "XX"
            entry = countries.setdefault(code, {
                "country_code": code,
                "country_name": as_text(properties.get("country_name")) or "Unknown",
                "users": set(),
                "events": 0,
                "location_source": as_text(properties.get("location_source")) or "unknown",
            })
            entry["events"] += 1
            if properties.get("user_id") is not None:
                entry["users"].add(properties["user_id"])

        breakdown = [dict(entry, users=len(entry["users"])) for entry in countries.values()]
        breakdown.sort(key=lambda entry: (-entry["users"], entry["country_code"]))
        return breakdown

    def get_version_metrics(self) -> Dict[str, Any]:
        """Install and launch events of the last 30 days grouped by version"""
        now = self.now()
        latest_version: Dict[str, str] = {}
        launches: Dict[str, List[Tuple[int, Tuple[int, ...]]]] = {}
        updates: List[Tuple[str, int, Tuple[int, ...]]] = []
        summary = {install_type: 0 for install_type in INSTALL_TYPES}
        total_events = 0

        for ts, event in sorted(self._window(now - 30 * DAY_MS, now), key=lambda item: item[0]):
            if event["event"] not in (INSTALL_EVENT, LAUNCH_EVENT):
                continue
            properties = event["properties"]
            version = as_text(properties.get("version")) or as_text(properties.get("app_version"))
            installation = (
                as_text(properties.get("installation_id"))
                or as_text(properties.get("hardware_id"))
                or as_text(properties.get("user_id"))
            )
            if not version or not installation:
                continue
            total_events += 1

            install_type = as_text(properties.get("install_type"))
            if install_type not in INSTALL_TYPES:
                install_type = "existing_install"
            summary[install_type] += 1

            parsed = parse_version(version)
            previous = latest_version.get(installation)
            if previous is None or parse_version(previous) <= parsed:
                latest_version[installation] = version

            if event["event"] == LAUNCH_EVENT:
                launches.setdefault(installation, []).append((ts, parsed))
            elif install_type == "version_update":
                updates.append((installation, ts, parsed))

        users_by_version: Dict[str, int] = {}
        for version in latest_version.values():
            users_by_version[version] = users_by_version.get(version, 0) + 1
        total_users = len(latest_version)

        distribution = []
        for version in sorted(users_by_version, key=parse_version, reverse=True):
            users = users_by_version[version]
            distribution.append({
                "version": version,
                "users": users,
                "percentage": round(users / total_users * 100, 1) if total_users else 0.0,
                "status": self.version_policy.classify(version),
            })

        # An update succeeded when the installation later launched the new version
        succeeded = 0
        for installation, ts, parsed in updates:
            if any(launch_ts >= ts and launch_version >= parsed for launch_ts, launch_version in launches.get(installation, [])):
                succeeded += 1
        if updates:
            update_success_rate = measured(round(succeeded / len(updates) * 100, 1))
        else:
            update_success_rate = estimated(96.8)

        update_count = summary["version_update"]
        reinstall_count = summary["reinstall"]
        if update_count:
            download_success = measured(min(100.0, round(update_count / (update_count + reinstall_count) * 100, 1)))
        else:
            download_success = estimated(94.7)

        return {
            "current_version": distribution[0]["version"] if distribution else None,
            "total_users": total_users,
            "version_distribution": distribution,
            "install_summary": {
                "total_events": total_events,
                "fresh_installs": summary["fresh_install"],
                "updates": update_count,
                "reinstalls": reinstall_count,
                "existing_installs": summary["existing_install"],
            },
            "update_success_rate": update_success_rate,
            "update_process_analytics": {
                "detection_rate": estimated(98.2),
                "download_success": download_success,
                "install_success": update_success_rate,
                "avg_adoption_days": estimated(4.2),
            },
            "last_updated": _iso(now),
        }

    def get_performance_metrics(self) -> Dict[str, Any]:
        now = self.now()
        window = self._window(now - 7 * DAY_MS, now)

        startup, memory, response = [], [], []
        sessions = crashes = 0
        for _, event in window:
            properties = event["properties"]
            for key, values in (("startup_time", startup), ("memory_usage", memory), ("response_time", response)):
                value = _number(properties.get(key))
                if value is not None:
                    values.append(value)
            if event["event"] in ("zing_session_start", "zing_app_crash"):
                sessions += 1
                if event["event"] == "zing_app_crash" or properties.get("crash_type") is not None:
                    crashes += 1

        startup_time = _mean(startup) / 1000
        memory_usage = _mean(memory)
        response_time = _mean(response)
        crash_rate = crashes / sessions * 100 if sessions else 0.0

        benchmarks = self._performance_benchmarks(startup_time, memory_usage, response_time, crash_rate) if window else []
        return {
            "avg_startup_time": round(startup_time, 2),
            "avg_startup_time_formatted": f"{startup_time:.1f}s",
            "avg_memory_usage": round(memory_usage),
            "avg_memory_usage_formatted": f"{round(memory_usage)}MB",
            "avg_response_time": round(response_time),
            "avg_response_time_formatted": f"{round(response_time)}ms",
            "crash_rate": round(crash_rate, 2),
            "crash_rate_formatted": f"{crash_rate:.2f}%",
            "performance_benchmarks": benchmarks,
            "overall_health": self._overall_health(benchmarks),
            "data_points": len(window),
            "last_updated": _iso(now),
        }

    @staticmethod
    def _performance_benchmarks(startup_time: float, memory_usage: float, response_time: float, crash_rate: float) -> List[Dict[str, Any]]:
        def grade(value: float, excellent: Optional[float], good: float) -> str:
            if excellent is not None and value < excellent:
                return "excellent"
            return "good" if value < good else "warning"

        return [
            {
                "name": "Startup Time",
                "value": f"{startup_time:.1f}s",
                "current_value": round(startup_time, 2),
                "target_value": 3.0,
                "target": "< 3s",
                "status": grade(startup_time, 2.0, 3.0),
            },
            {
                "name": "Memory Usage",
                "value": f"{round(memory_usage)}MB",
                "current_value": round(memory_usage, 1),
                "target_value": 200,
                "target": "< 200MB",
                "status": grade(memory_usage, None, 200),
            },
            {
                "name": "Response Time",
                "value": f"{round(response_time)}ms",
                "current_value": round(response_time, 1),
                "target_value": 200,
                "target": "< 200ms",
                "status": grade(response_time, 100, 200),
            },
            {
                "name": "Crash Rate",
                "value": f"{crash_rate:.2f}%",
                "current_value": round(crash_rate, 2),
                "target_value": 0.1,
                "target": "< 0.1%",
                "status": grade(crash_rate, 0.1, 0.5),
            },
        ]

    @staticmethod
    def _overall_health(benchmarks: List[Dict[str, Any]]) -> str:
        excellent = sum(1 for b in benchmarks if b["status"] == "excellent")
        good = sum(1 for b in benchmarks if b["status"] == "good")
        warning = sum(1 for b in benchmarks if b["status"] == "warning")
        if excellent > good + warning:
            return "excellent"
        if warning > excellent + good:
            return "warning"
        return "good"

    def get_user_metrics(self) -> Dict[str, Any]:
        now = self.now()
        week_ago = now - 7 * DAY_MS
        two_weeks_ago = week_ago - 7 * DAY_MS

        all_users, this_week, previous_week, before_week = set(), set(), set(), set()
        new_this_week, new_previous_week = set(), set()
        durations: List[float] = []
        sessions = 0
        activity: Dict[str, Dict[str, Any]] = {}

        for event in self._events:
            ts = _timestamp(event)
            if ts is None or ts > now:
                continue
            properties = event["properties"]
            identity = _identity(properties)
            if identity is None:
                continue
            all_users.add(identity)

            fresh_install = event["event"] == INSTALL_EVENT and properties.get("install_type") == "fresh_install"
            install_id = as_text(properties.get("hardware_id")) or as_text(properties.get("installation_id"))

            if ts > week_ago:
                this_week.add(identity)
                if fresh_install and install_id:
                    new_this_week.add(install_id)
                if event["event"] == "zing_session_start":
                    sessions += 1
                if event["event"] in ("zing_session_start", "zing_session_end"):
                    duration = _number(properties.get("duration_minutes"))
                    if duration is not None:
                        durations.append(duration)

                entry = activity.setdefault(identity, {
                    "first_seen": ts, "last_active": ts, "sessions": 0,
                    "platform": None, "version": None,
                })
                entry["first_seen"] = min(entry["first_seen"], ts)
                if ts >= entry["last_active"]:
                    entry["last_active"] = ts
                    entry["platform"] = as_text(properties.get("platform")) or entry["platform"]
                    entry["version"] = as_text(properties.get("app_version")) or as_text(properties.get("version")) or entry["version"]
                if event["event"] == "zing_session_start":
                    entry["sessions"] += 1
            else:
                before_week.add(identity)
                if ts > two_weeks_ago:
                    previous_week.add(identity)
                    if fresh_install and install_id:
                        new_previous_week.add(install_id)

        def growth(current: int, previous: int) -> float:
            return round((current - previous) / previous * 100, 1) if previous else 0.0

        avg_duration = _mean(durations)
        retention = min(100.0, len(this_week) / len(previous_week) * 100) if previous_week else 0.0

        recent = sorted(activity.items(), key=lambda item: item[1]["last_active"], reverse=True)[:10]
        user_activity = [
            {
                "user_id": identity[:10] + "...",
                "first_seen": entry["first_seen"],
                "last_active": entry["last_active"],
                "sessions": entry["sessions"],
                "platform": entry["platform"] or "unknown",
                "version": entry["version"] or "unknown",
                "first_seen_formatted": _format_time_ago(now, entry["first_seen"]),
                "last_active_formatted": _format_time_ago(now, entry["last_active"]),
            }
            for identity, entry in recent
        ]

        return {
            "total_users": len(all_users),
            "new_users_this_week": len(new_this_week),
            "active_users_this_week": len(this_week),
            "avg_session_duration_minutes": round(avg_duration, 1),
            "avg_session_duration_formatted": f"{math.floor(avg_duration)}m {round((avg_duration % 1) * 60)}s",
            "total_sessions_this_week": sessions,
            "retention_rate": round(retention, 1),
            "growth_metrics": {
                "active_user_growth_percent": growth(len(this_week), len(previous_week)),
                "new_user_growth_percent": growth(len(new_this_week), len(new_previous_week)),
                "total_user_growth_percent": growth(len(all_users), len(before_week)),
            },
            "user_activity": user_activity,
            "last_updated": _iso(now),
        }

    def get_system_metrics(self) -> Dict[str, Any]:
        now = self.now()
        stamped = [(ts, event) for event in self._events if (ts := _timestamp(event)) is not None]

        oldest = min((ts for ts, _ in stamped), default=now)
        uptime_hours = max(0, now - oldest) / HOUR_MS
        uptime_days = math.floor(uptime_hours / 24)
        remaining_hours = math.floor(uptime_hours % 24)
        if uptime_days > 0:
            uptime_formatted = f"{uptime_days}d {remaining_hours}h"
        else:
            uptime_formatted = f"{remaining_hours}h {math.floor((uptime_hours % 1) * 60)}m"

        recent = sum(1 for ts, _ in stamped if now - 5 * MINUTE_MS <= ts <= now)
        events_per_minute = recent / 5

        response_times = [
            value for _, event in stamped
            if (value := _number(event["properties"].get("response_time"))) is not None
        ]
        avg_response_time = _mean(response_times)

        requests = sum(
            1 for _, event in stamped
            if event["event"] == "api_request" or "session" in event["event"]
        )
        errors = sum(
            1 for _, event in stamped
            if "error" in event["event"] or event["properties"].get("error")
        )
        error_rate = errors / requests * 100 if requests else 0.0

        resources = self._resource_reader()
        memory_mb = resources.get("memory_usage", 0) or 0
        checked_at = _iso(now)

        def status(value: float, warning: float, critical: float) -> str:
            if value < warning:
                return "healthy"
            return "warning" if value < critical else "critical"

        health_checks = [
            {
                "name": "API Response Time",
                "status": status(avg_response_time, 200, 500),
                "value": f"{round(avg_response_time)}ms",
                "target": "< 200ms",
                "last_check": checked_at,
            },
            {
                "name": "Error Rate",
                "status": status(error_rate, 1, 5),
                "value": f"{error_rate:.2f}%",
                "target": "< 1%",
                "last_check": checked_at,
            },
            {
                "name": "Event Processing",
                "status": status(events_per_minute, 1000, 5000),
                "value": f"{round(events_per_minute * 60)}/hr",
                "target": "< 60k/hr",
                "last_check": checked_at,
            },
            {
                "name": "Event Buffer",
                "status": status(len(self._events) / self.capacity * 100, 90, 100),
                "value": f"{len(self._events)}/{self.capacity} events",
                "target": "< 90% full",
                "last_check": checked_at,
            },
            {
                "name": "Memory Usage",
                "status": status(memory_mb, 512, 1024),
                "value": f"{round(memory_mb)}MB",
                "target": "< 512MB",
                "last_check": checked_at,
            },
        ]

        healthy = sum(1 for check in health_checks if check["status"] == "healthy")
        warnings = sum(1 for check in health_checks if check["status"] == "warning")
        critical = sum(1 for check in health_checks if check["status"] == "critical")

        overall_status = "healthy"
        if critical > 0:
            overall_status = "critical"
        elif warnings > healthy:
            overall_status = "warning"

        alerts = []
        if critical > 0 or warnings > 2:
            alerts.append({
                "level": "critical" if critical > 0 else "warning",
                "message": (
                    f"{critical} critical system health issues detected" if critical > 0
                    else f"{warnings} system health warnings detected"
                ),
                "timestamp": checked_at,
            })

        return {
            "overall_status": overall_status,
            "uptime": {
                "total_hours": round(uptime_hours, 1),
                "formatted": uptime_formatted,
                "since": _iso(oldest),
            },
            "performance": {
                "avg_response_time": round(avg_response_time),
                "requests_per_minute": round(events_per_minute),
                "error_rate": round(error_rate, 2),
                "events_processed": len(self._events),
            },
            "resources": resources,
            "health_checks": health_checks,
            "system_info": {
                "environment": self.environment,
                "python_version": sys.version.split()[0],
                "platform": sys.platform,
                "architecture": platform.machine(),
            },
            "alerts": alerts,
            "last_updated": checked_at,
        }
