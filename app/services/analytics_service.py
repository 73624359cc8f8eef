"""
Telemetry ingestion, demo data and privacy export on top of the event buffer
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import csv
import hashlib
import io
import logging
import uuid

from fastapi import HTTPException, status

from app.config import settings
from app.services.analytics_store import (
    AnalyticsStore, InvalidEventError, DAY_MS, HOUR_MS, as_text, measured, estimated
)

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "Event ID", "Timestamp", "User ID Hash", "Platform", "App Version",
    "Session ID", "Install Type", "Duration Minutes", "Startup Time", "Memory Usage",
)


class AnalyticsService:
    def __init__(self, store: AnalyticsStore):
        self.store = store

    def enrich(self, event: Dict[str, Any], location: Dict[str, str], defaults: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Merge client defaults, stamp missing timestamps and attach the detected location"""
        properties = dict(defaults or {})
        properties.update(event.get("properties") or {})
        if properties.get("timestamp") is None:
            properties["timestamp"] = self.store.now()
        properties.setdefault("country_code", location["country_code"])
        properties.setdefault("country_name", location["country_name"])
        properties.setdefault("location_source", location["source"])
        return {"event": event.get("event"), "properties": properties}

    def ingest(self, event: Dict[str, Any], location: Dict[str, str]) -> str:
        enriched = self.enrich(event, location)
        try:
            self.store.add_event(enriched)
        except InvalidEventError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        logger.info(f"Analytics event stored: {enriched['event']} from {location['country_name']} ({location['country_code']})")
        return f"{enriched['event']}_{uuid.uuid4().hex[:12]}"

    def ingest_batch(self, events: List[Dict[str, Any]], location: Dict[str, str], client_info: Dict[str, Any]) -> Tuple[int, List[Dict[str, Any]]]:
        """Store every valid event; invalid ones are reported by index and skipped"""
        accepted = 0
        rejected = []
        for index, event in enumerate(events):
            if not isinstance(event, dict):
                rejected.append({"index": index, "error": "event payload must be an object"})
                continue
            try:
                self.store.add_event(self.enrich(event, location, client_info))
                accepted += 1
            except InvalidEventError as e:
                rejected.append({"index": index, "error": str(e)})

        if rejected:
            logger.warning(f"Batch ingestion rejected {len(rejected)} of {len(events)} events")
        logger.info(f"Batch ingestion stored {accepted} events")
        return accepted, rejected

    def clear_all(self) -> int:
        removed = self.store.clear()
        logger.info(f"Cleared all analytics data ({removed} events)")
        return removed

    def add_sample_data(self, country_code: str, country_name: str) -> int:
        """A single demo installation walking through install, session and launch"""
        now = self.store.now()
        common = {
            "user_id": "user-sample-001",
            "hardware_id": "hw-sample-user-001",
            "app_version": settings.analytics_current_version_line + "." + str(settings.analytics_current_min_patch),
            "platform": "darwin",
            "country_code": country_code,
            "country_name": country_name,
            "location_source": "manual",
        }
        samples = [
            ("zing_version_install_complete", {"install_type": "fresh_install", "timestamp": now - 2 * DAY_MS}),
            ("zing_session_start", {"session_id": f"session-{uuid.uuid4().hex[:8]}", "timestamp": now - DAY_MS}),
            ("zing_app_launch", {"startup_time": 1250, "memory_usage": 145, "timestamp": now - 6 * HOUR_MS}),
            ("zing_session_end", {
                "session_id": f"session-{uuid.uuid4().hex[:8]}",
                "duration_minutes": 45,
                "timestamp": now - HOUR_MS,
            }),
        ]
        for event_name, extra in samples:
            self.store.add_event({"event": event_name, "properties": dict(common, **extra)})

        logger.info(f"Added {len(samples)} sample events for {country_name} ({country_code})")
        return len(samples)

    def delete_old_data(self, age_in_days: int) -> Tuple[int, str]:
        deleted, cutoff = self.store.delete_older_than(age_in_days)
        cutoff_iso = datetime.fromtimestamp(cutoff / 1000, tz=timezone.utc).isoformat()
        return deleted, cutoff_iso

    # Privacy export

    @staticmethod
    def pseudonymize(hardware_id: Optional[str]) -> str:
        if not hardware_id:
            return "anonymous"
        return hashlib.sha256(str(hardware_id).encode("utf-8")).hexdigest()[:16] + "..."

    def build_export(self, exported_by: str, export_format: str) -> Dict[str, Any]:
        events = self.store.get_events()
        records = []
        for event in events:
            properties = event["properties"]
            timestamp = properties.get("timestamp") or self.store.now()
            records.append({
                "event_id": event["event"],
                "timestamp": datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).isoformat(),
                "user_id_hash": self.pseudonymize(properties.get("hardware_id")),
                "platform": properties.get("platform") or "unknown",
                "app_version": properties.get("version") or properties.get("app_version") or "unknown",
                "session_id": properties.get("session_id"),
                "event_properties": {
                    "install_type": properties.get("install_type"),
                    "duration_minutes": properties.get("duration_minutes"),
                    "startup_time": properties.get("startup_time"),
                    "memory_usage": properties.get("memory_usage"),
                },
            })

        return {
            "export_info": {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "format": export_format,
                "record_count": len(records),
                "exported_by": exported_by,
                "data_retention_policy": f"{settings.data_retention_days} days",
                "anonymization_method": "Hardware-based SHA-256 hashing",
            },
            "compliance_status": {
                "gdpr_compliant": True,
                "ccpa_compliant": True,
                "data_anonymized": True,
                "retention_enforced": True,
            },
            "analytics_data": records,
        }

    @staticmethod
    def export_to_csv(export: Dict[str, Any]) -> str:
        info = export["export_info"]
        buffer = io.StringIO()
        buffer.write(f"# Privacy Data Export - {info['timestamp']}\n")
        buffer.write(f"# Records: {info['record_count']}\n")
        buffer.write(f"# Exported by: {info['exported_by']}\n")
        buffer.write(f"# GDPR Compliant: {str(export['compliance_status']['gdpr_compliant']).lower()}\n")
        buffer.write(f"# Data Anonymized: {str(export['compliance_status']['data_anonymized']).lower()}\n")
        buffer.write("\n")

        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)
        for record in export["analytics_data"]:
            extra = record["event_properties"]
            writer.writerow([
                record["event_id"],
                record["timestamp"],
                record["user_id_hash"],
                record["platform"],
                record["app_version"],
                record["session_id"] or "",
                extra["install_type"] or "",
                "" if extra["duration_minutes"] is None else extra["duration_minutes"],
                "" if extra["startup_time"] is None else extra["startup_time"],
                "" if extra["memory_usage"] is None else extra["memory_usage"],
            ])
        return buffer.getvalue()

    def get_privacy_metrics(self) -> Dict[str, Any]:
        """Consent and retention posture derived from the buffer; fixed scores are tagged as estimates"""
        now = self.store.now()
        events = self.store.get_events()
        recent = [
            event for event in events
            if isinstance(event["properties"].get("timestamp"), (int, float))
            and event["properties"]["timestamp"] > now - 30 * DAY_MS
        ]

        installations = {
            as_text(event["properties"].get("hardware_id")) or as_text(event["properties"].get("installation_id"))
            for event in recent
        } - {None}
        opt_outs = sum(1 for event in events if event["event"] in ("analytics_opt_out", "privacy_setting_changed"))
        opt_out_rate = opt_outs / len(installations) * 100 if installations else 0.0

        timestamps = [
            event["properties"]["timestamp"] for event in events
            if isinstance(event["properties"].get("timestamp"), (int, float))
        ]
        oldest = min(timestamps, default=now)
        data_age_days = max(0, int((now - oldest) // DAY_MS))
        retention_days = settings.data_retention_days
        retention_compliant = data_age_days <= retention_days

        categories = [
            {
                "category": "User Consent",
                "status": "warning" if opt_out_rate > 5 else "compliant",
                "details": f"{opt_out_rate:.1f}% opt-out rate",
                "score": measured(max(85, 100 - int(opt_out_rate * 2))),
            },
            {
                "category": "Data Retention",
                "status": "compliant" if retention_compliant else "warning",
                "details": f"Oldest buffered event is {data_age_days} days old (target: {retention_days} days)",
                "score": measured(100 if retention_compliant else max(60, 100 - (data_age_days - retention_days) // 10)),
            },
            {
                "category": "Data Collection",
                "status": "compliant",
                "details": "Hardware-based anonymous identifiers only",
                "score": estimated(100),
            },
            {
                "category": "Access Controls",
                "status": "secure",
                "details": "Role-based dashboard access with session tokens",
                "score": estimated(95),
            },
        ]
        overall = sum(c["score"]["value"] for c in categories) / len(categories)

        types_collected = {
            "anonymous_user_id": len(installations),
            "app_version": len({
                as_text(event["properties"].get("version")) or as_text(event["properties"].get("app_version"))
                for event in recent
            } - {None}),
            "platform_type": len({as_text(event["properties"].get("platform")) for event in recent} - {None}),
            "usage_metrics": len(recent),
            "session_data": sum(1 for event in recent if "session" in event["event"]),
        }

        return {
            "anonymous_users_percent": 100.0,
            "data_retention_days": retention_days,
            "data_age_days": data_age_days,
            "opt_out_rate_percent": round(opt_out_rate, 1),
            "compliance_score_percent": estimated(round(overall, 1)),
            "privacy_metrics": categories,
            "data_collection": {
                "types_collected": types_collected,
                "total_data_points": sum(types_collected.values()),
                "anonymization_method": "Hardware-based SHA-256 hashing",
                "pii_collected": False,
            },
            "last_updated": datetime.fromtimestamp(now / 1000, tz=timezone.utc).isoformat(),
        }
