"""
Voyage export: GPX 1.1 track and plain-text logbook.
"""

import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import List, Optional

from .models import LogEntry, VoyageSummary

GPX_NAMESPACE = "http://www.topografix.com/GPX/1/1"
GPX_CREATOR = "Vessel Noon Logbook"
MAX_FILENAME_LENGTH = 50

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9\s-]", re.IGNORECASE)


def iso_utc(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def display_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def export_filename(voyage: Optional[VoyageSummary], extension: str) -> str:
    """Filesystem-safe download name derived from the voyage name."""
    default = f"voyage_export.{extension}"
    if voyage is None or not voyage.name:
        return default
    safe = _UNSAFE_FILENAME_CHARS.sub("", voyage.name).strip()
    safe = re.sub(r"\s+", "_", safe)[:MAX_FILENAME_LENGTH]
    return f"{safe}.{extension}" if safe else default


def _chronological(entries: List[LogEntry]) -> List[LogEntry]:
    return sorted(entries, key=lambda e: (e.timestamp, e.id))


def generate_gpx(voyage: VoyageSummary, entries: List[LogEntry]) -> str:
    """
    GPX 1.1 document with one track of every positioned entry, oldest first.
    """
    ET.register_namespace("", GPX_NAMESPACE)
    ns = f"{{{GPX_NAMESPACE}}}"

    root = ET.Element(f"{ns}gpx", {"version": "1.1", "creator": GPX_CREATOR})
    metadata = ET.SubElement(root, f"{ns}metadata")
    ET.SubElement(metadata, f"{ns}name").text = voyage.name
    ET.SubElement(metadata, f"{ns}time").text = iso_utc(voyage.start_timestamp)

    trk = ET.SubElement(root, f"{ns}trk")
    ET.SubElement(trk, f"{ns}name").text = voyage.name
    seg = ET.SubElement(trk, f"{ns}trkseg")

    for entry in _chronological(entries):
        if entry.position is None:
            continue
        pt = ET.SubElement(seg, f"{ns}trkpt", {
            "lat": f"{entry.position.latitude:.6f}",
            "lon": f"{entry.position.longitude:.6f}",
        })
        ET.SubElement(pt, f"{ns}time").text = iso_utc(entry.timestamp)
        if entry.log_text:
            ET.SubElement(pt, f"{ns}desc").text = entry.log_text

    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"


def generate_logbook(voyage: VoyageSummary, entries: List[LogEntry]) -> str:
    """Printable text logbook for a voyage."""
    rule = "=" * 80
    lines = [
        voyage.name.upper(),
        rule,
        "",
        f"Voyage Start: {display_time(voyage.start_timestamp)}",
    ]
    if voyage.end_timestamp is not None:
        lines.append(f"Voyage End: {display_time(voyage.end_timestamp)}")
    lines += [
        f"Total Distance: {voyage.total_distance:.1f} nm",
        f"Log Entries: {voyage.entry_count}",
        "",
        rule,
        "",
    ]

    for index, entry in enumerate(_chronological(entries), start=1):
        lines.append(f"ENTRY {index} - {display_time(entry.timestamp)}")
        lines.append("-" * 80)
        if entry.position is not None:
            lines.append(
                f"Position: {entry.position.latitude:.6f}, {entry.position.longitude:.6f}"
            )
        else:
            lines.append("Position: unavailable")

        if entry.distance is not None and entry.distance.distance_since_last:
            lines.append(f"Distance Since Last: {entry.distance.distance_since_last:.1f} nm")

        if entry.readings:
            lines += ["", "Conditions:"]
            for r in entry.readings:
                unit = f" {r.unit}" if r.unit else ""
                lines.append(f"  {r.label}: {r.value}{unit}")

        if entry.log_text:
            lines += ["", "Log:", entry.log_text]
        lines.append("")

    return "\n".join(lines) + "\n"
