"""Render audit and migration results as text, JSON, YAML or CSV."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Sequence
from typing import Any

import click
import yaml

from hcp_autoscaling.models import (
    REQUIRED_ANNOTATIONS,
    AuditInfo,
    AuditResult,
    Category,
    MigrationResult,
    MigrationStatus,
)

OUTPUT_FORMATS = ("text", "json", "yaml", "csv")

CLUSTER_COLUMNS = ["CLUSTER ID", "CLUSTER NAME", "NAMESPACE", "CURRENT SIZE"]
CSV_COLUMNS = ["cluster_id", "cluster_name", "namespace", "current_size", "category"]


def table(rows: Sequence[Sequence[str]], min_width: int = 20, padding: int = 3) -> str:
    """Left-aligned columns, every column but the last padded to a minimum width."""
    if not rows:
        return ""
    columns = max(len(r) for r in rows)
    widths = [
        max(min_width, max(len(r[i]) for r in rows if i < len(r)) + padding)
        for i in range(columns - 1)
    ]
    lines = []
    for row in rows:
        cells = [cell.ljust(widths[i]) if i < len(widths) else cell for i, cell in enumerate(row)]
        lines.append("".join(cells).rstrip())
    return "\n".join(lines)


def _cluster_rows(entries: Iterable[AuditInfo], headers: bool) -> list[list[str]]:
    rows = [list(CLUSTER_COLUMNS)] if headers else []
    for c in sorted(entries, key=lambda e: e.cluster_id):
        rows.append([c.cluster_id, c.cluster_name, c.namespace, c.current_size])
    return rows


# --- Audit ---


def audit_to_dict(result: AuditResult) -> dict[str, Any]:
    """Serializable form of an audit; empty labels, annotations and errors are omitted."""
    data = result.model_dump(mode="json")
    for key in ("needs_label_removal", "ready_for_migration", "already_configured"):
        for entry in data[key]:
            for optional in ("labels", "annotations"):
                if not entry.get(optional):
                    entry.pop(optional, None)
    if not data["errors"]:
        del data["errors"]
    return data


def render_audit_json(result: AuditResult) -> str:
    return json.dumps(audit_to_dict(result), indent=2)


def render_audit_yaml(result: AuditResult) -> str:
    return yaml.safe_dump(audit_to_dict(result), default_flow_style=False, sort_keys=False)


def render_audit_csv(result: AuditResult, headers: bool = True) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    if headers:
        writer.writerow(CSV_COLUMNS)
    for c in (*result.needs_label_removal, *result.ready_for_migration, *result.already_configured):
        writer.writerow([c.cluster_id, c.cluster_name, c.namespace, c.current_size, c.category.value])
    return buf.getvalue()


_SECTIONS = [
    (
        Category.NEEDS_REMOVAL,
        "GROUP A: Needs Annotation Removal",
        "These clusters have the cluster-size-override annotation that must be removed:",
    ),
    (
        Category.READY_FOR_MIGRATION,
        "GROUP B: Ready for Migration",
        "These clusters can be immediately migrated to autoscaling:",
    ),
    (
        Category.ALREADY_CONFIGURED,
        "Already Configured",
        "These clusters already have autoscaling annotations set:",
    ),
]


def render_audit_text(result: AuditResult, headers: bool = True) -> str:
    out: list[str] = [
        f"Management Cluster: {result.mgmt_cluster_id}",
        f"Total Hosted Clusters Scanned: {result.total_scanned}",
        "",
    ]

    for category, title, blurb in _SECTIONS:
        entries = result.bucket(category)
        if not entries:
            continue
        out.append(f"=== {title} ({len(entries)} clusters) ===")
        out.append(blurb)
        out.append(table(_cluster_rows(entries, headers)))
        out.append("")

    if result.errors:
        out.append(f"=== Errors ({len(result.errors)}) ===")
        rows = [["NAMESPACE", "ERROR"]] + [[e.namespace, e.error] for e in result.errors]
        out.append(table(rows, min_width=30))
        out.append("")

    out.extend([
        "Summary:",
        f"  - Group A (Needs annotation removal): {len(result.needs_label_removal)} clusters",
        f"  - Group B (Ready for migration): {len(result.ready_for_migration)} clusters",
        f"  - Already configured: {len(result.already_configured)} clusters",
        f"  - Errors: {len(result.errors)} namespaces",
    ])
    return "\n".join(out)


def render_audit(
    result: AuditResult,
    output: str = "text",
    headers: bool = True,
) -> str:
    """Render *result* in one of ``OUTPUT_FORMATS``."""
    if output == "json":
        return render_audit_json(result)
    if output == "yaml":
        return render_audit_yaml(result)
    if output == "csv":
        return render_audit_csv(result, headers=headers)
    return render_audit_text(result, headers=headers)


# --- Migration ---


def render_candidates(candidates: Sequence[AuditInfo]) -> str:
    out = [
        f"=== Clusters Ready for Migration ({len(candidates)}) ===",
        "",
        table(_cluster_rows(candidates, headers=True)),
        "",
        "These clusters will receive the following annotations:",
    ]
    for key, value in REQUIRED_ANNOTATIONS.items():
        shown = f'"{value}"' if value == "true" else value
        out.append(f"  - {key}: {shown}")
    return "\n".join(out)


def render_migration_summary(results: Sequence[MigrationResult]) -> str:
    migrated = [r for r in results if r.status == MigrationStatus.SUCCESS]
    failed = [r for r in results if r.status == MigrationStatus.FAILED]

    out = [
        "=== Migration Summary ===",
        "",
        f"Total candidates: {len(results)}",
        f"Successfully migrated: {len(migrated)}",
        f"Failed: {len(failed)}",
    ]

    if migrated:
        out.extend(["", click.style("Successfully Migrated:", fg="green")])
        out.extend(f"  - {r.cluster_name} ({r.cluster_id})" for r in migrated)

    if failed:
        out.extend(["", click.style("Failed Migrations:", fg="red")])
        rows = [["CLUSTER ID", "CLUSTER NAME", "ERROR"]]
        rows.extend([r.cluster_id, r.cluster_name, r.error or ""] for r in failed)
        out.append(table(rows))

    return "\n".join(out)


def migration_results_json(results: Sequence[MigrationResult]) -> str:
    return json.dumps([r.model_dump(mode="json", exclude_none=True) for r in results], indent=2)
