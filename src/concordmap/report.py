"""Rapports d'auto-mapping et d'import (DataFrame Key/Value et console)."""

from __future__ import annotations

from datetime import datetime

import pandas as pd

from concordmap import __version__
from concordmap.importer import ImportAuditResult, ImportResult
from concordmap.matching.automapper import AutoMapSummary


def _footer() -> list[tuple[str, object]]:
    return [
        ("", ""),
        ("timestamp", datetime.now().isoformat()),
        ("version", __version__),
    ]


def build_automap_report_df(summary: AutoMapSummary) -> pd.DataFrame:
    """
    Construit le DataFrame du rapport d'auto-mapping.

    Contient : compteurs par bande, puis une ligne par propriété évaluée.
    """
    rows: list[tuple[str, object]] = [
        ("data_type", summary.data_type),
        ("nb_accepted", len(summary.accepted)),
        ("nb_suggested", len(summary.suggested)),
        ("nb_unmatched", len(summary.unmatched)),
        ("nb_skipped", len(summary.skipped)),
        ("", ""),
        ("Decisions", ""),
    ]
    for band, decisions in (
        ("accepted", summary.accepted),
        ("suggested", summary.suggested),
        ("unmatched", summary.unmatched),
    ):
        for d in decisions:
            rows.append(
                (
                    d.target_property.name,
                    f"{band} {d.column_name or '-'} score={d.score:.3f} {d.reason.value} ({d.matched_on})",
                )
            )
    rows.extend(_footer())
    return pd.DataFrame(rows, columns=["Key", "Value"])


def build_import_report_df(result: ImportResult) -> pd.DataFrame:
    """
    Construit le DataFrame du rapport d'import.

    Contient : stratégie, totaux, une ligne par (type, scénario), avertissements et erreurs.
    """
    rows: list[tuple[str, object]] = [
        ("strategy", result.strategy.value),
        ("aborted", result.aborted),
        ("total_rows", result.total_rows),
        ("valid_rows", result.valid_rows),
        ("nb_inserted", result.total_inserted),
        ("nb_removed", result.total_removed),
        ("nb_skipped", result.total_skipped),
        ("", ""),
        ("Scenarios", ""),
    ]
    for o in result.outcomes:
        rows.append((f"{o.data_type}/{o.scenario}", f"+{o.inserted} -{o.removed} ={o.skipped}"))
    rows.append(("", ""))
    rows.extend(("warning", w) for w in result.warnings)
    rows.extend(("error", e) for e in result.errors)
    rows.extend(_footer())
    return pd.DataFrame(rows, columns=["Key", "Value"])


def print_automap_report(summary: AutoMapSummary) -> None:
    """Affiche un résumé de l'auto-mapping en console."""
    print("\n--- Auto-mapping ---")
    print(summary.summary_text())
    if summary.skipped:
        print(f"  Déjà associées (ignorées): {', '.join(summary.skipped)}")
    print("-" * 20)


def print_audit_report(audit: ImportAuditResult) -> None:
    """Affiche l'aperçu d'import en console."""
    print("\n--- Audit d'import ---")
    print(audit.summary_text())
    print(f"  Lignes lues: {audit.total_rows}, valides: {audit.valid_rows}")
    for data_type, count in audit.per_data_type_counts.items():
        print(f"  {data_type}: {count}")
    for scenario, count in sorted(audit.per_scenario_counts.items()):
        print(f"  Scénario {scenario}: {count}")
    if audit.has_scenarios and not audit.has_uniform_scenarios:
        print("  Attention: scénarios d'effectifs différents")
    for w in audit.warnings:
        print(f"  Avertissement: {w}")
    for e in audit.errors:
        print(f"  Erreur: {e}")
    print("-" * 20)


def print_import_report(result: ImportResult) -> None:
    """Affiche un résumé de l'import en console."""
    print("\n--- Import ---")
    if result.aborted:
        print("Import interrompu: aucune modification appliquée.")
    print(f"Stratégie: {result.strategy.value}")
    print(f"Insérés: {result.total_inserted}, supprimés: {result.total_removed}, ignorés: {result.total_skipped}")
    for o in result.outcomes:
        print(f"  {o.data_type}/{o.scenario}: +{o.inserted} -{o.removed} ={o.skipped}")
    for w in result.warnings:
        print(f"  Avertissement: {w}")
    for e in result.errors:
        print(f"  Erreur: {e}")
    print("-" * 20)
