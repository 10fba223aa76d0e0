"""Interface en ligne de commande ConcordMap."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from concordmap import __version__
from concordmap.catalog import PropertyCatalog, default_catalog
from concordmap.config import AutoMapConfig, ConcordMapError, load_json_object
from concordmap.dataset import Dataset
from concordmap.importer import ImportOptions, audit_batch
from concordmap.io_excel import extract_columns, load_sheet, save_xlsx
from concordmap.mapping import MappingDocument
from concordmap.matching.automapper import AutoMapper
from concordmap.orphans import find_orphaned_associations, remove_orphaned_associations
from concordmap.report import (
    build_automap_report_df,
    print_audit_report,
    print_automap_report,
)
from concordmap.validation import find_invalid_associations, validate_required_mappings


def _load_catalog(path: str | None) -> PropertyCatalog:
    if not path:
        return default_catalog()
    return PropertyCatalog.from_dict(load_json_object(path, "catalogue"))


def _load_mapping(path: str, *, must_exist: bool = True) -> MappingDocument:
    if not must_exist and not Path(path).exists():
        return MappingDocument()
    return MappingDocument.load(path)


def cmd_columns(filepath: str) -> int:
    """Liste les colonnes d'un fichier avec le nombre de cellules renseignées."""
    columns = extract_columns(filepath)
    print(f"Colonnes dans {filepath}:")
    for c in columns:
        print(f"  - [{c.source_table}] {c.name} ({c.sample_non_empty_count} valeur(s))")
    return 0


def cmd_automap(
    filepath: str,
    data_type: str,
    mapping_path: str,
    *,
    config_path: str | None = None,
    catalog_path: str | None = None,
    reevaluate: bool = False,
    report_path: str | None = None,
) -> int:
    """Auto-mappe les colonnes d'un fichier sur un type de données et enregistre le mapping."""
    config = AutoMapConfig.load(config_path) if config_path else AutoMapConfig()
    catalog = _load_catalog(catalog_path)
    document = _load_mapping(mapping_path, must_exist=False)

    columns = extract_columns(filepath)
    properties = catalog.properties_for(data_type, config.visibility)
    summary = AutoMapper(config).run(columns, properties, document, data_type, reevaluate=reevaluate)
    print_automap_report(summary)

    document.save(mapping_path)
    print(f"Mapping écrit: {mapping_path}")
    if report_path:
        save_xlsx(report_path, {"REPORT": build_automap_report_df(summary)})
        print(f"Rapport: {report_path}")
    return 0


def cmd_audit(
    filepath: str,
    mapping_path: str,
    data_type: str,
    *,
    sheet: str | None = None,
    options_path: str | None = None,
) -> int:
    """Prévisualise l'import d'une feuille dans un jeu de données vide."""
    document = _load_mapping(mapping_path)
    options = ImportOptions.from_dict(load_json_object(options_path, "options")) if options_path else ImportOptions()
    df = load_sheet(filepath, sheet)
    audit = audit_batch({data_type: df}, document, Dataset(), options)
    print_audit_report(audit)
    return 0 if audit.can_import else 1


def cmd_orphans(filepath: str, mapping_path: str, *, remove: bool = False) -> int:
    """Signale (et supprime avec --remove) les associations orphelines si le fichier est retiré."""
    document = _load_mapping(mapping_path)
    report = find_orphaned_associations(document, filepath)
    print(report.summary_text())
    if remove and not report.is_empty:
        removed = remove_orphaned_associations(document, report.associations())
        document.save(mapping_path)
        print(f"{removed} association(s) supprimée(s), mapping écrit: {mapping_path}")
    return 0


def cmd_validate(mapping_path: str, *, catalog_path: str | None = None) -> int:
    """Valide un mapping : structure, propriétés requises, associations invalides."""
    document = _load_mapping(mapping_path)
    catalog = _load_catalog(catalog_path)

    report = document.validate()
    required = validate_required_mappings(document, catalog)
    invalid = find_invalid_associations(document, catalog)

    for issue in report.errors + required.errors:
        print(f"Erreur: {issue.message}")
    for issue in report.warnings:
        print(f"Avertissement: {issue.message}")
    for assoc in invalid:
        print(f"Association invalide: {assoc.target_data_type}.{assoc.property_name} ← {assoc.column_header}")

    if report.is_valid and required.is_valid and not invalid:
        print("Mapping valide.")
        return 0
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="concordmap",
        description="Association floue d'en-têtes et import de jeux de données par scénario",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Journalisation détaillée")

    subparsers = parser.add_subparsers(dest="command", help="Commandes")

    p_cols = subparsers.add_parser("columns", help="Lister les colonnes d'un fichier")
    p_cols.add_argument("file", help="Fichier xlsx/ods/csv")

    p_auto = subparsers.add_parser("automap", help="Auto-mapper les colonnes sur un type de données")
    p_auto.add_argument("file", help="Fichier source")
    p_auto.add_argument("--data-type", "-t", required=True, help="Type de données cible")
    p_auto.add_argument("--mapping", "-m", required=True, help="Fichier mapping JSON (créé si absent)")
    p_auto.add_argument("--config", "-c", help="Fichier config JSON")
    p_auto.add_argument("--catalog", help="Catalogue de propriétés JSON")
    p_auto.add_argument("--reevaluate", action="store_true", help="Réévaluer les propriétés déjà associées")
    p_auto.add_argument("--report", help="Rapport xlsx de sortie")

    p_audit = subparsers.add_parser("audit", help="Prévisualiser un import")
    p_audit.add_argument("file", help="Fichier source")
    p_audit.add_argument("--mapping", "-m", required=True, help="Fichier mapping JSON")
    p_audit.add_argument("--data-type", "-t", required=True, help="Type de données de la feuille")
    p_audit.add_argument("--sheet", "-s", help="Feuille (défaut: première)")
    p_audit.add_argument("--options", "-o", help="Options d'import JSON")

    p_orph = subparsers.add_parser("orphans", help="Associations orphelines si le fichier est retiré")
    p_orph.add_argument("file", help="Fichier retiré")
    p_orph.add_argument("--mapping", "-m", required=True, help="Fichier mapping JSON")
    p_orph.add_argument("--remove", action="store_true", help="Supprimer les associations orphelines")

    p_val = subparsers.add_parser("validate", help="Valider un mapping")
    p_val.add_argument("--mapping", "-m", required=True, help="Fichier mapping JSON")
    p_val.add_argument("--catalog", help="Catalogue de propriétés JSON")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "columns":
            return cmd_columns(args.file)
        if args.command == "automap":
            return cmd_automap(
                args.file,
                args.data_type,
                args.mapping,
                config_path=args.config,
                catalog_path=args.catalog,
                reevaluate=args.reevaluate,
                report_path=args.report,
            )
        if args.command == "audit":
            return cmd_audit(
                args.file,
                args.mapping,
                args.data_type,
                sheet=args.sheet,
                options_path=args.options,
            )
        if args.command == "orphans":
            return cmd_orphans(args.file, args.mapping, remove=args.remove)
        if args.command == "validate":
            return cmd_validate(args.mapping, catalog_path=args.catalog)
    except ConcordMapError as e:
        print(f"Erreur: {e}")
        return 2

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
