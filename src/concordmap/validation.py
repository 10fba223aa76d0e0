"""Validation des associations contre le catalogue de propriétés."""

from __future__ import annotations

import logging

from concordmap.catalog import PropertyCatalog
from concordmap.config import CatalogVisibility
from concordmap.mapping import MappingDocument, MappingValidationReport, ValidationIssue
from concordmap.matching.schema import ColumnPropertyAssociation, Severity

logger = logging.getLogger(__name__)


def validate_required_mappings(
    document: MappingDocument,
    catalog: PropertyCatalog,
    visibility: CatalogVisibility | None = None,
) -> MappingValidationReport:
    """
    Signale les propriétés requises sans association.

    Seuls les types activés ayant au moins une association sont contrôlés :
    un type jamais mappé n'est pas importé.
    """
    visibility = visibility or CatalogVisibility()
    report = MappingValidationReport()
    for data_type in document.data_types():
        if not catalog.has_type(data_type) or not visibility.is_type_enabled(data_type):
            continue
        for prop in catalog.properties_for(data_type, visibility):
            if prop.required and not document.is_associated(data_type, prop.name):
                report.add(
                    ValidationIssue(
                        Severity.ERROR,
                        f"Propriété requise non associée: {data_type}.{prop.name}",
                        data_type,
                        prop.name,
                    )
                )
    return report


def find_invalid_associations(
    document: MappingDocument,
    catalog: PropertyCatalog,
    visibility: CatalogVisibility | None = None,
) -> list[ColumnPropertyAssociation]:
    """
    Associations qui ne pointent plus vers une propriété visible du catalogue.

    Cas couverts : type inconnu ou désactivé, propriété absente ou masquée.
    """
    visibility = visibility or CatalogVisibility()
    invalid: list[ColumnPropertyAssociation] = []
    for assoc in document:
        data_type, name = assoc.target_data_type, assoc.property_name
        if not catalog.has_type(data_type) or catalog.get_property(data_type, name) is None:
            invalid.append(assoc)
        elif not visibility.is_property_visible(data_type, name):
            invalid.append(assoc)
    return invalid


def remove_invalid_associations(
    document: MappingDocument,
    catalog: PropertyCatalog,
    visibility: CatalogVisibility | None = None,
) -> int:
    """Supprime les associations invalides et renvoie leur nombre."""
    invalid = find_invalid_associations(document, catalog, visibility)
    removed = document.remove_many(invalid)
    if removed:
        logger.info("%d association(s) invalide(s) supprimée(s)", removed)
    return removed
