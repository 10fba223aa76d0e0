"""Tests des rapports."""

import pandas as pd
import pytest

from concordmap.config import AutoMapConfig, MatchThresholds
from concordmap.dataset import Dataset
from concordmap.importer import ImportOptions, MergeStrategy, audit_batch, import_batch
from concordmap.mapping import MappingDocument
from concordmap.matching.automapper import AutoMapper
from concordmap.matching.schema import SourceColumn, TargetProperty
from concordmap.report import (
    build_automap_report_df,
    build_import_report_df,
    print_audit_report,
    print_automap_report,
    print_import_report,
)


@pytest.fixture
def document() -> MappingDocument:
    doc = MappingDocument()
    doc.associate("Bus", "Name", "Bus Name")
    return doc


def _values(df: pd.DataFrame) -> dict[str, object]:
    return dict(zip(df["Key"], df["Value"]))


def test_build_import_report_df(document: MappingDocument) -> None:
    ds = Dataset()
    ds.add("Bus", {"Name": "B1"})
    result = import_batch(
        {"Bus": pd.DataFrame({"Bus Name": ["B1", "B2"]})},
        document,
        ds,
        ImportOptions(merge_strategy=MergeStrategy.MERGE),
    )
    df = build_import_report_df(result)
    assert list(df.columns) == ["Key", "Value"]
    values = _values(df)
    assert values["strategy"] == "Merge"
    assert values["nb_inserted"] == 1
    assert values["nb_skipped"] == 1
    assert values["Bus/(All)"] == "+1 -0 =1"
    assert "version" in values


def test_build_automap_report_df() -> None:
    config = AutoMapConfig(thresholds=MatchThresholds(0.97, 0.9), use_descriptions=False)
    summary = AutoMapper(config).run(
        [SourceColumn("Name"), SourceColumn("base_kv")],
        [TargetProperty("Name", "Bus"), TargetProperty("BaseKV", "Bus")],
        MappingDocument(),
    )
    values = _values(build_automap_report_df(summary))
    assert values["nb_accepted"] == 1
    assert values["nb_suggested"] == 1
    assert str(values["BaseKV"]).startswith("suggested base_kv")


def test_print_reports(document: MappingDocument, capsys: pytest.CaptureFixture[str]) -> None:
    batch = {"Bus": pd.DataFrame({"Bus Name": ["B1"]})}
    print_audit_report(audit_batch(batch, document))
    print_import_report(import_batch(batch, document, Dataset()))
    summary = AutoMapper().run([SourceColumn("Name")], [TargetProperty("Name", "Bus")], document)
    print_automap_report(summary)
    out = capsys.readouterr().out
    assert "Audit d'import" in out
    assert "Insérés: 1" in out
    assert "Déjà associées (ignorées): Name" in out
