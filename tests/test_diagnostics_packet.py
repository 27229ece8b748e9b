import json
import math

import pytest

from starevol.diagnostics import (
    CATALOG_SCHEMA_ID,
    Cadence,
    DiagnosticCatalog,
    DiagnosticPacket,
    ProducerCatalog,
    ScalarDescriptor,
    UnitContract,
    UnitVocabulary,
)
from starevol.errors import CatalogFormatError
from starevol.io.diagnostics_json import (
    catalog_from_dict,
    catalog_from_drivers,
    catalog_to_dict,
    packet_to_dict,
    packet_to_json_line,
    read_catalog_json,
    write_catalog_json,
)
from starevol.physics import MagneticDipole, NeutrinoCooling


def test_non_finite_scalar_gives_exactly_one_error():
    packet = DiagnosticPacket(producer="X")
    packet.add_scalar("a", math.nan)
    packet.add_scalar("b", 1.0)
    packet.validate_basic()
    assert packet.errors == ["Non-finite scalar: 'a'"]
    assert packet.warnings == []


def test_empty_producer_is_a_warning():
    packet = DiagnosticPacket()
    packet.validate_basic()
    assert packet.errors == []
    assert packet.warnings == ["DiagnosticPacket producer is empty."]


def test_scalars_iterate_in_key_order_and_overwrite():
    packet = DiagnosticPacket(producer="X")
    packet.add_scalar("zeta", 1.0)
    packet.add_scalar("alpha", 2.0, unit="K", cadence=Cadence.ON_CHANGE)
    packet.add_scalar("zeta", 3.0)
    assert packet.keys() == ["alpha", "zeta"]
    assert [k for k, _ in packet.items()] == ["alpha", "zeta"]
    assert packet.value("zeta") == 3.0
    assert math.isnan(packet.value("missing"))
    assert packet.get("alpha").cadence is Cadence.ON_CHANGE
    assert len(packet) == 2
    packet.remove_scalar("alpha")
    assert not packet.has_scalar("alpha")


def test_annotations_keep_insertion_order():
    packet = DiagnosticPacket(producer="X")
    packet.add_warning("w2")
    packet.add_warning("w1")
    packet.add_note("n")
    packet.add_contract_line("c")
    assert packet.warnings == ["w2", "w1"]
    packet.clear()
    assert packet.warnings == [] and packet.notes == [] and packet.contract == []


def test_validate_against_catalog():
    cat = ProducerCatalog(producer="X")
    cat.add_scalar("needed", "K", required=True)
    cat.add_scalar("optional", "")
    packet = DiagnosticPacket(producer="X")
    packet.add_scalar("optional", 1.0)
    packet.add_scalar("extra", 2.0)
    packet.validate_against(cat)
    assert packet.errors == ["Missing required scalar: 'needed'"]
    assert packet.warnings == ["Scalar 'extra' is not declared in the catalog."]


@pytest.mark.parametrize("text, cadence", [("Always", Cadence.ALWAYS), ("on_change", Cadence.ON_CHANGE), ("OncePerRun", Cadence.ONCE_PER_RUN)])
def test_cadence_parse(text, cadence):
    assert Cadence.parse(text) is cadence


def test_cadence_parse_rejects_unknown():
    with pytest.raises(ValueError):
        Cadence.parse("sometimes")


def test_unit_vocabulary():
    assert UnitVocabulary().is_allowed("furlong")
    vocab = UnitVocabulary(["K"])
    assert vocab.is_allowed("K")
    assert vocab.is_allowed("")
    assert not vocab.is_allowed("erg/s")
    assert UnitVocabulary.default().is_allowed("erg/s")


def test_unit_contract_is_chainable():
    contract = UnitContract().add("a").add("b")
    assert list(contract) == ["a", "b"]
    assert len(contract) == 2


def test_catalog_lookup_and_ordering():
    catalog = DiagnosticCatalog()
    catalog.add_scalar("Zeta", ScalarDescriptor(key="x"))
    catalog.add_profile("Alpha", "default", ["y"])
    assert catalog.producers() == ["Alpha", "Zeta"]
    assert [entry.producer for entry in catalog] == ["Alpha", "Zeta"]
    assert "Zeta" in catalog
    assert catalog.find("Zeta").find_scalar("x") is not None
    assert catalog.find("missing") is None
    assert catalog.producer("Zeta") is catalog.find("Zeta")
    assert len(catalog) == 2


def test_packet_json_line_is_strict_json():
    packet = DiagnosticPacket(producer="X", time=1.5, step=3, run_id="r")
    packet.add_scalar("bad", math.inf, unit="K")
    packet.add_scalar("good", 2.0, cadence=Cadence.ONCE_PER_RUN)
    packet.validate_basic()
    line = packet_to_json_line(packet)
    assert "\n" not in line
    doc = json.loads(line)
    assert doc["schema"] == "starevol.diagnostics.packet"
    assert doc["scalars"]["bad"] == {
        "value": None,
        "unit": "K",
        "description": "",
        "source_hint": "",
        "finite": False,
        "cadence": "Always",
    }
    assert doc["scalars"]["good"]["cadence"] == "OncePerRun"
    assert doc["messages"]["errors"] == ["Non-finite scalar: 'bad'"]
    assert packet_to_json_line(packet) == line


def test_packet_dict_omits_empty_sections():
    doc = packet_to_dict(DiagnosticPacket(producer="X"))
    assert "messages" not in doc
    assert "contract" not in doc


def test_catalog_file_round_trip(tmp_path):
    catalog = catalog_from_drivers([MagneticDipole(), NeutrinoCooling()])
    path = write_catalog_json(catalog, tmp_path / "sub" / "catalog.json")
    loaded = read_catalog_json(path)
    assert catalog_to_dict(loaded) == catalog_to_dict(catalog)
    spin = loaded.find("MagneticDipole")
    assert spin.find_scalar("Omega_rad_s").required is True
    assert spin.find_scalar("K_prefactor").default_cadence is Cadence.ONCE_PER_RUN
    assert spin.find_profile("timeseries_default").keys[0] == "Omega_rad_s"


def test_catalog_accepts_producer_array():
    doc = {
        "schema": CATALOG_SCHEMA_ID,
        "schema_version": 1,
        "producers": [
            {"producer": "P", "scalars": [{"key": "k", "unit": "s"}], "profiles": [{"name": "d", "keys": ["k"]}]}
        ],
    }
    catalog = catalog_from_dict(doc)
    desc = catalog.find("P").find_scalar("k")
    assert desc.unit == "s"
    assert desc.is_dimensionless is False
    assert desc.default_cadence is Cadence.ALWAYS


@pytest.mark.parametrize(
    "doc",
    [
        [],
        {"schema": "other", "producers": {}},
        {"schema_version": 7, "producers": {}},
        {"producers": 3},
        {"producers": {"P": {"scalars": [{"unit": "K"}]}}},
        {"producers": {"P": {"scalars": [{"key": "k", "default_cadence": "Rarely"}]}}},
        {"producers": [{"scalars": []}]},
    ],
)
def test_malformed_catalogs_are_rejected(doc):
    with pytest.raises(CatalogFormatError):
        catalog_from_dict(doc)


def test_invalid_json_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CatalogFormatError):
        read_catalog_json(path)
