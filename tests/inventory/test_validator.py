"""
Unit tests for snapshot structural validation.
"""

from inventory.validator import recover_asset_number, validate_snapshot


class TestValidateSnapshot:
    """Tests for validate_snapshot."""

    def test_valid_document(self, make_document):
        result = validate_snapshot(make_document())
        assert result.is_valid
        assert result.missing_paths == []

    def test_reports_every_missing_field(self, make_document):
        """Missing BIOS serial and memory total are reported together."""
        document = make_document()
        del document["System"]["BIOS"]["Serial"]
        del document["Hardware"]["Memory"]["TotalGB"]

        result = validate_snapshot(document)

        assert not result.is_valid
        assert result.missing_paths == ["System.BIOS.Serial", "Hardware.Memory.TotalGB"]

    def test_missing_sections(self, make_document):
        document = make_document()
        for section in ("System", "Hardware", "Network", "Software"):
            del document[section]

        result = validate_snapshot(document)

        assert result.missing_paths == ["System", "Hardware", "Network", "Software"]

    def test_missing_bios_section(self, make_document):
        document = make_document()
        del document["System"]["BIOS"]

        assert validate_snapshot(document).missing_paths == ["System.BIOS"]

    def test_blank_strings_count_as_missing(self, make_document):
        document = make_document(AssetNumber="  ")
        document["System"]["HostName"] = ""
        document["Hardware"]["CPU"]["Name"] = None

        result = validate_snapshot(document)

        assert result.missing_paths == ["AssetNumber", "System.HostName", "Hardware.CPU.Name"]

    def test_zero_memory_is_present(self, make_document):
        document = make_document()
        document["Hardware"]["Memory"]["TotalGB"] = 0
        assert validate_snapshot(document).is_valid

    def test_network_singleton_entry_checked(self, make_document):
        document = make_document(Network={"Name": "Eth0"})
        assert validate_snapshot(document).missing_paths == ["Network[0].MacAddress"]

    def test_network_sequence_entries_checked(self, make_document):
        document = make_document(
            Network=[
                {"Name": "Eth0", "MacAddress": "AA:BB:CC:DD:EE:01"},
                {"MacAddress": "AA:BB:CC:DD:EE:02"},
                {"Name": "Wi-Fi", "MacAddress": " "},
            ]
        )

        result = validate_snapshot(document)

        assert result.missing_paths == ["Network[1].Name", "Network[2].MacAddress"]

    def test_empty_network_sequence_is_allowed(self, make_document):
        assert validate_snapshot(make_document(Network=[])).is_valid

    def test_non_object_document(self):
        assert validate_snapshot(["not", "a", "snapshot"]).missing_paths == ["<document>"]

    def test_overlong_asset_number_is_invalid(self, make_document):
        result = validate_snapshot(make_document(AssetNumber="A" * 50 + "-ONE"))

        assert not result.is_valid
        assert result.missing_paths == []
        assert result.invalid_paths == ["AssetNumber (longer than 50 characters)"]

    def test_asset_number_at_column_length_is_valid(self, make_document):
        assert validate_snapshot(make_document(AssetNumber="A" * 50)).is_valid


class TestRecoverAssetNumber:
    """Tests for recover_asset_number."""

    def test_returns_stripped_asset_number(self):
        assert recover_asset_number({"AssetNumber": " 07001010001 "}) == "07001010001"

    def test_missing_asset_number(self):
        assert recover_asset_number({"System": {}}) is None
        assert recover_asset_number(None) is None
