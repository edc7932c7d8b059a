"""Tests for bucket identity and the legacy code table."""
import pytest

from exchange_planner.data_layer.bucket_codes import (
    FAMILY_SORT_ORDER,
    BucketFamily,
    BucketRef,
    BucketType,
    ensure_exhaustive,
    family_for_code,
    is_animal_origin,
    is_dairy,
    parse_bucket_key,
)


class TestBucketRef:
    """Tests for typed bucket keys."""

    def test_key_format(self):
        assert BucketRef(BucketType.GROUP, 3).key == "group:3"
        assert str(BucketRef(BucketType.SUBGROUP, 12)) == "subgroup:12"

    def test_parse_bucket_key(self):
        ref = parse_bucket_key("subgroup:12")
        assert ref.bucket_type == BucketType.SUBGROUP
        assert ref.bucket_id == 12

    @pytest.mark.parametrize("key", ["group3", "family:3", "group:abc", ""])
    def test_parse_bucket_key_rejects_malformed(self, key):
        with pytest.raises(ValueError):
            parse_bucket_key(key)


class TestFamilyResolution:
    """Tests for legacy code to family mapping."""

    @pytest.mark.parametrize("code,family", [
        ("vegetable", BucketFamily.VEGETABLE),
        ("CARB", BucketFamily.CARB),
        ("aoa_bajo_grasa", BucketFamily.PROTEIN),
        ("cereal_con_grasa", BucketFamily.CARB),
        ("leche_con_azucar", BucketFamily.MILK),
        ("azucar_sin_grasa", BucketFamily.SUGAR),
        ("grasa_con_proteina", BucketFamily.FAT),
    ])
    def test_known_codes(self, code, family):
        assert family_for_code(code) == family

    def test_unknown_code_with_known_prefix(self):
        assert family_for_code("aoa_vegetal_mixto") == BucketFamily.PROTEIN
        assert family_for_code("leche_vegetal") == BucketFamily.MILK

    def test_unresolvable_codes(self):
        assert family_for_code("bebidas") is None
        assert family_for_code(None) is None
        assert family_for_code("  ") is None

    def test_animal_origin_and_dairy(self):
        assert is_animal_origin("AOA_alto_grasa")
        assert not is_animal_origin("protein")
        assert is_dairy("leche_entera")
        assert not is_dairy("cereal_sin_grasa")


class TestExhaustiveTables:
    """Tests for family-keyed table checks."""

    def test_sort_order_covers_every_family(self):
        assert set(FAMILY_SORT_ORDER) == set(BucketFamily)
        assert sorted(FAMILY_SORT_ORDER, key=FAMILY_SORT_ORDER.get)[0] == BucketFamily.VEGETABLE
        assert sorted(FAMILY_SORT_ORDER, key=FAMILY_SORT_ORDER.get)[-1] == BucketFamily.CARB

    def test_missing_family_raises(self):
        with pytest.raises(ValueError, match="sugar"):
            ensure_exhaustive({f: 1 for f in BucketFamily if f != BucketFamily.SUGAR}, "table")
