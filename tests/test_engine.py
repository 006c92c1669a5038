"""Tests for threadshift.engine — one-way swaps, reversal, history, settings."""

import logging
from unittest.mock import MagicMock

import pytest

from bodies import make_body_map, make_character, make_zone
from threadshift.engine import ZoneSwapEngine, generate_swap_id, set_debug_logging
from threadshift.events import HISTORY_CLEARED, SWAP_EXECUTED, SWAP_REVERSED, ZONE_SWAP, EventBus
from threadshift.models import EngineSettings
from threadshift.reciprocal import ReciprocalSwapHandler
from threadshift.validator import BodyMapValidator
from threadshift.zones import ZoneMapper


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded(bus: EventBus) -> list[tuple[str, dict]]:
    seen: list[tuple[str, dict]] = []
    bus.subscribe(SWAP_EXECUTED, lambda p: seen.append((SWAP_EXECUTED, p)))
    bus.subscribe(ZONE_SWAP, lambda p: seen.append((ZONE_SWAP, p)))
    return seen


@pytest.fixture
def engine(bus: EventBus) -> ZoneSwapEngine:
    e = ZoneSwapEngine(
        zone_mapper=ZoneMapper(),
        validator=BodyMapValidator(),
        events=bus,
        settings=EngineSettings(bidirectional_swaps=False),
    )
    e.initialize()
    return e


class TestSwapIds:
    def test_ten_thousand_ids_unique(self) -> None:
        ids = {generate_swap_id() for _ in range(10_000)}
        assert len(ids) == 10_000

    def test_id_shape(self) -> None:
        parts = generate_swap_id().split("_")
        assert parts[0] == "swap"
        assert parts[1].isdigit()
        assert parts[2].isdigit()
        assert len(parts[3]) == 8


class TestLifecycle:
    def test_resolves_collaborators_from_registry(self) -> None:
        mapper, validator = ZoneMapper(), BodyMapValidator()
        e = ZoneSwapEngine(registry={"zone_mapper": mapper, "validator": validator})
        assert e.zone_mapper is None
        e.initialize()
        assert e.zone_mapper is mapper
        assert e.validator is validator
        assert e.reciprocal_handler is None

    def test_constructor_collaborators_win(self) -> None:
        mine = ZoneMapper()
        e = ZoneSwapEngine(zone_mapper=mine, registry={"zone_mapper": ZoneMapper()})
        e.initialize()
        assert e.zone_mapper is mine

    def test_initialize_twice_is_harmless(self, engine: ZoneSwapEngine) -> None:
        assert engine.initialize() is True
        assert engine.initialized

    def test_test_string(self, engine: ZoneSwapEngine) -> None:
        assert engine.test() == "ZoneSwapEngine v1.0.0 is working!"

    def test_shutdown_clears_state(self, engine: ZoneSwapEngine) -> None:
        engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        engine.shutdown()
        assert engine.get_active_swaps() == []
        assert engine.get_swap_history() == []
        assert engine.initialized is False

    def test_perform_swap_initializes_lazily(self) -> None:
        e = ZoneSwapEngine(settings=EngineSettings(bidirectional_swaps=False))
        assert e.perform_swap(make_character("a"), make_character("b"), "1.0201")
        assert e.initialized


class TestPerformSwap:
    def test_bra_copies_chest_to_target(self, engine: ZoneSwapEngine) -> None:
        source, target = make_character("a"), make_character("b")
        swap_id = engine.perform_swap(source, target, "1.0201")
        assert isinstance(swap_id, str) and swap_id.startswith("swap_")
        assert target.body_map["chest"]["descriptor"] == "a chest"
        assert source.body_map["chest"]["descriptor"] == "a chest"
        assert target.body_map["hair"]["descriptor"] == "b hair"

    def test_target_receives_independent_copy(self, engine: ZoneSwapEngine) -> None:
        source, target = make_character("a"), make_character("b")
        engine.perform_swap(source, target, "1.0201")
        target.body_map["chest"]["marks"].append("x")
        assert source.body_map["chest"]["marks"] == []

    def test_record_contents(self, engine: ZoneSwapEngine) -> None:
        swap_id = engine.perform_swap(make_character("a"), make_character("b"), "7.0901")
        [record] = engine.get_active_swaps()
        assert record.id == swap_id
        assert record.source == "a"
        assert record.target == "b"
        assert record.zones == ["chest", "waist", "hips"]
        assert record.garment.owner == "char_7"
        assert record.status == "active"

    def test_zone_absent_on_both_sides_skipped(self, engine: ZoneSwapEngine, recorded) -> None:
        source, target = make_character("a"), make_character("b")
        assert engine.perform_swap(source, target, "1.0901")
        assert "hips" not in target.body_map
        zone_events = [p["zone"] for name, p in recorded if name == ZONE_SWAP]
        assert zone_events == ["chest", "waist"]

    def test_events_emitted(self, engine: ZoneSwapEngine, recorded) -> None:
        swap_id = engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        names = [name for name, _ in recorded]
        assert names == [ZONE_SWAP, SWAP_EXECUTED]
        zone_event = recorded[0][1]
        assert zone_event["swap_id"] == swap_id
        assert zone_event["source"] == "a"
        assert zone_event["target"] == "b"
        assert zone_event["zone"] == "chest"
        assert recorded[1][1]["id"] == swap_id

    @pytest.mark.parametrize("ref", ["nodot", "1.2.3"])
    def test_malformed_ref_returns_false(self, engine: ZoneSwapEngine, ref) -> None:
        assert engine.perform_swap(make_character("a"), make_character("b"), ref) is False
        assert engine.get_swap_history() == []

    def test_unknown_garment_returns_false(self, engine: ZoneSwapEngine) -> None:
        assert engine.perform_swap(make_character("a"), make_character("b"), "1.4201") is False

    def test_invalid_body_map_blocks_swap(self, engine: ZoneSwapEngine) -> None:
        source = make_character("a")
        target = make_character("b", torso={})
        assert engine.perform_swap(source, target, "1.0201") is False
        assert target.body_map["chest"]["descriptor"] == "b chest"

    def test_zone_on_one_side_blocks_swap(self, engine: ZoneSwapEngine) -> None:
        source = make_character("a", hips=make_zone("wide hips"))
        target = make_character("b")
        assert engine.perform_swap(source, target, "1.0301") is False

    def test_zone_validation_off_allows_one_sided_zone(self, engine: ZoneSwapEngine) -> None:
        engine.validator.configure(zone_validation=False)
        source = make_character("a", hips=make_zone("wide hips"))
        target = make_character("b")
        assert engine.perform_swap(source, target, "1.0301")
        assert target.body_map["hips"]["descriptor"] == "wide hips"

    def test_auto_validation_off_skips_gate(self, engine: ZoneSwapEngine) -> None:
        engine.update_settings({"auto_validation": False})
        target = make_character("b", torso={})
        assert engine.perform_swap(make_character("a"), target, "1.0201")

    def test_without_zone_mapper_uses_builtin_table(self) -> None:
        e = ZoneSwapEngine(settings=EngineSettings(bidirectional_swaps=False))
        e.initialize()
        assert e.get_zones_for_garment("socks") == ["feet"]

    def test_custom_mapping_used(self, engine: ZoneSwapEngine) -> None:
        engine.zone_mapper.set_custom_mappings({"bra": ["chest", "neck"]})
        target = make_character("b")
        swap_id = engine.perform_swap(make_character("a"), target, "1.0201")
        assert target.body_map["neck"]["descriptor"] == "a neck"
        assert engine.get_active_swaps()[0].id == swap_id


class TestBidirectional:
    def test_reciprocal_handler_gives_source_target_zones(self, bus: EventBus) -> None:
        mapper = ZoneMapper()
        validator = BodyMapValidator()
        e = ZoneSwapEngine(zone_mapper=mapper, validator=validator, events=bus)
        e.reciprocal_handler = ReciprocalSwapHandler(validator=validator, engine=e, zone_mapper=mapper)
        e.initialize()

        source, target = make_character("a"), make_character("b")
        e.perform_swap(source, target, "1.0201")
        assert target.body_map["chest"]["descriptor"] == "a chest"
        assert source.body_map["chest"]["descriptor"] == "b chest"
        assert e.get_active_swaps()[0].reciprocal is True

    def test_executed_event_carries_final_record(self, bus: EventBus) -> None:
        seen = []
        bus.subscribe(SWAP_EXECUTED, seen.append)
        mapper = ZoneMapper()
        e = ZoneSwapEngine(zone_mapper=mapper, events=bus)
        e.reciprocal_handler = ReciprocalSwapHandler(engine=e, zone_mapper=mapper)
        e.perform_swap(make_character("a"), make_character("b"), "1.0201")
        [payload] = seen
        assert payload["reciprocal"] is True

    def test_failing_hook_keeps_primary_swap(self) -> None:
        handler = MagicMock()
        handler.handle_reciprocal.return_value = False
        e = ZoneSwapEngine(reciprocal_handler=handler)
        e.initialize()
        target = make_character("b")
        assert e.perform_swap(make_character("a"), target, "1.0201")
        assert target.body_map["chest"]["descriptor"] == "a chest"
        assert e.get_active_swaps()[0].reciprocal is False

    def test_hook_skipped_when_disabled(self) -> None:
        handler = MagicMock()
        e = ZoneSwapEngine(reciprocal_handler=handler, settings=EngineSettings(bidirectional_swaps=False))
        e.initialize()
        e.perform_swap(make_character("a"), make_character("b"), "1.0201")
        handler.handle_reciprocal.assert_not_called()


class TestReverseSwap:
    def test_restores_both_sides(self, bus: EventBus) -> None:
        mapper = ZoneMapper()
        e = ZoneSwapEngine(zone_mapper=mapper, events=bus)
        e.reciprocal_handler = ReciprocalSwapHandler(engine=e, zone_mapper=mapper)
        e.initialize()
        source, target = make_character("a"), make_character("b")
        before_a, before_b = make_body_map("a"), make_body_map("b")

        swap_id = e.perform_swap(source, target, "1.0901")
        assert e.reverse_swap(swap_id) is True
        assert source.body_map == before_a
        assert target.body_map == before_b

    def test_status_and_history(self, engine: ZoneSwapEngine) -> None:
        swap_id = engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        engine.reverse_swap(swap_id)
        assert engine.get_active_swaps() == []
        [record] = engine.get_swap_history()
        assert record.status == "reversed"
        assert record.reversed_at is not None

    def test_emits_inverted_zone_events(self, engine: ZoneSwapEngine, recorded) -> None:
        swap_id = engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        recorded.clear()
        engine.reverse_swap(swap_id)
        [(name, payload)] = recorded
        assert name == ZONE_SWAP
        assert payload["source"] == "b"
        assert payload["target"] == "a"

    def test_removes_zone_target_never_had(self, engine: ZoneSwapEngine) -> None:
        engine.validator.configure(zone_validation=False)
        source = make_character("a", hips=make_zone("wide hips"))
        target = make_character("b")
        swap_id = engine.perform_swap(source, target, "1.0301")
        engine.reverse_swap(swap_id)
        assert "hips" not in target.body_map

    def test_unknown_or_repeated_id(self, engine: ZoneSwapEngine) -> None:
        assert engine.reverse_swap("swap_nope") is False
        swap_id = engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        assert engine.reverse_swap(swap_id) is True
        assert engine.reverse_swap(swap_id) is False

    def test_restore_returns_restored_pair(self, engine: ZoneSwapEngine) -> None:
        source, target = make_character("a"), make_character("b")
        swap_id = engine.perform_swap(source, target, "1.0201")
        restored_source, restored_target = engine.restore_swap(swap_id)
        assert restored_source is source
        assert restored_target is target
        assert target.body_map["chest"]["descriptor"] == "b chest"
        assert engine.restore_swap(swap_id) is None

    def test_emits_reversed_record(self, engine: ZoneSwapEngine, bus: EventBus) -> None:
        seen = []
        bus.subscribe(SWAP_REVERSED, seen.append)
        swap_id = engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        engine.reverse_swap(swap_id)
        [payload] = seen
        assert payload["id"] == swap_id
        assert payload["status"] == "reversed"
        assert payload["reversed_at"] is not None


class TestSwapZone:
    def test_exchanges_on_copies(self, engine: ZoneSwapEngine) -> None:
        a, b = make_body_map("a"), make_body_map("b")
        result = engine.swap_zone("chest", a, b)
        assert result.success
        assert result.body_a["chest"]["descriptor"] == "b chest"
        assert result.body_b["chest"]["descriptor"] == "a chest"
        assert a["chest"]["descriptor"] == "a chest"

    def test_missing_zone_fails(self, engine: ZoneSwapEngine) -> None:
        a, b = make_body_map("a"), make_body_map("b")
        del b["legs"]
        result = engine.swap_zone("legs", a, b)
        assert result.success is False
        assert result.error == "Zone 'legs' is missing on one side"


class TestHistory:
    def test_fifo_trim(self, engine: ZoneSwapEngine) -> None:
        engine.update_settings({"history_limit": 3})
        ids = [engine.perform_swap(make_character("a"), make_character("b"), "1.0201") for _ in range(5)]
        assert [r.id for r in engine.get_swap_history()] == ids[2:]
        assert len(engine.get_active_swaps()) == 5

    def test_lowering_limit_trims(self, engine: ZoneSwapEngine) -> None:
        ids = [engine.perform_swap(make_character("a"), make_character("b"), "1.0201") for _ in range(4)]
        engine.update_settings({"history_limit": 2})
        assert [r.id for r in engine.get_swap_history()] == ids[2:]

    def test_history_is_a_copy(self, engine: ZoneSwapEngine) -> None:
        engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        engine.get_swap_history()[0].zones.append("neck")
        assert engine.get_swap_history()[0].zones == ["chest"]

    def test_clear_keeps_active(self, engine: ZoneSwapEngine) -> None:
        swap_id = engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        engine.clear_history()
        assert engine.get_swap_history() == []
        assert engine.reverse_swap(swap_id) is True

    def test_clear_emits_event(self, engine: ZoneSwapEngine, bus: EventBus) -> None:
        seen = []
        bus.subscribe(HISTORY_CLEARED, seen.append)
        engine.clear_history()
        assert len(seen) == 1


class TestSettings:
    def test_partial_merge_ignores_unknown(self, engine: ZoneSwapEngine) -> None:
        s = engine.update_settings({"history_limit": 7, "colour": "red"})
        assert s.history_limit == 7
        assert s.auto_validation is True
        assert not hasattr(s, "colour")

    def test_invalid_value_rejected(self, engine: ZoneSwapEngine) -> None:
        with pytest.raises(ValueError):
            engine.update_settings({"history_limit": 0})
        assert engine.settings.history_limit == 100

    def test_debug_mode_sets_package_logger(self, engine: ZoneSwapEngine) -> None:
        try:
            engine.update_settings({"debug_mode": True})
            assert logging.getLogger("threadshift").level == logging.DEBUG
        finally:
            set_debug_logging(False)
        assert logging.getLogger("threadshift").level == logging.NOTSET

    def test_status(self, engine: ZoneSwapEngine) -> None:
        engine.perform_swap(make_character("a"), make_character("b"), "1.0201")
        status = engine.get_status()
        assert status["version"] == "1.0.0"
        assert status["initialized"] is True
        assert status["active_swaps"] == 1
        assert status["history_count"] == 1
        assert status["settings"]["bidirectional_swaps"] is False
        assert status["dependencies"] == {
            "zone_mapper": True, "validator": True, "reciprocal_handler": False,
        }

    def test_garment_lookup(self, engine: ZoneSwapEngine) -> None:
        assert engine.get_garment_by_id("3.0801").type == "hat"
        assert engine.get_garment_by_id("bad") is None
