"""Unit tests for tweak strategies, the registry and the catalog loader"""

import pytest
from unittest.mock import MagicMock

from wintweaks.errors import CatalogError, TweakNotFoundError
from wintweaks.execution import commands
from wintweaks.execution.executor import CommandExecutor
from wintweaks.presets import BUILT_IN_PRESETS
from wintweaks.tweaks.base import Tweak
from wintweaks.tweaks.catalog import load_catalog, load_catalog_file, load_default_registry
from wintweaks.tweaks.registry import TweakRegistry
from wintweaks.tweaks.strategies import CommandTweak, RegistryTweak, RegistryValue, ServiceTweak

from conftest import FakeTweak

KEY = "HKCU\\Software\\Microsoft\\Windows\\CurrentVersion\\Explorer\\Advanced"


def mock_executor(output=""):
    executor = MagicMock(spec=CommandExecutor)
    executor.execute.return_value = output
    return executor


def show_extensions(**kwargs):
    return RegistryTweak(
        "show-file-extensions", "Show File Extensions",
        [RegistryValue(KEY, "HideFileExt", on_value=0, off_value=1)],
        **kwargs
    )


class TestRegistryTweak:
    """Registry strategy: primary setting decides state"""

    def test_check_active_when_expected_line_present(self):
        """Active when reg query prints the expected line"""
        executor = mock_executor(f"\n{KEY}\n    HideFileExt    REG_DWORD    0x0\n")

        assert show_extensions().check_state(executor) is True
        executor.execute.assert_called_once_with(commands.reg_query(KEY, "HideFileExt"), check=False)

    def test_check_inactive_on_other_value_or_missing(self):
        """Another value or no value is inactive"""
        assert show_extensions().check_state(mock_executor("HideFileExt    REG_DWORD    0x1")) is False
        assert show_extensions().check_state(mock_executor("")) is False

    def test_batch_check_descriptor(self):
        """The batch descriptor uses the first setting"""
        check = show_extensions().batch_check

        assert check.kind == "registry"
        assert check.target == KEY
        assert check.field == "HideFileExt"
        assert check.expected_value == "HideFileExt    REG_DWORD    0x0"

    def test_not_batchable(self):
        """batchable=False gives no descriptor"""
        assert show_extensions(batchable=False).batch_check is None

    def test_apply_and_revert_cover_every_setting(self):
        """Apply and revert touch every setting"""
        tweak = RegistryTweak("t", "T", [
            RegistryValue("HKLM\\A", "One", on_value=1, off_value=None),
            RegistryValue("HKLM\\A", "Two", on_value="Deny", off_value="Allow", value_type="REG_SZ"),
        ])
        executor = mock_executor()

        tweak.apply_state(executor)
        applied = executor.execute.call_args[0][0]
        tweak.revert_state(executor)
        reverted = executor.execute.call_args[0][0]

        assert "reg add 'HKLM\\A' /v 'One' /t REG_DWORD /d '1' /f" in applied
        assert "/v 'Two' /t REG_SZ /d 'Deny' /f" in applied
        assert "reg delete 'HKLM\\A' /v 'One' /f" in reverted
        assert "/d 'Allow'" in reverted
        assert executor.execute.call_count == 2

    def test_apply_stops_at_first_failing_setting(self):
        """Every reg.exe call is followed by an exit check, so an early failure is reported"""
        tweak = RegistryTweak("t", "T", [
            RegistryValue("HKLM\\A", "One", on_value=1),
            RegistryValue("HKLM\\A", "Two", on_value=2),
        ])
        executor = mock_executor()

        tweak.apply_state(executor)

        query = executor.execute.call_args[0][0]
        first_add = query.index("/v 'One'")
        second_add = query.index("/v 'Two'")
        assert first_add < query.index(commands.EXIT_ON_ERROR) < second_add
        assert query.count(commands.EXIT_ON_ERROR) == 2

    def test_requires_settings(self):
        """A registry tweak needs at least one setting"""
        with pytest.raises(ValueError):
            RegistryTweak("t", "T", [])


class TestServiceTweak:
    """Service strategy: active when every service is Disabled"""

    def test_check_all_disabled(self):
        """Active when every service is disabled"""
        tweak = ServiceTweak("s", "S", [("SCardSvr", "demand"), ("ScDeviceEnum", "demand")])
        assert tweak.check_state(mock_executor("Disabled\r\n")) is True

    def test_check_one_enabled(self):
        """One enabled service makes it inactive"""
        tweak = ServiceTweak("s", "S", [("SCardSvr", "demand"), ("ScDeviceEnum", "demand")])
        executor = MagicMock(spec=CommandExecutor)
        executor.execute.side_effect = ["Disabled", "Manual"]

        assert tweak.check_state(executor) is False

    def test_missing_service(self):
        """A missing service counts only with allow_missing"""
        assert ServiceTweak("s", "S", [("Fax", "demand")], allow_missing=True).check_state(mock_executor("")) is True
        assert ServiceTweak("s", "S", [("Fax", "demand")]).check_state(mock_executor("")) is False

    def test_apply_stops_then_disables(self):
        """stop_on_apply stops the service before disabling it"""
        tweak = ServiceTweak("s", "S", [("SysMain", "auto")], stop_on_apply=True)
        executor = mock_executor()

        tweak.apply_state(executor)

        query = executor.execute.call_args[0][0]
        assert query.index("Stop-Service -Name 'SysMain'") < query.index("start= disabled")

    def test_revert_restores_start_type(self):
        """Revert restores each service's own start type"""
        tweak = ServiceTweak("s", "S", [("SysMain", "auto"), ("AJRouter", "demand")])
        executor = mock_executor()

        tweak.revert_state(executor)

        query = executor.execute.call_args[0][0]
        assert "sc.exe config 'SysMain' start= auto" in query
        assert "sc.exe config 'AJRouter' start= demand" in query

    def test_rejects_unknown_start_type(self):
        """Unknown start types are rejected up front"""
        with pytest.raises(ValueError):
            ServiceTweak("s", "S", [("SysMain", "sometimes")])


class TestCommandTweak:
    """Opaque command strategy"""

    def test_one_shot_never_queries(self):
        """One-shot commands report inactive without a query"""
        tweak = CommandTweak("cleanup", "Cleanup", apply=["Remove-Item x"])
        executor = mock_executor()

        assert tweak.one_shot is True
        assert tweak.check_state(executor) is False
        executor.execute.assert_not_called()

    def test_expect_and_expect_absent(self):
        """Both expectation modes read the query output"""
        present = CommandTweak("c", "C", apply=["x"], check_query="q", expect="absent")
        absent = CommandTweak("c", "C", apply=["x"], check_query="q", expect_absent="Hibernate")

        assert present.check_state(mock_executor("absent")) is True
        assert absent.check_state(mock_executor("Hibernate After")) is False
        assert absent.check_state(mock_executor("")) is True

    def test_irreversible_revert_is_noop(self):
        """Reverting an irreversible tweak runs nothing"""
        tweak = CommandTweak("c", "C", apply=["x"])
        executor = mock_executor()

        tweak.revert_state(executor)

        assert tweak.reversible is False
        executor.execute.assert_not_called()

    def test_check_query_needs_expectation(self):
        """A check query without an expectation is rejected"""
        with pytest.raises(ValueError):
            CommandTweak("c", "C", apply=["x"], check_query="q")

    def test_apply_commands_run_without_exit_checks(self):
        """Opaque commands keep their own exit codes (robocopy, taskkill)"""
        tweak = CommandTweak("c", "C", apply=["robocopy a b", "taskkill.exe /IM x"])
        executor = mock_executor()

        tweak.apply_state(executor)

        executor.execute.assert_called_once_with("robocopy a b; taskkill.exe /IM x")


class TestTweakRegistry:

    def test_register_and_lookup(self):
        """Registered tweaks are found by id"""
        registry = TweakRegistry([FakeTweak("a"), FakeTweak("b", category="UI Customization")])

        assert registry.has("a")
        assert "b" in registry
        assert registry.get("missing") is None
        assert registry.ids() == ["a", "b"]
        assert registry.categories() == ["Essential Tweaks", "UI Customization"]

    def test_duplicate_rejected(self):
        """Registering an id twice raises"""
        registry = TweakRegistry([FakeTweak("a")])
        with pytest.raises(ValueError):
            registry.register(FakeTweak("a"))

    def test_non_tweak_rejected(self):
        """Only Tweak instances can be registered"""
        with pytest.raises(TypeError):
            TweakRegistry().register("not a tweak")

    def test_tweak_without_kind_cannot_be_built(self):
        """kind is abstract like the behaviour methods"""

        class NoKind(Tweak):
            def check_state(self, executor):
                return False

            def apply_state(self, executor):
                pass

            def revert_state(self, executor):
                pass

        with pytest.raises(TypeError):
            NoKind("x", "X")

    def test_require_raises(self):
        """require() raises for unknown ids"""
        with pytest.raises(TweakNotFoundError):
            TweakRegistry().require("x")

    def test_select_filters(self):
        """select() filters by category and search"""
        registry = TweakRegistry([
            FakeTweak("dark-mode", title="Dark Theme", category="UI Customization"),
            FakeTweak("telemetry", title="Disable Telemetry", description="Stops DATA collection"),
        ])

        assert [t.id for t in registry.select(category="UI Customization")] == ["dark-mode"]
        assert [t.id for t in registry.select(search="data")] == ["telemetry"]
        assert [t.id for t in registry.select(search="THEME")] == ["dark-mode"]
        assert registry.select(category="UI Customization", search="telemetry") == []


CATALOG = """
schema: 1
tweaks:
  - id: show-file-extensions
    kind: registry
    title: Show File Extensions
    category: Essential Tweaks
    settings:
      - {target: 'HKCU\\\\Explorer\\\\Advanced', field: HideFileExt, value: 0, revert_value: 1}
  - id: disable-fax
    kind: service
    title: Disable Fax
    safety: caution
    services: [{name: Fax, revert: demand}]
  - id: cleanup
    kind: command
    title: Cleanup
    apply: [Remove-Item temp]
"""


class TestCatalog:
    """Declarative catalog loading and validation"""

    def test_load_all_kinds(self):
        """Every kind builds its strategy class"""
        tweaks = load_catalog(CATALOG)

        assert [t.kind for t in tweaks] == ["registry", "service", "command"]
        assert tweaks[0].primary.on_value == 0
        assert tweaks[0].primary.off_value == 1
        assert tweaks[1].safety == "caution"
        assert tweaks[1].category == "System Tweaks"
        assert tweaks[2].reversible is False

    @pytest.mark.parametrize("data", [
        {"schema": 2, "tweaks": []},
        {"schema": 1, "tweaks": "nope"},
        {"schema": 1, "tweaks": [{"id": "x", "kind": "magic", "title": "X"}]},
        {"schema": 1, "tweaks": [{"id": "x", "kind": "registry", "title": "X"}]},
        {"schema": 1, "tweaks": [{"id": "x", "kind": "registry", "title": "X",
                                  "settings": [{"target": "T", "field": "F"}]}]},
        {"schema": 1, "tweaks": [{"id": "x", "kind": "service", "title": "X",
                                  "services": [{"name": "S", "revert": "never"}]}]},
        {"schema": 1, "tweaks": [{"kind": "command", "title": "X", "apply": ["a"]}]},
        {"schema": 1, "tweaks": [{"id": "x", "kind": "command", "title": "X", "apply": ["a"],
                                  "safety": "reckless"}]},
    ])
    def test_invalid_catalogs(self, data):
        """Malformed records raise CatalogError"""
        with pytest.raises(CatalogError):
            load_catalog(data)

    def test_duplicate_ids(self):
        """Duplicate ids in one catalog raise CatalogError"""
        entry = {"id": "x", "kind": "command", "title": "X", "apply": ["a"]}
        with pytest.raises(CatalogError):
            load_catalog({"schema": 1, "tweaks": [entry, dict(entry)]})

    def test_missing_file(self, tmp_path):
        """A missing catalog file raises CatalogError"""
        with pytest.raises(CatalogError):
            load_catalog_file(tmp_path / "missing.yaml")

    def test_invalid_yaml_file(self, tmp_path):
        """A broken catalog file raises CatalogError"""
        path = tmp_path / "bad.yaml"
        path.write_text("schema: [1\n", encoding="utf-8")
        with pytest.raises(CatalogError):
            load_catalog_file(path)

    def test_invalid_yaml_text(self):
        """Broken YAML text raises CatalogError too"""
        with pytest.raises(CatalogError):
            load_catalog("schema: [1\n")


class TestBundledCatalog:
    """The catalog shipped with the package"""

    @pytest.fixture(scope="class")
    def registry(self):
        return load_default_registry()

    def test_loads(self, registry):
        """The bundled catalog loads with all four categories"""
        assert len(registry) == 78
        assert registry.categories() == [
            "Essential Tweaks", "UI Customization", "Advanced Tweaks", "Useless Services"
        ]

    def test_most_registry_tweaks_are_batchable(self, registry):
        """Registry tweaks default to the batch path"""
        registry_tweaks = [t for t in registry if t.kind == "registry"]
        assert registry_tweaks
        assert all(t.batch_check is not None for t in registry_tweaks)

    def test_location_tracking_uses_string_value(self, registry):
        """REG_SZ values are compared as text"""
        tweak = registry.require("disable-location-tracking")
        assert tweak.batch_check.expected_value == "Value    REG_SZ    Deny"

    def test_ipv6_expected_hex(self, registry):
        """DWORD 255 is expected as 0xff"""
        assert registry.require("disable-ipv6").batch_check.expected_value.endswith("0xff")

    def test_one_shot_and_irreversible(self, registry):
        """Cleanup tweaks are one-shot and irreversible"""
        assert registry.require("create-restore-point").one_shot is True
        assert registry.require("disk-cleanup").reversible is False
        assert registry.require("remove-onedrive").reversible is True

    def test_presets_reference_known_tweaks(self, registry):
        """Every built-in preset id exists in the bundled catalog"""
        for preset in BUILT_IN_PRESETS.values():
            for tweak_id in preset.tweaks:
                assert registry.has(tweak_id), f"{preset.name} names unknown tweak {tweak_id}"

    @pytest.mark.parametrize("tweak_id,service", [
        ("disable-ip-helper", "iphlpsvc"),
        ("disable-netlogon", "Netlogon"),
        ("disable-security-center", "wscsvc"),
        ("disable-remote-access", "RemoteAccess"),
        ("disable-secondary-logon", "seclogon"),
        ("disable-tablet-input", "TabletInputService"),
        ("disable-windows-insider-service", "wisvc"),
        ("disable-mobile-hotspot-service", "SharedAccess"),
        ("disable-program-compatibility-assistant", "PcaSvc"),
    ])
    def test_service_tweaks(self, registry, tweak_id, service):
        """Each service tweak disables the expected Windows service"""
        tweak = registry.require(tweak_id)
        assert tweak.kind == "service"
        assert tweak.category == "Useless Services"
        assert tweak.service_names == [service]

    def test_remove_3d_objects_active_when_keys_gone(self, registry):
        """3D Objects removal is active only while neither namespace key exists"""
        tweak = registry.require("remove-3d-objects")
        key_listing = ("HKEY_LOCAL_MACHINE\\SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Explorer"
                       "\\MyComputer\\NameSpace\\{0DB7E03F-FC29-4DC6-9020-FF41B59E513A}\n")

        assert tweak.reversible is True
        assert tweak.check_state(mock_executor("")) is True
        assert tweak.check_state(mock_executor(key_listing)) is False

    def test_classic_right_click_menu_restarts_explorer(self, registry):
        """The Advanced variant of the classic menu restarts Explorer on apply and revert"""
        tweak = registry.require("classic-right-click-menu")
        assert tweak.category == "Advanced Tweaks"
        assert any("explorer" in cmd for cmd in tweak.apply_commands[1:])
        assert any("explorer" in cmd for cmd in tweak.revert_commands[1:])
