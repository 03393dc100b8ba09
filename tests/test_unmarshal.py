# tests/test_unmarshal.py
"""
Tests for flatconf.unmarshal — populating dataclasses from a Store.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pytest

from flatconf import CfgFile, ConversionError, Defaults, EnvVar, SourceShapeError, Store, load
from flatconf.flatten import flatten
from flatconf.unmarshal import coerce, unmarshal, zero_value

from sample_models import (
    SAMPLEDATA,
    Child,
    Child2,
    NestedConfig,
    SampleConfig,
    UserData,
    default_cfg,
)

ENVS = {
    "NUMBER": "60",
    "FLOATNUM": "6.65",
    "TEXT": "this is a string",
    "FILECONTENT": "@./sampledata/secretfile",
    "BOL": "true",
    "LISTSTRING_0": "string 1",
    "LISTSTRING_1": "string 2",
    "NESTED_CHILD_RENAMED": "envValue",
}

FROM_ENV = SampleConfig(
    number=60,
    float_num=6.65,
    text="this is a string",
    file_content="mysecret",
    bol=True,
    string_list=["string 1", "string 2"],
    struct_list=[],
    nested=NestedConfig(child=Child(another_name="envValue")),
)

# ---------------------------------------------------------------------------
# Store.unmarshal over loaded sources
# ---------------------------------------------------------------------------


class TestUnmarshal:

    def test_load_from_file(self, monkeypatch):
        """A YAML file fills every field, renamed ones included."""
        monkeypatch.setenv("TEST_ISDEVMODE", "false")
        store = load(CfgFile(str(SAMPLEDATA / "testSingleFile.yaml")))
        got = store.unmarshal(SampleConfig())
        assert got == SampleConfig(
            number=60,
            float_num=3.14,
            text="this is a string",
            file_content="mysecret",
            bol=True,
            string_list=["sting 1", "string 2"],
            struct_list=[
                UserData(name="u1", password="p1"),
                UserData(name="u2", password="p2"),
                UserData(password="p3"),
            ],
            nested=NestedConfig(
                child=Child(number=61, text="this is a string 2", another_name="renamedString"),
                child2=Child2(number=62),
            ),
        )

    def test_env_no_prefix(self, clean_env):
        """Unprefixed env vars are coerced from text into field types."""
        clean_env.chdir(SAMPLEDATA.parent)
        for k, v in ENVS.items():
            clean_env.setenv(k, v)
        got = load(EnvVar()).unmarshal(SampleConfig())
        assert got == FROM_ENV

    def test_env_with_prefix(self, monkeypatch):
        """Prefixed env vars give the same result as unprefixed ones."""
        monkeypatch.chdir(SAMPLEDATA.parent)
        for k, v in ENVS.items():
            monkeypatch.setenv(f"TEST_{k}", v)
        got = load(EnvVar("TEST")).unmarshal(SampleConfig())
        assert got == FROM_ENV

    def test_preload_defaults(self, clean_env):
        """Defaults survive a round trip through the store unchanged."""
        got = load(Defaults(default_cfg()), EnvVar()).unmarshal(SampleConfig())
        assert got == default_cfg()

    def test_absent_keys_keep_current_values(self):
        """Fields without a key are left alone."""
        dest = SampleConfig(number=5, text="keep")
        Store({"number": "7"}).unmarshal(dest)
        assert dest.number == 7
        assert dest.text == "keep"

    def test_env_overrides_one_list_element(self, monkeypatch):
        """One env var replaces a single field of one list element."""
        monkeypatch.setenv("TEST_USERLIST_1_PASS", "secret")
        got = load(Defaults(default_cfg()), EnvVar("TEST")).unmarshal(SampleConfig())
        assert got.struct_list[1] == UserData(name="a2", password="secret")
        assert len(got.struct_list) == 3

    def test_conversion_error_names_key_and_type(self):
        """ConversionError carries the key and target type."""
        with pytest.raises(ConversionError) as exc:
            Store({"nested.child.number": "lots"}).unmarshal(SampleConfig())
        assert exc.value.key == "nested.child.number"
        assert exc.value.target == "int"
        assert "nested.child.number" in str(exc.value)

    def test_destination_must_be_struct(self):
        """A dataclass type is not a destination."""
        with pytest.raises(SourceShapeError):
            unmarshal({}, SampleConfig)

    def test_returns_destination(self):
        """unmarshal() fills and returns the same instance."""
        dest = SampleConfig()
        assert unmarshal({"text": "x"}, dest) is dest


# ---------------------------------------------------------------------------
# Lists, dicts, optionals
# ---------------------------------------------------------------------------


@dataclass
class Endpoint:
    host: str = ""
    port: int = 0


class Level(enum.Enum):
    DEBUG = "debug"
    INFO = "info"


@dataclass
class Service:
    endpoints: List[Endpoint] = field(default_factory=list)
    tags: Tuple[str, ...] = ()
    labels: Dict[str, str] = field(default_factory=dict)
    limits: Dict[str, int] = field(default_factory=dict)
    primary: Optional[Endpoint] = None
    timeout: Optional[float] = None
    level: Level = Level.INFO
    extra: Any = None
    matrix: List[List[int]] = field(default_factory=list)


@dataclass
class Users:
    users: List[UserData] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    ports: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class FrozenEndpoint:
    host: str = ""
    port: int = 0


@dataclass
class Holder:
    endpoint: FrozenEndpoint = field(default_factory=FrozenEndpoint)
    name: str = ""


class TestShapes:

    def test_list_stops_at_first_gap(self):
        """Elements after a missing index are not read."""
        flat = {"endpoints.0.host": "a", "endpoints.1.host": "b", "endpoints.3.host": "d"}
        got = unmarshal(flat, Service())
        assert got.endpoints == [Endpoint("a"), Endpoint("b")]

    def test_partial_struct_element_counts_as_present(self):
        """An element with only some fields set is still an element."""
        flat = {"endpoints.0.host": "a", "endpoints.1.port": "81"}
        got = unmarshal(flat, Service())
        assert got.endpoints == [Endpoint("a", 0), Endpoint("", 81)]

    def test_unknown_keys_below_an_index_do_not_add_elements(self):
        """Keys that match no field of the element type do not size the list."""
        flat = {"users.0.name": "a", "users.1.bogus": "x", "tags.0": "t", "tags.1.extra": "y"}
        got = Store(flat).unmarshal(Users())
        assert got.users == [UserData(name="a")]
        assert got.tags == ["t"]

    def test_only_unknown_keys_leave_list_untouched(self):
        """A list whose first index has no usable data is not assigned."""
        dest = Users(users=[UserData(name="keep")])
        unmarshal({"users.0.nickname": "x"}, dest)
        assert dest.users == [UserData(name="keep")]

    def test_null_list_elements_keep_positions(self):
        """A null element becomes the zero value; later elements stay in place."""
        got = unmarshal(flatten({"ports": [1, None, 3], "users": [None, {"name": "b"}]}), Users())
        assert got.ports == [1, 0, 3]
        assert got.users == [UserData(), UserData(name="b")]

    def test_list_replaces_current_value(self):
        """A found list is rebuilt, not merged with the current one."""
        dest = Service(endpoints=[Endpoint("x", 1), Endpoint("y", 2)])
        unmarshal({"endpoints.0.host": "only"}, dest)
        assert dest.endpoints == [Endpoint("only", 0)]

    def test_tuple_and_nested_lists(self):
        """Tuples and lists of lists are sized per level."""
        flat = {"tags.0": "a", "tags.1": "b", "matrix.0.0": 1, "matrix.0.1": "2", "matrix.1.0": 3}
        got = unmarshal(flat, Service())
        assert got.tags == ("a", "b")
        assert got.matrix == [[1, 2], [3]]

    def test_dicts(self):
        """Dict values are coerced to the declared value type."""
        flat = {"labels.team": "core", "labels.tier": 1, "limits.cpu": "2"}
        got = unmarshal(flat, Service())
        assert got.labels == {"team": "core", "tier": "1"}
        assert got.limits == {"cpu": 2}

    def test_optional_struct_created_on_demand(self):
        """Optional dataclass fields are built only when data exists."""
        got = unmarshal({"primary.port": "443"}, Service())
        assert got.primary == Endpoint("", 443)
        assert unmarshal({}, Service()).primary is None

    def test_optional_scalar_and_enum(self):
        """Optional scalars and enums (by value or name) are coerced."""
        got = unmarshal({"timeout": "2.5", "level": "DEBUG"}, Service())
        assert got.timeout == 2.5
        assert got.level is Level.DEBUG

    def test_any_takes_raw_or_subtree(self):
        """Any fields get the raw leaf or the nested subtree."""
        assert unmarshal({"extra": 3}, Service()).extra == 3
        got = unmarshal({"extra.a.0": "x", "extra.b": True}, Service())
        assert got.extra == {"a": ["x"], "b": True}

    def test_skipped_and_private_fields_untouched(self):
        """Private and "-" tagged fields are never assigned."""
        @dataclass
        class Cfg:
            name: str = ""
            _secret: str = "keep"
            cache: str = field(default="keep", metadata={"config": "-"})

        got = unmarshal({"name": "n", "_secret": "x", "cache": "x", "-": "x"}, Cfg())
        assert got == Cfg(name="n", _secret="keep", cache="keep")


class TestFrozen:

    def test_nested_frozen_is_replaced(self):
        """A frozen nested dataclass is swapped for an updated copy."""
        original = FrozenEndpoint(host="h", port=1)
        dest = Holder(endpoint=original)
        unmarshal({"endpoint.port": "2", "name": "n"}, dest)
        assert dest.endpoint == FrozenEndpoint(host="h", port=2)
        assert original.port == 1
        assert dest.name == "n"

    def test_nested_frozen_without_data_is_kept(self):
        """No data below a frozen field leaves the same instance."""
        original = FrozenEndpoint(host="h")
        dest = Holder(endpoint=original)
        unmarshal({"name": "n"}, dest)
        assert dest.endpoint is original

    def test_frozen_destination_rejected(self):
        """The top-level destination cannot be frozen."""
        with pytest.raises(SourceShapeError, match="frozen"):
            unmarshal({"port": "2"}, FrozenEndpoint())


# ---------------------------------------------------------------------------
# coerce / zero_value
# ---------------------------------------------------------------------------


class TestCoerce:

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("FALSE", False), ("1", True), ("0", False),
        ("yes", True), ("off", False), (True, True), (0, False),
    ])
    def test_bool(self, value, expected):
        """Bool literals are accepted case-insensitively."""
        assert coerce(value, bool, "k") is expected

    @pytest.mark.parametrize("value,tp,expected", [
        ("42", int, 42),
        (" 42 ", int, 42),
        (3.0, int, 3),
        ("6.65", float, 6.65),
        (2, float, 2.0),
        (35.0, str, "35"),
        (False, str, "false"),
        ("x", Any, "x"),
    ])
    def test_scalars(self, value, tp, expected):
        """Text and typed scalars convert to the target type."""
        assert coerce(value, tp, "k") == expected

    @pytest.mark.parametrize("value,tp", [
        ("maybe", bool),
        (2, bool),
        ("4.5", int),
        (4.5, int),
        (True, int),
        (True, float),
        ("abc", float),
        ("x", set),
    ])
    def test_failures(self, value, tp):
        """Unparseable values and unsupported targets raise ConversionError."""
        with pytest.raises(ConversionError):
            coerce(value, tp, "k")


class TestZeroValue:

    def test_scalars_and_containers(self):
        """Each supported type has an empty value."""
        assert zero_value(int) == 0
        assert zero_value(str) == ""
        assert zero_value(bool) is False
        assert zero_value(List[int]) == []
        assert zero_value(Dict[str, int]) == {}
        assert zero_value(Optional[int]) is None

    def test_struct_without_defaults(self):
        """Fields without defaults get their type's zero value."""
        @dataclass
        class Required:
            name: str
            port: int
            child: Endpoint
            opt: Optional[str] = "d"

        assert zero_value(Required) == Required(name="", port=0, child=Endpoint(), opt="d")
