"""End-to-end tests of compiled mocks."""

from collections.abc import Callable
from pathlib import Path
from typing import Optional, Protocol, overload

import pytest

from mock_synthesizer.declaration_parser import parse_interface_file, parse_interface_source
from mock_synthesizer.errors import UnstubbedCallError, VerificationError
from mock_synthesizer.matchers import ANY, exact
from mock_synthesizer.synthesize import build_mock_class, compile_mock


class UserService(Protocol):
    username: str

    @overload
    def fetchUser(self) -> str: ...

    @overload
    def fetchUser(self, completion: Callable[[str], None]) -> None: ...

    def fetchUser(self, completion=None): ...


class Directory(Protocol):
    def ping(self) -> None: ...

    def lookup(self, user_id: int) -> str: ...

    def audit(self, actor: str, action: str) -> None: ...

    def watch(
        self,
        on_change: Callable[[str], None],
        on_error: Optional[Callable[[Exception], None]],
    ) -> None: ...

    def start(self, job: str, done: Callable[[int], None]) -> int: ...


DEFAULT_CHANNEL = object()


class Logger(Protocol):
    def log(
        self, message: str, level: int = 0, *, channel: object = DEFAULT_CHANNEL
    ) -> None: ...


class Cache(Protocol):
    @overload
    def read(self) -> None: ...

    @overload
    def read(self, key: str, limit: int = 10) -> list: ...

    def read(self, key=None, limit=10): ...


class Box(Protocol):
    def value(self) -> int: ...

    def name(self) -> str: ...


@pytest.fixture(scope="module")
def MockUserService():
    return build_mock_class(UserService)


@pytest.fixture(scope="module")
def MockDirectory():
    return build_mock_class(Directory)


class TestPropertyMocking:
    def given_a_mock(self, mock_class):
        self.mock = mock_class()
        self.Method = self.mock.Method

    def when_username_is_set(self, *values):
        for value in values:
            self.mock.username = value

    def then_set_count_is(self, count, **matchers):
        self.mock.verify(self.Method.set_username, count, **matchers)

    def test_given_value_is_returned(self, MockUserService):
        """A stubbed property returns the stubbed value."""
        self.given_a_mock(MockUserService)
        self.mock.given(self.Method.get_username, will_return="TestUser")

        assert self.mock.username == "TestUser"
        self.mock.verify(self.Method.get_username, 1)

    def test_set_then_get_round_trips(self, MockUserService):
        """Setting then getting returns the new value; set is not a get."""
        self.given_a_mock(MockUserService)
        self.when_username_is_set("NewUser")

        self.mock.verify(self.Method.get_username, 0)
        assert self.mock.username == "NewUser"
        assert self.mock.username == "NewUser"
        self.mock.verify(self.Method.get_username, 2)

    def test_set_matchers(self, MockUserService):
        """Set verification supports any and exact matchers."""
        self.given_a_mock(MockUserService)
        self.when_username_is_set("Bob")

        self.then_set_count_is(1)
        self.then_set_count_is(1, value=ANY)
        self.then_set_count_is(1, value=exact("Bob"))
        self.then_set_count_is(1, value="Bob")
        self.then_set_count_is(0, value=exact("Carol"))
        with pytest.raises(VerificationError):
            self.then_set_count_is(2, value=exact("Bob"))

    def test_any_counts_every_set(self, MockUserService):
        """ANY counts all logged set values."""
        self.given_a_mock(MockUserService)
        self.when_username_is_set("Value1", "Value2")

        self.then_set_count_is(2, value=ANY)

    def test_unset_property_is_fatal(self, MockUserService):
        """Reading a property with no value is an unstubbed call."""
        self.given_a_mock(MockUserService)

        with pytest.raises(UnstubbedCallError, match="username"):
            self.mock.username


class TestReturningNoArg:
    def test_stub_is_returned(self, MockUserService):
        """A stubbed parameterless method returns its stub."""
        mock = MockUserService()
        mock.given(mock.Method.fetchUser, will_return="John")

        assert mock.fetchUser() == "John"
        mock.verify(mock.Method.fetchUser, 1)

    def test_later_stub_overwrites(self, MockUserService):
        """The last given wins."""
        mock = MockUserService()
        mock.given(mock.Method.fetchUser, will_return="First")
        assert mock.fetchUser() == "First"
        mock.given(mock.Method.fetchUser, will_return="Second")

        assert mock.fetchUser() == "Second"
        mock.verify(mock.Method.fetchUser, 2)

    def test_unstubbed_call_is_fatal(self, MockUserService):
        """Calling without a stub fails and names the member."""
        mock = MockUserService()

        with pytest.raises(UnstubbedCallError, match="fetchUser"):
            mock.fetchUser()

    def test_given_requires_return_value(self, MockUserService):
        """given on a returning tag without will_return is a TypeError."""
        mock = MockUserService()

        with pytest.raises(TypeError, match="will_return"):
            mock.given(mock.Method.fetchUser)

    def test_tags_can_be_passed_as_strings(self, MockUserService):
        """Method tags may be given by their string value."""
        mock = MockUserService()
        mock.given("fetchUser", will_return="x")

        mock.fetchUser()

        mock.verify("fetchUser", 1)

    def test_unknown_tag_is_rejected(self, MockUserService):
        """Tags outside the Method enum are not accepted."""
        mock = MockUserService()

        with pytest.raises(ValueError):
            mock.verify("fetchUsers", 0)


class TestCounters:
    @pytest.mark.parametrize("calls", [0, 1, 3])
    def test_counter_matches_exactly(self, MockDirectory, calls):
        """verify passes for N calls and fails for N-1 and N+1."""
        mock = MockDirectory()
        for _ in range(calls):
            mock.ping()

        mock.verify(mock.Method.ping, calls)
        with pytest.raises(VerificationError):
            mock.verify(mock.Method.ping, calls + 1)
        if calls:
            with pytest.raises(VerificationError):
                mock.verify(mock.Method.ping, calls - 1)

    def test_verification_error_reports_call_site(self, MockDirectory):
        """The failure message includes counts and the test location."""
        mock = MockDirectory()
        mock.ping()

        with pytest.raises(VerificationError) as exc_info:
            mock.verify(mock.Method.ping, 3)

        error = exc_info.value
        assert "expected 3 call(s), got 1" in str(error)
        assert error.location.startswith(__file__)

    def test_failure_handler_collects_failures(self, MockDirectory):
        """An injected handler receives failures instead of raising."""
        failures = []
        mock = MockDirectory(failure_handler=failures.append)

        mock.verify(mock.Method.ping, 1)
        mock.verify(mock.Method.audit_with_actor_action, 2, actor="root")

        assert [(f.tag, f.expected, f.actual) for f in failures] == [
            ("ping", 1, 0),
            ("audit_with_actor_action", 2, 0),
        ]


class TestArgumentScopedStubs:
    def test_stubs_coexist_per_argument(self, MockDirectory):
        """Stubs for different arguments coexist; others are fatal."""
        mock = MockDirectory()
        mock.given(mock.Method.lookup_with_user_id, user_id=1, will_return="X")
        mock.given(mock.Method.lookup_with_user_id, user_id=2, will_return="Y")

        assert mock.lookup(1) == "X"
        assert mock.lookup(user_id=2) == "Y"
        with pytest.raises(UnstubbedCallError, match=r"user_id=3"):
            mock.lookup(3)

    def test_wildcard_stub(self, MockDirectory):
        """A stub without arguments matches any argument."""
        mock = MockDirectory()
        mock.given(mock.Method.lookup_with_user_id, will_return="anyone")

        assert mock.lookup(42) == "anyone"

    def test_verify_counts_matching_calls(self, MockDirectory):
        """Calls are counted when every argument matches."""
        mock = MockDirectory()
        mock.audit("alice", "login")
        mock.audit("alice", "logout")
        mock.audit("bob", "login")

        mock.verify(mock.Method.audit_with_actor_action, 3)
        mock.verify(mock.Method.audit_with_actor_action, 2, actor="alice")
        mock.verify(mock.Method.audit_with_actor_action, 1, actor="alice", action="login")
        mock.verify(mock.Method.audit_with_actor_action, 0, actor=exact("carol"))

    def test_verify_counts_unstubbed_attempts(self, MockDirectory):
        """Returning calls are logged even when they fail."""
        mock = MockDirectory()
        with pytest.raises(UnstubbedCallError):
            mock.lookup(5)

        mock.verify(mock.Method.lookup_with_user_id, 1, user_id=5)

    def test_unknown_argument_name(self, MockDirectory):
        """Matchers must name declared parameters."""
        mock = MockDirectory()

        with pytest.raises(TypeError, match="no parameter"):
            mock.verify(mock.Method.lookup_with_user_id, 0, id=1)

    def test_void_given_is_accepted(self, MockDirectory):
        """Stubbing a void member is allowed and changes nothing."""
        mock = MockDirectory()
        mock.given(mock.Method.audit_with_actor_action, actor="x")

        assert mock.audit("x", "y") is None


class TestCallbacks:
    def test_callback_is_deferred_until_trigger(self, MockUserService):
        """The completion runs only when triggered, with the trigger value."""
        mock = MockUserService()
        captured = []

        mock.fetchUser(captured.append)

        mock.verify(mock.Method.fetchUser_with_completion, 1)
        mock.verify(mock.Method.fetchUser, 0)
        assert captured == []
        assert mock.trigger_fetchUser_completions("AsyncResult") == 1
        assert captured == ["AsyncResult"]

    def test_trigger_delivers_in_order_once(self, MockUserService):
        """Two registrations are each called once, in order; a second trigger does nothing."""
        mock = MockUserService()
        results = []
        mock.fetchUser(lambda r: results.append(f"1: {r}"))
        mock.fetchUser(completion=lambda r: results.append(f"2: {r}"))

        mock.trigger(mock.Method.fetchUser_with_completion, "BatchResult")
        delivered = mock.trigger(mock.Method.fetchUser_with_completion, "Again")

        assert results == ["1: BatchResult", "2: BatchResult"]
        assert delivered == 0

    def test_trigger_on_non_callback_member(self, MockUserService):
        """Triggering a member without callbacks is a TypeError."""
        mock = MockUserService()

        with pytest.raises(TypeError, match="takes no callbacks"):
            mock.trigger(mock.Method.fetchUser, "x")

    def test_several_callback_parameters(self, MockDirectory):
        """Each callback parameter has its own pending list."""
        mock = MockDirectory()
        changes, errors = [], []
        mock.watch(changes.append, errors.append)
        mock.watch(changes.append, None)

        with pytest.raises(TypeError, match="several callbacks"):
            mock.trigger(mock.Method.watch_with_on_change_on_error, "x")
        mock.trigger(mock.Method.watch_with_on_change_on_error, "c", parameter="on_change")
        mock.trigger_watch_with_on_change_on_error_on_error_completions(KeyError("k"))

        assert changes == ["c", "c"]
        assert len(errors) == 1
        mock.verify(mock.Method.watch_with_on_change_on_error, 2)

    def test_returning_callback_member(self, MockDirectory):
        """A callback member with a return type is stubbed on its other arguments."""
        mock = MockDirectory()
        mock.given(mock.Method.start_with_job_done, job="build", will_return=17)
        finished = []

        job_id = mock.start("build", finished.append)
        mock.trigger_start_completions(0)

        assert job_id == 17
        assert finished == [0]
        with pytest.raises(UnstubbedCallError, match="job='deploy'"):
            mock.start("deploy", finished.append)


class TestOverloadDispatch:
    def test_unresolvable_call(self, MockUserService):
        """Arguments matching no overload raise TypeError."""
        mock = MockUserService()

        with pytest.raises(TypeError, match="No overload of fetchUser"):
            mock.fetchUser(1, 2)

    def test_overload_with_defaulted_parameter(self):
        """A call omitting a defaulted parameter still reaches its overload."""
        mock = build_mock_class(Cache)()
        mock.given(mock.Method.read_with_key_limit, key="a", will_return=["x"])

        assert mock.read("a") == ["x"]
        assert mock.read("a", limit=5) == ["x"]
        mock.read()
        mock.verify(mock.Method.read_with_key_limit, 1, limit=10)
        mock.verify(mock.Method.read_with_key_limit, 1, limit=5)
        mock.verify(mock.Method.read, 1)


class TestDefaults:
    def given_a_logger(self):
        self.mock = build_mock_class(Logger)()

    def when_logging(self, *args, **kwargs):
        self.mock.log(*args, **kwargs)

    def then_logged(self, count, **matchers):
        self.mock.verify(self.mock.Method.log_with_message_level_channel, count, **matchers)

    def test_omitted_defaults_are_filled_in(self):
        """Calls may omit defaulted parameters, and the defaults are logged."""
        self.given_a_logger()
        self.when_logging("hi")
        self.then_logged(1, message="hi", level=0, channel=DEFAULT_CHANNEL)

    def test_keyword_only_parameter(self):
        """Keyword-only parameters keep their marker."""
        self.given_a_logger()
        self.when_logging("hi", 2, channel="audit")
        self.then_logged(1, level=2, channel="audit")

        with pytest.raises(TypeError):
            self.mock.log("hi", 2, "audit")

    def test_mock_from_source_keeps_defaults(self):
        """Parsed defaults, literal or not, work once the interface is bound."""
        source = (
            "class Logger(Protocol):\n"
            "    def log(self, message: str, level: int = 0, *,\n"
            "            channel: str = DEFAULT_CHANNEL) -> None: ...\n"
        )
        mock = compile_mock(parse_interface_source(source, "Logger"), Logger)()

        mock.log("hi")

        mock.verify(mock.Method.log_with_message_level_channel, 1, channel=DEFAULT_CHANNEL)


class TestEnumAttributeNames:
    def test_methods_named_value_and_name(self):
        """Members may share names with enum attributes."""
        mock = build_mock_class(Box)()
        mock.given(mock.Method.value, will_return=3)
        mock.given("name", will_return="box")

        assert mock.value() == 3
        assert mock.name() == "box"
        mock.verify(mock.Method.value, 1)
        mock.verify(mock.Method.name, 1)


class TestInterfaceConformance:
    def test_mock_subclasses_interface(self, MockUserService):
        """The mock is a subclass of the interface it implements."""
        assert UserService in MockUserService.__mro__
        assert MockUserService.__name__ == "MockUserService"

    def test_instances_are_independent(self, MockDirectory):
        """Each mock instance starts with fresh state."""
        first, second = MockDirectory(), MockDirectory()
        first.ping()

        second.verify(second.Method.ping, 0)
        first.verify(first.Method.ping, 1)


class TestCompileMockFromSource:
    def test_mock_from_parsed_file(self):
        """Declarations parsed from source compile into working mocks."""
        path = Path(__file__).parent / "fixtures" / "interfaces" / "services.py"
        declaration = parse_interface_file(path, "Repository")

        MockRepository = compile_mock(declaration)
        mock = MockRepository()
        mock.given(mock.Method.load_with_key, key="k", will_return=b"v")
        mock.retries = 3

        assert mock.load("k") == b"v"
        assert mock.retries == 3
        mock.save("k", b"v")
        mock.verify(mock.Method.save_with_key_value, 1, key="k")
        mock.verify(mock.Method.set_retries, 1, value=3)
