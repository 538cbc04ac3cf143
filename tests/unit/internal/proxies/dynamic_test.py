from __future__ import annotations

import abc
import inspect
from typing import Any, Mapping, Sequence

import pytest

from double_engine.dispatch import INSTANCE_ATTR, DispatchContract
from double_engine.internal.proxies import dynamic as uut
from double_engine.model.errors import MockDisposed, ProxyUnavailable
from double_engine.model.keys import MemberIdentity
from double_engine.model.setup import SetupRecord
from unit.helpers.fixtures import (
    Clock,
    EmailService,
    EventHandler,
    Finder,
    SealedService,
    UserRepository,
    WidgetFactory,
)


class _RecordingContract(DispatchContract):
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    @property
    def is_partial_mode(self) -> bool:
        return False

    def record_call(self, identity: MemberIdentity, arguments: tuple[Any, ...]) -> None:
        self.calls.append((identity.display_name, arguments))

    def try_get_setup(self, identity: MemberIdentity) -> SetupRecord | None:
        return None

    def fallback(self, member: Any, args: Sequence[Any], kwargs: Mapping[str, Any]) -> Any:
        return f"fallback:{member.name}"


class _WithPrivateAbstract(abc.ABC):
    @abc.abstractmethod
    def _load(self) -> int: ...


def test_proxy_class_is_a_cached_subclass() -> None:
    proxy_cls = uut.synthesize_proxy_class(UserRepository)

    assert issubclass(proxy_cls, UserRepository)
    assert proxy_cls.__name__ == "UserRepositoryDouble"
    assert uut.synthesize_proxy_class(UserRepository) is proxy_cls


def test_proxy_forwards_methods_and_properties() -> None:
    contract = _RecordingContract()
    proxy = uut.create_dynamic_proxy(instance=contract, target=UserRepository)

    assert isinstance(proxy, UserRepository)
    assert proxy.get_by_id(7) == "fallback:get_by_id"
    assert proxy.delete(user_id=3) == "fallback:delete"
    assert proxy.name == "fallback:name"
    assert contract.calls == [("get_by_id", (7,)), ("delete", (3, False)), ("name", ())]


def test_proxy_methods_keep_declared_metadata() -> None:
    proxy = uut.create_dynamic_proxy(instance=_RecordingContract(), target=UserRepository)

    assert proxy.get_by_id.__name__ == "get_by_id"
    assert list(inspect.signature(proxy.get_by_id).parameters) == ["user_id"]
    assert getattr(type(proxy).get_by_id, "__isabstractmethod__", False) is False


def test_proxy_property_is_read_only() -> None:
    proxy = uut.create_dynamic_proxy(instance=_RecordingContract(), target=UserRepository)
    with pytest.raises(AttributeError):
        proxy.name = "other"


def test_proxy_rejects_bad_arguments_before_recording() -> None:
    contract = _RecordingContract()
    proxy = uut.create_dynamic_proxy(instance=contract, target=UserRepository)

    with pytest.raises(TypeError):
        proxy.get_by_id(1, 2)
    assert contract.calls == []


def test_proxy_routes_overloads() -> None:
    contract = _RecordingContract()
    proxy = uut.create_dynamic_proxy(instance=contract, target=Finder)

    proxy.find(1)
    proxy.find("a")

    (first, _), (second, _) = contract.calls
    assert first != second
    assert first.startswith("find(")


def test_proxy_of_protocol() -> None:
    contract = _RecordingContract()
    proxy = uut.create_dynamic_proxy(instance=contract, target=EmailService)

    assert proxy.send_async("a@b", "s", "b") == "fallback:send_async"


def test_proxy_forwards_protocol_dunders() -> None:
    contract = _RecordingContract()
    proxy = uut.create_dynamic_proxy(instance=contract, target=EventHandler)

    assert proxy("started") == "fallback:__call__"
    assert contract.calls == [("__call__", ("started",))]
    assert list(inspect.signature(type(proxy).__call__).parameters) == ["self", "event"]


def test_proxy_forwards_abstract_static_and_class_methods() -> None:
    contract = _RecordingContract()
    proxy = uut.create_dynamic_proxy(instance=contract, target=WidgetFactory)

    assert isinstance(proxy, WidgetFactory)
    assert proxy.create("w") == "fallback:create"
    assert proxy.version() == "fallback:version"
    assert proxy.default_name() == "widget"
    assert contract.calls == [("create", ("w",)), ("version", ())]


def test_detached_proxy_raises_mock_disposed() -> None:
    proxy = uut.create_dynamic_proxy(instance=_RecordingContract(), target=UserRepository)
    object.__setattr__(proxy, INSTANCE_ATTR, None)

    with pytest.raises(MockDisposed):
        proxy.get_by_id(1)
    assert "disposed" in repr(proxy)


@pytest.mark.parametrize(
    "target, message",
    [
        pytest.param(SealedService, "is final", id="final"),
        pytest.param(bool, "cannot subclass", id="unsubclassable-builtin"),
        pytest.param(_WithPrivateAbstract, "abstract members", id="private-abstract"),
    ],
)
def test_unavailable_targets(target: type, message: str) -> None:
    with pytest.raises(ProxyUnavailable, match=message):
        uut.create_dynamic_proxy(instance=_RecordingContract(), target=target)


def test_static_proxy_class() -> None:
    contract = _RecordingContract()
    accessor = uut.synthesize_static_proxy_class(Clock)(contract)

    assert accessor.now() == "fallback:now"
    assert accessor.shift(1.0, scale=2.0) == "fallback:shift"
    assert accessor.TIMEZONE == "fallback:TIMEZONE"
    assert contract.calls == [("now", ()), ("shift", (1.0, 2.0)), ("TIMEZONE", ())]
    assert list(inspect.signature(accessor.shift).parameters) == ["seconds", "scale"]
    assert not hasattr(accessor, "tick")
