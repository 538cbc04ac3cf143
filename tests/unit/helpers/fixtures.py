from __future__ import annotations

import abc
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Protocol, final, overload


@dataclass(frozen=True, slots=True)
class User:
    id: int = 0
    email: str = ""


class UserRepository(abc.ABC):
    @abc.abstractmethod
    def get_by_id(self, user_id: int) -> User: ...

    @abc.abstractmethod
    async def save_async(self, user: User) -> None: ...

    @abc.abstractmethod
    async def get_all_async(self) -> list[User]: ...

    @abc.abstractmethod
    def delete(self, user_id: int, *, hard: bool = False) -> bool: ...

    @property
    @abc.abstractmethod
    def name(self) -> str: ...

    def _audit(self) -> None: ...


class EmailService(Protocol):
    async def send_async(self, to: str, subject: str, body: str) -> bool: ...


class FutureRepository(abc.ABC):
    @abc.abstractmethod
    def load(self, user_id: int) -> Future[User]: ...


class EventHandler(abc.ABC):
    @abc.abstractmethod
    def __call__(self, event: str) -> bool: ...

    @abc.abstractmethod
    def __len__(self) -> int: ...


class WidgetFactory(abc.ABC):
    @classmethod
    @abc.abstractmethod
    def create(cls, name: str) -> int: ...

    @staticmethod
    @abc.abstractmethod
    def version() -> str: ...

    @staticmethod
    def default_name() -> str:
        return "widget"


class Finder:
    @overload
    def find(self, key: int) -> User: ...

    @overload
    def find(self, key: str) -> list[User]: ...

    def find(self, key):
        raise NotImplementedError


class Clock:
    TIMEZONE = "UTC"

    @staticmethod
    def now() -> float:
        return 1000.0

    @classmethod
    def zone(cls) -> str:
        return cls.TIMEZONE

    @staticmethod
    def shift(seconds: float, *, scale: float = 1.0) -> float:
        return 1000.0 + seconds * scale

    def tick(self) -> int:
        return 1


@final
class SealedService:
    def ping(self) -> str:
        return "pong"


class RealUserRepository(UserRepository):
    def __init__(self) -> None:
        self._users: dict[int, User] = {}

    def get_by_id(self, user_id: int) -> User:
        return self._users[user_id]

    async def save_async(self, user: User) -> None:
        self._users[user.id] = user

    async def get_all_async(self) -> list[User]:
        return list(self._users.values())

    def delete(self, user_id: int, *, hard: bool = False) -> bool:
        return self._users.pop(user_id, None) is not None

    @property
    def name(self) -> str:
        return "real"


class DriftedUserRepository:
    """
    Claims to stand in for ``UserRepository`` but has drifted from it.
    """

    def get_by_id(self, id: int) -> User:
        return User(id=id)

    def save_async(self, user: User) -> None:
        return None

    async def get_all_async(self) -> list[User]:
        return []

    name = "drifted"
