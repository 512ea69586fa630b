"""Inclusion/exclusion policy over application package names."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class FilterMode(str, Enum):
    BLACKLIST = "blacklist"
    WHITELIST = "whitelist"


@dataclass(slots=True)
class AppFilter:
    """Package set interpreted according to ``mode``.

    In blacklist mode listed packages are excluded; in whitelist mode only
    listed packages are kept, so an empty whitelist excludes everything.
    """

    mode: FilterMode = FilterMode.BLACKLIST
    packages: set[str] = field(default_factory=set)

    def allows(self, package_name: str) -> bool:
        listed = package_name in self.packages
        if self.mode is FilterMode.WHITELIST:
            return listed
        return not listed

    def add(self, package_name: str) -> None:
        cleaned = package_name.strip()
        if cleaned:
            self.packages.add(cleaned)

    def remove(self, package_name: str) -> None:
        self.packages.discard(package_name.strip())

    @property
    def app_count(self) -> int:
        return len(self.packages)

    def as_string(self) -> str:
        return ",".join(sorted(self.packages))

    @classmethod
    def from_string(cls, mode: FilterMode | str, value: str | None) -> "AppFilter":
        return cls(mode=FilterMode(mode), packages=parse_app_list(value or ""))


def parse_app_list(value: str | Iterable[str]) -> set[str]:
    items = value.split(",") if isinstance(value, str) else value
    return {item.strip() for item in items if item and item.strip()}
