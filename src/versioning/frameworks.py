"""Target framework names and the dependency-group allow-list.

Nuspec files and the registry spell the same framework several ways
(``.NETStandard2.0``, ``netstandard2.0``, ``.NETStandard,Version=v2.0``).
``TargetFramework.parse`` folds them into one comparable value.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

from constants import Constants

AGNOSTIC = "Agnostic"
ANY = "Any"
UNSUPPORTED = "Unsupported"
NETSTANDARD = ".NETStandard"
NETCOREAPP = ".NETCoreApp"
NETFRAMEWORK = ".NETFramework"

_IDENTIFIER_ALIASES = {
    "agnostic": AGNOSTIC,
    "any": ANY,
    "netstandard": NETSTANDARD,
    "netcoreapp": NETCOREAPP,
    "netframework": NETFRAMEWORK,
    "net": NETFRAMEWORK,
    "netplatform": ".NETPlatform",
    "dotnet": ".NETPlatform",
    "uap": "UAP",
    "monoandroid": "MonoAndroid",
    "xamarinios": "Xamarin.iOS",
    "tizen": "Tizen",
}

_SHORT_NAMES = {
    NETSTANDARD: "netstandard",
    NETCOREAPP: "netcoreapp",
    NETFRAMEWORK: "net",
    AGNOSTIC: "agnostic",
    ANY: "any",
}

_SHORT_FORM_RE = re.compile(r"^(?P<ident>\.?[a-z][a-z\.]*?)(?P<version>\d[\d\.]*)?(?:-(?P<platform>.+))?$")
_LONG_VERSION_RE = re.compile(r"^version=v?(?P<version>[\d\.]+)$")


def _version_tuple(text: Optional[str]) -> Tuple[int, int, int, int]:
    if not text:
        return (0, 0, 0, 0)
    if "." in text:
        parts = [int(p) for p in text.split(".") if p != ""]
    else:
        # compact folder form: net45 -> 4.5, net461 -> 4.6.1
        parts = [int(c) for c in text]
    parts = (parts + [0, 0, 0, 0])[:4]
    return tuple(parts)  # type: ignore[return-value]


@dataclass(frozen=True)
class TargetFramework:
    """Framework identifier, version and optional platform."""

    identifier: str
    version: Tuple[int, int, int, int] = (0, 0, 0, 0)
    platform: str = ""

    @classmethod
    def parse(cls, value: Optional[str]) -> "TargetFramework":
        """Parse a framework name; unknown spellings become ``Unsupported``."""
        if value is None:
            return cls(ANY)
        text = value.strip()
        if not text:
            return cls(ANY)

        if "," in text:
            return cls._parse_long(text)

        match = _SHORT_FORM_RE.match(text.lower())
        if not match:
            return cls(UNSUPPORTED)
        ident = match.group("ident").lstrip(".")
        identifier = _IDENTIFIER_ALIASES.get(ident)
        if identifier is None:
            return cls(UNSUPPORTED)
        try:
            version = _version_tuple(match.group("version"))
        except ValueError:
            return cls(UNSUPPORTED)
        if identifier == NETFRAMEWORK and ident == "net" and version[0] >= 5:
            # net5.0 and later are .NETCoreApp
            identifier = NETCOREAPP
        return cls(identifier, version, match.group("platform") or "")

    @classmethod
    def _parse_long(cls, text: str) -> "TargetFramework":
        parts = [p.strip() for p in text.split(",")]
        ident = _IDENTIFIER_ALIASES.get(parts[0].lower().lstrip("."))
        if ident is None:
            return cls(UNSUPPORTED)
        version: Tuple[int, int, int, int] = (0, 0, 0, 0)
        for part in parts[1:]:
            match = _LONG_VERSION_RE.match(part.lower())
            if match:
                version = _version_tuple(match.group("version"))
        return cls(ident, version)

    @property
    def short_folder_name(self) -> str:
        short = _SHORT_NAMES.get(self.identifier, self.identifier.lower())
        if self.identifier in (AGNOSTIC, ANY, UNSUPPORTED):
            return short
        if self.version == (0, 0, 0, 0):
            return short
        parts = list(self.version)
        while len(parts) > 2 and parts[-1] == 0:
            parts.pop()
        if self.identifier == NETCOREAPP and parts[0] >= 5:
            short = "net"
        text = f"{short}{'.'.join(str(p) for p in parts)}"
        if self.platform:
            text += f"-{self.platform}"
        return text

    def __str__(self) -> str:
        return self.short_folder_name


def allowed_frameworks(names: Optional[Iterable[str]] = None) -> FrozenSet[TargetFramework]:
    """Build the allow-list from framework names (default: Constants.ALLOWED_FRAMEWORKS)."""
    if names is None:
        names = Constants.ALLOWED_FRAMEWORKS
    return frozenset(TargetFramework.parse(name) for name in names)
