"""NuGet version and version-range models.

NuGet versions are SemVer 2 with an optional fourth numeric part
("revision", e.g. ``4.0.0.1``) and lenient short forms (``1.0``). Prerelease
precedence follows SemVer 2 rules, compared case-insensitively; build
metadata never affects ordering.
"""
from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import semantic_version

_LABEL_RE = re.compile(r"^[0-9A-Za-z-]+$")
_RELEASE_PART_RE = re.compile(r"^\d+$")


@functools.total_ordering
class NuGetVersion:
    """Comparable NuGet version."""

    __slots__ = ("major", "minor", "patch", "revision", "release_labels", "metadata", "original", "_precedence")

    def __init__(
        self,
        major: int,
        minor: int = 0,
        patch: int = 0,
        revision: int = 0,
        release_labels: Tuple[str, ...] = (),
        metadata: Optional[str] = None,
        original: Optional[str] = None,
    ):
        if min(major, minor, patch, revision) < 0:
            raise ValueError("Version parts must be non-negative")
        self.major = major
        self.minor = minor
        self.patch = patch
        self.revision = revision
        self.release_labels = tuple(release_labels)
        self.metadata = metadata
        self.original = original
        # semantic_version implements SemVer 2 prerelease precedence; the
        # numeric parts are compared separately because of the revision.
        self._precedence = semantic_version.Version(
            major=0,
            minor=0,
            patch=0,
            prerelease=tuple(label.lower() for label in self.release_labels),
        )

    @classmethod
    def parse(cls, value: str) -> "NuGetVersion":
        """Parse a NuGet version string.

        Raises:
            ValueError: If the string is not a valid NuGet version.
        """
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Invalid version: {value!r}")
        text = value.strip()

        metadata = None
        if "+" in text:
            text, metadata = text.split("+", 1)
            if not metadata or not all(_LABEL_RE.match(p) for p in metadata.split(".")):
                raise ValueError(f"Invalid build metadata in version: {value!r}")

        labels: Tuple[str, ...] = ()
        if "-" in text:
            text, pre = text.split("-", 1)
            parts = pre.split(".")
            if not all(_LABEL_RE.match(p) for p in parts):
                raise ValueError(f"Invalid prerelease label in version: {value!r}")
            # leading zeros are tolerated by NuGet but rejected by SemVer
            labels = tuple(str(int(p)) if p.isdigit() else p for p in parts)

        release = text.split(".")
        if not 1 <= len(release) <= 4 or not all(_RELEASE_PART_RE.match(p) for p in release):
            raise ValueError(f"Invalid version: {value!r}")
        numbers = [int(p) for p in release] + [0] * (4 - len(release))
        return cls(*numbers, release_labels=labels, metadata=metadata, original=value.strip())

    @classmethod
    def try_parse(cls, value: str) -> Optional["NuGetVersion"]:
        try:
            return cls.parse(value)
        except ValueError:
            return None

    @property
    def is_prerelease(self) -> bool:
        return bool(self.release_labels)

    @property
    def release(self) -> Tuple[int, int, int, int]:
        return (self.major, self.minor, self.patch, self.revision)

    def normalized(self) -> str:
        """NuGet normalized form: three parts, revision only when non-zero, no metadata."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.release_labels:
            text += "-" + ".".join(self.release_labels)
        return text

    def _key(self):
        return (self.release, tuple(label.lower() for label in self.release_labels))

    def __eq__(self, other) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        if self.release != other.release:
            return self.release < other.release
        return self._precedence < other._precedence

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.normalized()

    def __repr__(self) -> str:
        return f"NuGetVersion('{self.normalized()}')"


@dataclass(frozen=True)
class VersionRange:
    """NuGet version range.

    Supports the interval notation (``[1.0,2.0)``, ``(,1.0]``, ``[1.0]``),
    the bare minimum form (``1.0`` meaning ``>= 1.0``) and floating versions
    (``1.*``, ``*``), whose minimum is the floor of the float.
    """

    min_version: Optional[NuGetVersion] = None
    max_version: Optional[NuGetVersion] = None
    is_min_inclusive: bool = True
    is_max_inclusive: bool = False
    original: str = ""

    @property
    def has_lower_bound(self) -> bool:
        return self.min_version is not None

    @property
    def has_upper_bound(self) -> bool:
        return self.max_version is not None

    @classmethod
    def parse(cls, value: Optional[str]) -> "VersionRange":
        """Parse a NuGet range string; empty or None means "any version".

        Raises:
            ValueError: If the range is malformed.
        """
        text = (value or "").strip()
        if not text:
            return cls(original="")

        if text[0] in "[(":
            return cls._parse_interval(text)

        if "*" in text:
            return cls(min_version=_float_floor(text), original=text)

        return cls(min_version=NuGetVersion.parse(text), is_min_inclusive=True, original=text)

    @classmethod
    def _parse_interval(cls, text: str) -> "VersionRange":
        if len(text) < 3 or text[-1] not in "])":
            raise ValueError(f"Invalid version range: {text!r}")
        min_inclusive = text[0] == "["
        max_inclusive = text[-1] == "]"
        inner = text[1:-1]

        if "," not in inner:
            # exact match form: [1.0]
            if not (min_inclusive and max_inclusive):
                raise ValueError(f"Invalid version range: {text!r}")
            exact = NuGetVersion.parse(inner)
            return cls(exact, exact, True, True, text)

        low_text, high_text = (p.strip() for p in inner.split(",", 1))
        low = NuGetVersion.parse(low_text) if low_text else None
        high = NuGetVersion.parse(high_text) if high_text else None
        if low is None and high is None:
            # "(,)" carries no bound at all
            return cls(original=text, is_min_inclusive=min_inclusive, is_max_inclusive=max_inclusive)
        if low is not None and high is not None and high < low:
            raise ValueError(f"Invalid version range (max < min): {text!r}")
        return cls(low, high, min_inclusive, max_inclusive, text)

    def __str__(self) -> str:
        return self.original or "*"


def _float_floor(text: str) -> NuGetVersion:
    """Lowest version a floating range can resolve to (``1.2.*`` -> ``1.2.0``)."""
    if text == "*":
        return NuGetVersion(0, 0, 0)
    head, _, _ = text.partition("*")
    if head.endswith("-"):
        # prerelease float: "1.0.0-*" floors at the lowest prerelease
        return NuGetVersion.parse(head + "0")
    head = head.rstrip(".")
    if not head:
        return NuGetVersion(0, 0, 0)
    return NuGetVersion.parse(head)
