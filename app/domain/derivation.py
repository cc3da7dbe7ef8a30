"""
Derive human-readable package metadata from a modpack manifest.

The heuristics here are intentionally simple and lossy: loader detection is a
substring match on dependency keys, and content names are cleaned up from
file names with a couple of regular expressions. Their exact behavior is what
the stored records depend on, so keep changes deliberate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.domain.models import ManifestDocument

UNKNOWN_VERSION = "Unknown"
VANILLA_LOADER = "Vanilla"
TARGET_DEPENDENCY = "minecraft"

# Checked in this order against every dependency key.
LOADER_IDENTIFIERS = ("forge", "fabric", "quilt", "neoforge")

_JAR_SUFFIX_RE = re.compile(r"\.jar$")
_SEPARATOR_RE = re.compile(r"[-_]")
# Only the first match is removed, even when it is part of the name.
_VERSION_TOKEN_RE = re.compile(r"\s?\d+(\.\d+)*\s?", re.ASCII)
_WORD_START_RE = re.compile(r"\b\w", re.ASCII)


@dataclass(frozen=True)
class DerivedMetadata:
    target_version: str
    loader_name: str
    content_list: List[str] = field(default_factory=list)


def detect_target_version(dependencies: Dict[str, Optional[str]]) -> str:
    return dependencies.get(TARGET_DEPENDENCY) or UNKNOWN_VERSION


def detect_loader(dependencies: Dict[str, Optional[str]]) -> str:
    """
    Find the first dependency key mentioning a known loader.

    ``fabric-loader`` becomes ``Fabric``; ``neoforge`` becomes ``Neoforge``.
    """
    loader_key: Optional[str] = next(
        (key for key in dependencies if any(loader in key for loader in LOADER_IDENTIFIERS)),
        None,
    )
    if loader_key is None:
        return VANILLA_LOADER

    base = loader_key.split("-")[0]
    return base[:1].upper() + base[1:]


def normalize_content_name(path: str) -> str:
    """
    Turn a manifest file path into a display name.

    >>> normalize_content_name("mods/cool_mod-2.0.jar")
    'Cool Mod'
    """
    name = path.split("/")[-1]
    name = _JAR_SUFFIX_RE.sub("", name)
    name = _SEPARATOR_RE.sub(" ", name)
    name = _VERSION_TOKEN_RE.sub("", name, count=1)
    name = name.strip()
    return _WORD_START_RE.sub(lambda m: m.group(0).upper(), name)


def derive_metadata(manifest: ManifestDocument) -> DerivedMetadata:
    """Pure and total: missing manifest fields degrade to sentinels."""
    dependencies = manifest.dependencies or {}
    return DerivedMetadata(
        target_version=detect_target_version(dependencies),
        loader_name=detect_loader(dependencies),
        content_list=[normalize_content_name(f.path) for f in manifest.files],
    )
