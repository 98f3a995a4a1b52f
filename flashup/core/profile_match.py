"""Device-to-profile matching logic."""

from __future__ import annotations

from collections.abc import Sequence

from flashup.core.model import DeviceProfile, VersionInfo


def profile_matches(profile: DeviceProfile, family: str, processor: str) -> bool:
    if not profile.family.search(family):
        return False
    return profile.processor is None or profile.processor == processor


def resolve_profile(profiles: Sequence[DeviceProfile], version: VersionInfo) -> DeviceProfile | None:
    for profile in profiles:
        if profile_matches(profile, version.family, version.processor):
            return profile
    return None
