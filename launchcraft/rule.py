"""Platform and feature rules attached to libraries and arguments of version metadata.

A list of rules is interpreted in order, each rule matching the running platform and
the given features sets the verdict to its action, so the last matching rule wins. A
list where no rule matches allows its subject.
"""

import platform
import re

from typing import Any, Dict, List, Optional


class Rule:
    """A single rule parsed from metadata.
    """

    ALLOW = "allow"
    DISALLOW = "disallow"

    __slots__ = "action", "os_name", "os_arch", "os_version", "features"

    def __init__(self,
        action: str, *,
        os_name: Optional[str] = None,
        os_arch: Optional[str] = None,
        os_version: Optional[str] = None,
        features: Optional[Dict[str, bool]] = None
    ) -> None:
        self.action = action
        self.os_name = os_name
        self.os_arch = os_arch
        self.os_version = os_version
        self.features = {} if features is None else features

    @classmethod
    def from_dict(cls, value: Any, path: str) -> "Rule":
        """Parse a rule from its metadata object, the path is used for error messages.
        """

        if not isinstance(value, dict):
            raise ValueError(f"{path} must be an object")

        action = value.get("action")
        if action not in (cls.ALLOW, cls.DISALLOW):
            raise ValueError(f"{path}/action must be 'allow' or 'disallow'")

        os_name = os_arch = os_version = None
        rule_os = value.get("os")
        if rule_os is not None:

            if not isinstance(rule_os, dict):
                raise ValueError(f"{path}/os must be an object")

            os_name = rule_os.get("name")
            if os_name is not None and not isinstance(os_name, str):
                raise ValueError(f"{path}/os/name must be a string")

            os_arch = rule_os.get("arch")
            if os_arch is not None and not isinstance(os_arch, str):
                raise ValueError(f"{path}/os/arch must be a string")

            os_version = rule_os.get("version")
            if os_version is not None and not isinstance(os_version, str):
                raise ValueError(f"{path}/os/version must be a string")

        features = value.get("features", {})
        if not isinstance(features, dict):
            raise ValueError(f"{path}/features must be an object")

        for feat_name, feat_expected in features.items():
            if not isinstance(feat_expected, bool):
                raise ValueError(f"{path}/features/{feat_name} must be a boolean")

        return cls(action, os_name=os_name, os_arch=os_arch, os_version=os_version, features=features)

    def matches(self, features: Dict[str, bool], os_name: Optional[str], os_arch: Optional[str]) -> bool:
        """Return true if this rule applies to the given platform and features, missing
        features are considered disabled.
        """

        if self.os_name is not None and self.os_name != os_name:
            return False
        if self.os_arch is not None and self.os_arch != os_arch:
            return False
        if self.os_version is not None and re.search(self.os_version, platform.version()) is None:
            return False

        for feat_name, feat_expected in self.features.items():
            if features.get(feat_name, False) != feat_expected:
                return False

        return True

    def __repr__(self) -> str:
        return f"<Rule {self.action} os={self.os_name}/{self.os_arch} features={self.features}>"


def parse_rules(value: Any, path: str) -> List[Rule]:
    """Parse a list of rules from metadata, the path is used for error messages.
    """

    if not isinstance(value, list):
        raise ValueError(f"{path} must be a list")

    return [Rule.from_dict(rule, f"{path}/{i}") for i, rule in enumerate(value)]


def interpret_rules(rules: List[Rule], features: Optional[Dict[str, bool]] = None, *,
    os_name: Optional[str] = None,
    os_arch: Optional[str] = None
) -> bool:
    """Interpret a list of rules and return true if its subject is allowed. The OS name
    and arch default to the running platform.
    """

    if features is None:
        features = {}
    if os_name is None:
        os_name = minecraft_os
    if os_arch is None:
        os_arch = minecraft_arch

    allowed = True
    for rule in rules:
        if rule.matches(features, os_name, os_arch):
            allowed = rule.action == Rule.ALLOW

    return allowed


# Name of the OS has used by Minecraft.
minecraft_os = {
    "Linux": "linux",
    "Windows": "windows",
    "Darwin": "osx",
    "FreeBSD": "freebsd"
}.get(platform.system())

# Name of the processor's architecture has used by Minecraft.
minecraft_arch = {
    "i386": "x86",
    "i686": "x86",
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv7l": "arm32",
    "armv6l": "arm32",
}.get(platform.machine().lower())

# Stores the bits length of pointers on the current system.
minecraft_arch_bits = {
    "64bit": 64,
    "32bit": 32
}.get(platform.architecture()[0])
